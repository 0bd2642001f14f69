"""
storage.py — Durable storage for event records.

Provides:
    • EventRow     — ORM mapping of the `events` table
    • EventStorage — abstract table-addressed storage contract
    • SQLStorage   — SQLAlchemy 2.0 async implementation (SQLite via aiosqlite
                     by default, any async dialect URL works)

Table shape:

    events
    ──────
    id            INTEGER PK AUTOINCREMENT
    trace_id      TEXT      ┐ UNIQUE(trace_id, event_type)
    event_type    TEXT      ┘
    source, severity, title, summary, timestamp
    context, actions, channels_sent   JSON
    status        TEXT      success | partial | failed
    created_at    DATETIME

Only the `events` table is supported; any other table name raises
StorageError.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

from sqlalchemy import (
    JSON,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    delete as sa_delete,
    func,
    select,
    text,
    update as sa_update,
)
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Mapped, mapped_column

from notihub.core.database import (
    Base,
    UTCDateTime,
    build_engine,
    build_session_factory,
    create_tables,
)
from notihub.core.errors import DuplicateEventError, StorageError
from notihub.dispatch.models import (
    Event,
    EventFilters,
    EventRecord,
    EventStatus,
    PaginatedResult,
)

logger = logging.getLogger(__name__)

EVENTS_TABLE = "events"


class EventRow(Base):
    __tablename__ = EVENTS_TABLE
    __table_args__ = (
        UniqueConstraint("trace_id", "event_type", name="uq_events_trace_type"),
        Index("idx_trace_id", "trace_id"),
        Index("idx_source", "source"),
        Index("idx_timestamp", "timestamp"),
        Index("idx_status", "status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    trace_id: Mapped[str] = mapped_column(String(255), nullable=False)
    source: Mapped[str] = mapped_column(String(255), nullable=False)
    event_type: Mapped[str] = mapped_column(String(16), nullable=False)
    severity: Mapped[str] = mapped_column(String(16), nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    summary: Mapped[str] = mapped_column(Text, nullable=False, default="")
    context: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)
    actions: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    channels_sent: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)


def _column_names() -> set:
    return {c.name for c in EventRow.__table__.columns}


def row_to_record(row: EventRow) -> EventRecord:
    """Convert an ORM row into an EventRecord."""
    event = Event(
        source=row.source,
        event_type=row.event_type,
        severity=row.severity,
        title=row.title,
        summary=row.summary,
        trace_id=row.trace_id,
        timestamp=row.timestamp,
        context=row.context,
        actions=tuple(row.actions) if row.actions else None,
    )
    return EventRecord(
        id=row.id,
        event=event,
        channels_sent=list(row.channels_sent or []),
        status=EventStatus(row.status),
        created_at=row.created_at,
    )


# ═══════════════════════════════════════════════════════════════════════════
# Contract
# ═══════════════════════════════════════════════════════════════════════════

class EventStorage(ABC):
    """Table-addressed persistence used by the event store."""

    @abstractmethod
    async def init(self) -> None:
        """Create schema if missing."""

    @abstractmethod
    async def insert(self, table: str, data: Mapping[str, Any]) -> EventRecord:
        """Insert one row and return the stored record (with its id)."""

    @abstractmethod
    async def query(self, table: str, filters: EventFilters) -> PaginatedResult:
        ...

    @abstractmethod
    async def find_one(self, table: str, criteria: Mapping[str, Any]) -> Optional[EventRecord]:
        ...

    @abstractmethod
    async def update(self, table: str, criteria: Mapping[str, Any], data: Mapping[str, Any]) -> int:
        ...

    @abstractmethod
    async def delete(self, table: str, criteria: Mapping[str, Any]) -> int:
        """Delete matching rows and return how many were removed."""

    @abstractmethod
    async def close(self) -> None:
        ...

    async def ping(self) -> bool:
        return True


# ═══════════════════════════════════════════════════════════════════════════
# SQLAlchemy implementation
# ═══════════════════════════════════════════════════════════════════════════

class SQLStorage(EventStorage):
    """Async SQLAlchemy storage for the `events` table."""

    def __init__(self, url: str, *, echo: bool = False) -> None:
        self._url = url
        self._engine = build_engine(url, echo=echo)
        self._sessions = build_session_factory(self._engine)

    @staticmethod
    def _check_table(table: str) -> None:
        if table != EVENTS_TABLE:
            raise StorageError(f"Table {table} not supported", table=table)

    @staticmethod
    def _check_columns(fields: Mapping[str, Any], what: str) -> None:
        unknown = set(fields) - _column_names()
        if unknown:
            raise StorageError(f"Unknown {what} column(s): {sorted(unknown)}")

    def _where(self, criteria: Mapping[str, Any]):
        self._check_columns(criteria, "criteria")
        if not criteria:
            raise StorageError("criteria must not be empty")
        return [getattr(EventRow, k) == v for k, v in criteria.items()]

    async def init(self) -> None:
        await create_tables(self._engine)

    async def insert(self, table: str, data: Mapping[str, Any]) -> EventRecord:
        self._check_table(table)
        self._check_columns(data, "insert")
        values = dict(data)
        values.setdefault("created_at", datetime.now(timezone.utc))
        values.setdefault("channels_sent", [])

        row = EventRow(**values)
        try:
            async with self._sessions() as session:
                session.add(row)
                await session.commit()
                await session.refresh(row)
        except IntegrityError as exc:
            raise DuplicateEventError(
                str(values.get("trace_id")), str(values.get("event_type")),
            ) from exc
        except SQLAlchemyError as exc:
            raise StorageError(f"Insert failed: {exc}") from exc
        return row_to_record(row)

    async def query(self, table: str, filters: EventFilters) -> PaginatedResult:
        self._check_table(table)
        conditions = []
        if filters.source:
            conditions.append(EventRow.source == filters.source)
        if filters.event_type:
            conditions.append(EventRow.event_type == filters.event_type.value)
        if filters.severity:
            conditions.append(EventRow.severity == filters.severity.value)
        if filters.timestamp_gte:
            conditions.append(EventRow.timestamp >= filters.timestamp_gte)
        if filters.timestamp_lt:
            conditions.append(EventRow.timestamp < filters.timestamp_lt)

        count_stmt = select(func.count()).select_from(EventRow).where(*conditions)
        rows_stmt = (
            select(EventRow)
            .where(*conditions)
            .order_by(EventRow.timestamp.desc(), EventRow.id.asc())
            .limit(filters.limit)
            .offset(filters.offset)
        )
        try:
            async with self._sessions() as session:
                total = (await session.execute(count_stmt)).scalar_one()
                rows = (await session.execute(rows_stmt)).scalars().all()
        except SQLAlchemyError as exc:
            raise StorageError(f"Query failed: {exc}") from exc

        return PaginatedResult(
            total=total,
            items=[row_to_record(r) for r in rows],
            limit=filters.limit,
            offset=filters.offset,
        )

    async def find_one(self, table: str, criteria: Mapping[str, Any]) -> Optional[EventRecord]:
        self._check_table(table)
        stmt = (
            select(EventRow)
            .where(*self._where(criteria))
            .order_by(EventRow.id.desc())
            .limit(1)
        )
        try:
            async with self._sessions() as session:
                row = (await session.execute(stmt)).scalars().first()
        except SQLAlchemyError as exc:
            raise StorageError(f"Lookup failed: {exc}") from exc
        return row_to_record(row) if row is not None else None

    async def update(self, table: str, criteria: Mapping[str, Any], data: Mapping[str, Any]) -> int:
        self._check_table(table)
        self._check_columns(data, "update")
        stmt = sa_update(EventRow).where(*self._where(criteria)).values(**data)
        try:
            async with self._sessions() as session:
                result = await session.execute(stmt)
                await session.commit()
        except IntegrityError as exc:
            raise StorageError(f"Update violates a constraint: {exc}") from exc
        except SQLAlchemyError as exc:
            raise StorageError(f"Update failed: {exc}") from exc
        return result.rowcount or 0

    async def delete(self, table: str, criteria: Mapping[str, Any]) -> int:
        self._check_table(table)
        stmt = sa_delete(EventRow).where(*self._where(criteria))
        try:
            async with self._sessions() as session:
                result = await session.execute(stmt)
                await session.commit()
        except SQLAlchemyError as exc:
            raise StorageError(f"Delete failed: {exc}") from exc
        return result.rowcount or 0

    async def ping(self) -> bool:
        async with self._engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True

    async def close(self) -> None:
        await self._engine.dispose()
        logger.info("Database connections closed")
