"""
Database layer — async SQLAlchemy 2.0 engine helpers.

Provides:
    • Async engine and session factory builders
    • Base model for ORM entities
    • UTCDateTime column type (timezone-aware in, timezone-aware out)
    • SQLite conveniences: parent directory creation + WAL journal mode

Usage:
    from notihub.core.database import build_engine, build_session_factory

    engine = build_engine("sqlite+aiosqlite:///./data/notihub.db")
    sessions = build_session_factory(engine)
    async with sessions() as session:
        ...
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from sqlalchemy import DateTime, event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.types import TypeDecorator

logger = logging.getLogger(__name__)


# ── ORM Base ──
class Base(DeclarativeBase):
    """Declarative base for all ORM models."""
    pass


class UTCDateTime(TypeDecorator):
    """
    Store datetimes as naive UTC, return them timezone-aware.

    SQLite has no timezone support, so values are normalised to UTC before
    writing; this keeps lexical ordering of stored timestamps correct.
    """

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).replace(tzinfo=None)

    def process_result_value(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        if value is None:
            return None
        return value.replace(tzinfo=timezone.utc)


def _prepare_sqlite(url: str) -> bool:
    """Create the database directory for file-backed SQLite URLs."""
    parsed = make_url(url)
    if not parsed.drivername.startswith("sqlite"):
        return False
    database = parsed.database
    if database and database != ":memory:":
        Path(database).expanduser().resolve().parent.mkdir(parents=True, exist_ok=True)
    return True


# ── Engine ──
def build_engine(url: str, *, echo: bool = False) -> AsyncEngine:
    """Create an async engine; SQLite connections run in WAL mode."""
    is_sqlite = _prepare_sqlite(url)
    engine = create_async_engine(url, echo=echo, future=True)

    if is_sqlite:
        @event.listens_for(engine.sync_engine, "connect")
        def _sqlite_pragmas(dbapi_conn, _record):
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA synchronous=NORMAL")
            cursor.close()

    logger.debug("Database engine created: %s", make_url(url).render_as_string(hide_password=True))
    return engine


# ── Session Factory ──
def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def create_tables(engine: AsyncEngine) -> None:
    """Create all tables registered on Base (idempotent)."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables initialised")
