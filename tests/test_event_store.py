"""
test_event_store.py — Tests for persistence, querying and the change feed.

Runs against a real SQLite file (aiosqlite) per test.

Run with:
    pytest tests/test_event_store.py -v
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from notihub.core.errors import DuplicateEventError, StorageError
from notihub.dispatch.event_store import (
    ChangeKind,
    EventStore,
    StoreNotification,
    determine_status,
)
from notihub.dispatch.models import (
    Action,
    ActionType,
    Event,
    EventFilters,
    EventStatus,
    EventType,
    SendResult,
    Severity,
)
from notihub.dispatch.storage import EVENTS_TABLE

BASE_TIME = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _make_event(trace_id: str, **overrides) -> Event:
    fields = dict(
        source="ci",
        title=f"Event {trace_id}",
        event_type=EventType.INFO,
        severity=Severity.LOW,
        trace_id=trace_id,
        timestamp=BASE_TIME,
    )
    fields.update(overrides)
    return Event.create(**fields)


def _ok(channel: str) -> SendResult:
    return SendResult(success=True, channel=channel, message_id=f"{channel}-1")


def _fail(channel: str) -> SendResult:
    return SendResult(success=False, channel=channel, error="boom")


# ═══════════════════════════════════════════════════════════════════════════
# Section 1: Status derivation
# ═══════════════════════════════════════════════════════════════════════════

class TestDetermineStatus:

    def test_no_results_is_failed(self):
        assert determine_status([]) is EventStatus.FAILED

    def test_all_success(self):
        assert determine_status([_ok("a"), _ok("b")]) is EventStatus.SUCCESS

    def test_all_failed(self):
        assert determine_status([_fail("a"), _fail("b")]) is EventStatus.FAILED

    def test_mixed_is_partial(self):
        assert determine_status([_ok("a"), _fail("b")]) is EventStatus.PARTIAL


# ═══════════════════════════════════════════════════════════════════════════
# Section 2: Save / lookup / delete
# ═══════════════════════════════════════════════════════════════════════════

class TestSave:

    @pytest.mark.asyncio
    async def test_save_returns_record_with_id(self, event_store):
        event = _make_event(
            "t-1",
            context={"branch": "main", "files": ["a.py"]},
            actions=[Action(ActionType.LINK, "Open", url="https://x")],
        )
        record = await event_store.save(event, [_ok("a"), _fail("b")])

        assert record.id >= 1
        assert record.status is EventStatus.PARTIAL
        assert record.channels_sent == ["a", "b"]
        assert record.event == event
        assert record.created_at.tzinfo is not None

    @pytest.mark.asyncio
    async def test_save_with_no_results_is_failed(self, event_store):
        record = await event_store.save(_make_event("t-0"), [])
        assert record.status is EventStatus.FAILED
        assert record.channels_sent == []

    @pytest.mark.asyncio
    async def test_duplicate_pair_rejected(self, event_store):
        await event_store.save(_make_event("t-1"), [_ok("a")])
        with pytest.raises(DuplicateEventError) as exc:
            await event_store.save(_make_event("t-1", title="changed"), [_ok("a")])
        assert exc.value.status_code == 409

        page = await event_store.query()
        assert page.total == 1

    @pytest.mark.asyncio
    async def test_same_trace_different_type_allowed(self, event_store):
        await event_store.save(_make_event("t-1", event_type=EventType.INFO), [])
        await event_store.save(_make_event("t-1", event_type=EventType.ERROR), [])
        assert (await event_store.query()).total == 2


class TestLookup:

    @pytest.mark.asyncio
    async def test_get_by_id(self, event_store):
        saved = await event_store.save(_make_event("t-1"), [_ok("a")])
        found = await event_store.get_by_id(saved.id)
        assert found is not None
        assert found.trace_id == "t-1"
        assert found.status is EventStatus.SUCCESS

    @pytest.mark.asyncio
    async def test_get_by_id_missing_is_none(self, event_store):
        assert await event_store.get_by_id(999) is None

    @pytest.mark.asyncio
    async def test_get_by_trace_id_returns_most_recent(self, event_store):
        await event_store.save(_make_event("t-1", event_type=EventType.INFO), [])
        latest = await event_store.save(_make_event("t-1", event_type=EventType.ERROR), [])
        found = await event_store.get_by_trace_id("t-1")
        assert found.id == latest.id
        assert found.event_type is EventType.ERROR

    @pytest.mark.asyncio
    async def test_get_by_trace_id_missing(self, event_store):
        assert await event_store.get_by_trace_id("nope") is None


class TestDelete:

    @pytest.mark.asyncio
    async def test_delete_existing(self, event_store):
        saved = await event_store.save(_make_event("t-1"), [])
        assert await event_store.delete(saved.id) is True
        assert await event_store.get_by_id(saved.id) is None

    @pytest.mark.asyncio
    async def test_delete_missing_signals_false(self, event_store):
        assert await event_store.delete(12345) is False

    @pytest.mark.asyncio
    async def test_pair_can_be_stored_again_after_delete(self, event_store):
        saved = await event_store.save(_make_event("t-1"), [])
        await event_store.delete(saved.id)
        again = await event_store.save(_make_event("t-1"), [_ok("a")])
        assert again.id != saved.id


# ═══════════════════════════════════════════════════════════════════════════
# Section 3: Query
# ═══════════════════════════════════════════════════════════════════════════

class TestQuery:

    @pytest.fixture
    async def populated(self, event_store) -> EventStore:
        specs = [
            ("t-1", "ci", EventType.INFO, Severity.LOW, 0),
            ("t-2", "ci", EventType.ERROR, Severity.HIGH, 1),
            ("t-3", "deploy", EventType.SUCCESS, Severity.LOW, 2),
            ("t-4", "deploy", EventType.ERROR, Severity.CRITICAL, 3),
            ("t-5", "ci", EventType.WARNING, Severity.MEDIUM, 4),
        ]
        for trace_id, source, etype, sev, minutes in specs:
            await event_store.save(
                _make_event(
                    trace_id, source=source, event_type=etype, severity=sev,
                    timestamp=BASE_TIME + timedelta(minutes=minutes),
                ),
                [_ok("a")],
            )
        return event_store

    @pytest.mark.asyncio
    async def test_newest_first(self, populated):
        page = await populated.query()
        assert page.total == 5
        assert [r.trace_id for r in page.items] == ["t-5", "t-4", "t-3", "t-2", "t-1"]
        assert page.limit == 50
        assert page.offset == 0

    @pytest.mark.asyncio
    async def test_equal_timestamps_ordered_by_id(self, event_store):
        for trace_id in ("x", "y", "z"):
            await event_store.save(_make_event(trace_id), [])
        page = await event_store.query()
        assert [r.trace_id for r in page.items] == ["x", "y", "z"]

    @pytest.mark.asyncio
    async def test_filter_by_source(self, populated):
        page = await populated.query(EventFilters(source="deploy"))
        assert page.total == 2
        assert {r.trace_id for r in page.items} == {"t-3", "t-4"}

    @pytest.mark.asyncio
    async def test_filter_by_type_and_severity(self, populated):
        page = await populated.query(
            EventFilters(event_type=EventType.ERROR, severity=Severity.CRITICAL),
        )
        assert [r.trace_id for r in page.items] == ["t-4"]

    @pytest.mark.asyncio
    async def test_filter_with_plain_string_values(self, populated):
        page = await populated.query(EventFilters(event_type="error", severity="high"))
        assert [r.trace_id for r in page.items] == ["t-2"]

        page = await populated.query(EventFilters(
            timestamp_gte=(BASE_TIME + timedelta(minutes=3)).isoformat(),
        ))
        assert [r.trace_id for r in page.items] == ["t-5", "t-4"]

    @pytest.mark.asyncio
    async def test_timestamp_window_is_half_open(self, populated):
        page = await populated.query(EventFilters(
            timestamp_gte=BASE_TIME + timedelta(minutes=1),
            timestamp_lt=BASE_TIME + timedelta(minutes=3),
        ))
        assert [r.trace_id for r in page.items] == ["t-3", "t-2"]

    @pytest.mark.asyncio
    async def test_pagination_total_ignores_window(self, populated):
        page = await populated.query(EventFilters(limit=2, offset=1))
        assert page.total == 5
        assert [r.trace_id for r in page.items] == ["t-4", "t-3"]

    @pytest.mark.asyncio
    async def test_offset_past_end(self, populated):
        page = await populated.query(EventFilters(offset=10))
        assert page.total == 5
        assert page.items == []


# ═══════════════════════════════════════════════════════════════════════════
# Section 4: Subscriptions
# ═══════════════════════════════════════════════════════════════════════════

class TestSubscriptions:

    @pytest.mark.asyncio
    async def test_created_notification(self, event_store):
        queue = event_store.subscribe()
        record = await event_store.save(_make_event("t-1"), [_ok("a")])

        note = queue.get_nowait()
        assert isinstance(note, StoreNotification)
        assert note.kind is ChangeKind.CREATED
        assert note.record_id == record.id
        assert note.to_dict()["record"]["trace_id"] == "t-1"

    @pytest.mark.asyncio
    async def test_deleted_notification(self, event_store):
        record = await event_store.save(_make_event("t-1"), [])
        queue = event_store.subscribe()
        await event_store.delete(record.id)
        note = queue.get_nowait()
        assert note.kind is ChangeKind.DELETED
        assert note.to_dict() == {"kind": "deleted", "record_id": record.id}

    @pytest.mark.asyncio
    async def test_no_notification_for_failed_writes(self, event_store):
        await event_store.save(_make_event("t-1"), [])
        queue = event_store.subscribe()
        with pytest.raises(DuplicateEventError):
            await event_store.save(_make_event("t-1"), [])
        await event_store.delete(999)
        assert queue.empty()

    @pytest.mark.asyncio
    async def test_every_subscriber_notified(self, event_store):
        q1, q2 = event_store.subscribe(), event_store.subscribe()
        await event_store.save(_make_event("t-1"), [])
        assert q1.qsize() == 1
        assert q2.qsize() == 1

    @pytest.mark.asyncio
    async def test_full_queue_drops_without_blocking(self, storage):
        store = EventStore(storage, subscriber_queue_size=1)
        slow = store.subscribe()
        fast = store.subscribe()

        await store.save(_make_event("t-1"), [])
        fast.get_nowait()
        await asyncio.wait_for(store.save(_make_event("t-2"), []), timeout=2)

        assert slow.qsize() == 1
        assert fast.get_nowait().record.trace_id == "t-2"

    @pytest.mark.asyncio
    async def test_unsubscribe(self, event_store):
        queue = event_store.subscribe()
        event_store.unsubscribe(queue)
        event_store.unsubscribe(queue)
        assert event_store.subscriber_count == 0
        await event_store.save(_make_event("t-1"), [])
        assert queue.empty()


# ═══════════════════════════════════════════════════════════════════════════
# Section 5: Storage contract
# ═══════════════════════════════════════════════════════════════════════════

class TestSQLStorage:

    @pytest.mark.asyncio
    async def test_unknown_table(self, storage):
        with pytest.raises(StorageError):
            await storage.find_one("users", {"id": 1})

    @pytest.mark.asyncio
    async def test_unknown_column(self, storage):
        with pytest.raises(StorageError):
            await storage.find_one(EVENTS_TABLE, {"password": "x"})

    @pytest.mark.asyncio
    async def test_update_returns_row_count(self, event_store, storage):
        record = await event_store.save(_make_event("t-1"), [])
        changed = await storage.update(EVENTS_TABLE, {"id": record.id}, {"status": "success"})
        assert changed == 1
        assert (await event_store.get_by_id(record.id)).status is EventStatus.SUCCESS

    @pytest.mark.asyncio
    async def test_ping(self, storage):
        assert await storage.ping() is True
