"""Shared fixtures: a manual clock, recorded sleeps, and a throwaway SQLite store."""

from __future__ import annotations

from typing import List

import pytest

from notihub.dispatch.event_store import EventStore
from notihub.dispatch.storage import SQLStorage


class FakeClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordedSleep:
    """Awaitable stand-in for asyncio.sleep that only records delays."""

    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def recorded_sleep() -> RecordedSleep:
    return RecordedSleep()


@pytest.fixture
def db_url(tmp_path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'events.db'}"


@pytest.fixture
async def storage(db_url):
    store = SQLStorage(db_url)
    await store.init()
    yield store
    await store.close()


@pytest.fixture
async def event_store(storage) -> EventStore:
    return EventStore(storage, subscriber_queue_size=10)
