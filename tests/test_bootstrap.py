"""
test_bootstrap.py — Tests for NotiHub assembly.

Run with:
    pytest tests/test_bootstrap.py -v
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from notihub import bootstrap
from notihub.core.cache import CacheBackend
from notihub.core.config import Settings
from notihub.core.errors import StorageError
from notihub.dispatch.channels import ConsoleChannel


def _settings(tmp_path, **overrides) -> Settings:
    values = dict(DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'hub.db'}")
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def created_clients(monkeypatch):
    clients = []
    real_client = httpx.AsyncClient

    def factory(**kwargs):
        client = real_client(**kwargs)
        clients.append(client)
        return client

    monkeypatch.setattr(bootstrap.httpx, "AsyncClient", factory)
    return clients


@pytest.fixture
def cache(monkeypatch):
    mock = AsyncMock(spec=CacheBackend)
    monkeypatch.setattr(bootstrap, "build_cache", lambda settings: mock)
    return mock


class TestBuildHub:

    @pytest.mark.asyncio
    async def test_builds_and_closes(self, tmp_path):
        hub = await bootstrap.build_hub(_settings(tmp_path), channels=[ConsoleChannel()])
        assert hub.dispatcher.channel_names == ["console"]
        assert hub.event_store is not None
        await hub.close()
        assert hub.http_client.is_closed

    @pytest.mark.asyncio
    async def test_storage_init_failure_releases_resources(
        self, tmp_path, created_clients, cache,
    ):
        storage = MagicMock()
        storage.init = AsyncMock(side_effect=StorageError("disk full"))

        with pytest.raises(StorageError):
            await bootstrap.build_hub(
                _settings(tmp_path), channels=[ConsoleChannel()], storage=storage,
            )

        assert len(created_clients) == 1
        assert created_clients[0].is_closed
        cache.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_persistence_disabled_skips_storage(self, tmp_path):
        storage = MagicMock()
        storage.init = AsyncMock()
        hub = await bootstrap.build_hub(
            _settings(tmp_path, PERSISTENCE_ENABLED=False),
            channels=[ConsoleChannel()],
            storage=storage,
        )
        storage.init.assert_not_awaited()
        assert hub.storage is None
        await hub.close()
