from __future__ import annotations

import asyncio

from loader.registry import LoaderRegistry
from loader.viewport import ViewportDataLoader
from tilecache.store import TileCache


class NoFetch:
    async def fetch_category(self, bbox, zoom, category, options, token):
        return []


class TrackedLoader(ViewportDataLoader):
    def __init__(self, cache: TileCache) -> None:
        super().__init__(NoFetch(), cache)
        self.closed = False

    async def aclose(self) -> None:
        self.closed = True
        await super().aclose()


def test_least_recently_used_session_is_evicted_and_closed():
    created: list[TrackedLoader] = []

    def make(cache: TileCache) -> TrackedLoader:
        loader = TrackedLoader(cache)
        created.append(loader)
        return loader

    async def scenario():
        registry = LoaderRegistry(cache=TileCache(conn=None), make_loader=make, max_sessions=2)
        a = await registry.get("a")
        await registry.get("b")
        # Touching "a" makes "b" the oldest.
        assert await registry.get("a") is a
        await registry.get("c")
        return registry

    registry = asyncio.run(scenario())
    assert list(registry.loaders) == ["a", "c"]
    assert len(created) == 3
    assert [loader.closed for loader in created] == [False, True, False]


def test_many_sessions_stay_bounded():
    async def scenario():
        registry = LoaderRegistry(
            cache=TileCache(conn=None),
            make_loader=lambda cache: ViewportDataLoader(NoFetch(), cache),
            max_sessions=8,
        )
        for i in range(300):
            await registry.get(f"session-{i}")
        return registry

    registry = asyncio.run(scenario())
    assert len(registry.loaders) == 8
    assert "session-299" in registry.loaders


def test_blank_session_maps_to_default():
    async def scenario():
        registry = LoaderRegistry(
            cache=TileCache(conn=None),
            make_loader=lambda cache: ViewportDataLoader(NoFetch(), cache),
        )
        return await registry.get("  "), await registry.get("default")

    first, second = asyncio.run(scenario())
    assert first is second


def test_default_loaders_share_one_http_client():
    async def scenario():
        registry = LoaderRegistry(cache=TileCache(conn=None), max_sessions=4)
        a = await registry.get("a")
        b = await registry.get("b")
        client = a.fetcher.client
        shared = client is b.fetcher.client
        await registry.aclose()
        return shared, client, registry

    shared, client, registry = asyncio.run(scenario())
    assert shared
    assert client.is_closed
    assert registry.loaders == {}


def test_max_sessions_from_env(monkeypatch):
    monkeypatch.setenv("URBANGREEN_MAX_SESSIONS", "3")
    assert LoaderRegistry(cache=TileCache(conn=None)).max_sessions == 3
    monkeypatch.setenv("URBANGREEN_MAX_SESSIONS", "lots")
    assert LoaderRegistry(cache=TileCache(conn=None)).max_sessions == 64
