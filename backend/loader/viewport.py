from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Protocol

import structlog

from geo.aoi import BBox
from geo.tiles import tile_key
from layers.types import Feature, LoadOptions
from lod.policy import categories_for_zoom
from remote.cancel import CancellationToken
from tilecache.store import TileCache

logger = structlog.get_logger(__name__)


class CategoryFetcher(Protocol):
    """
    What the loader needs from a fetcher.

    - PaginatedFetcher: pages through the remote API
    - tests: in-process fakes
    """

    async def fetch_category(
        self,
        bbox: BBox,
        zoom: float,
        category: str,
        options: LoadOptions | None,
        token: CancellationToken,
    ) -> list[Feature]: ...


@dataclass(eq=False)
class _InflightFetch:
    # Tile key, plus the option variant for fetches that bypass the cache.
    key: str
    token: CancellationToken
    task: "asyncio.Task[list[Feature]]"
    # Generations of the loads still waiting on this fetch.
    waiters: set[int] = field(default_factory=set)


@dataclass
class _ViewportLoad:
    generation: int
    entries: list[_InflightFetch] = field(default_factory=list)


class ViewportDataLoader:
    """
    Loads the features for a map view, one tile key per category.

    Per call:
    - cache hit -> cached features
    - miss -> join the in-flight fetch for the same tile key, or start one
    - the previous call's fetches are cancelled unless this call joined them
    - the result is returned only if no newer call started meanwhile (else None)

    Calls with non-default `LoadOptions` skip the cache and only join fetches made with
    the same options.
    """

    def __init__(self, fetcher: CategoryFetcher, cache: TileCache) -> None:
        self.fetcher = fetcher
        self.cache = cache
        self._inflight: dict[str, _InflightFetch] = {}
        self._generation = 0
        self._current: _ViewportLoad | None = None

    def inflight_keys(self) -> list[str]:
        return sorted(self._inflight.keys())

    def abort_all(self) -> None:
        """
        Cancel the current load, e.g. when the map starts moving.

        Its result will be discarded; fetches no other load waits on are aborted.
        """
        current, self._current = self._current, None
        if current is not None:
            self._release(current)
        self._generation += 1

    async def load_viewport_data(
        self,
        bbox: BBox,
        zoom: float,
        category: str | None = None,
        options: LoadOptions | None = None,
    ) -> list[Feature] | None:
        started = time.perf_counter()
        opts = options or LoadOptions()

        self._generation += 1
        generation = self._generation
        load = _ViewportLoad(generation=generation)

        categories = categories_for_zoom(zoom, category)
        log = logger.bind(generation=generation, zoom=round(float(zoom), 2))
        log.debug("loading viewport", categories=categories, shareable=opts.shareable)

        # Everything up to the gather runs without yielding, so joining shared fetches
        # happens before the previous load lets go of them.
        sources: list[list[Feature] | _InflightFetch] = []
        for cat in categories:
            key = tile_key(bbox, zoom, cat)
            if opts.shareable:
                cached = self.cache.get(key)
                if cached is not None:
                    log.debug("cache hit", tile_key=key, features=len(cached))
                    sources.append(cached)
                    continue
            else:
                key = f"{key}?{opts.variant()}"
            entry = self._join_or_start(key, bbox, zoom, cat, opts)
            entry.waiters.add(generation)
            load.entries.append(entry)
            sources.append(entry)

        previous, self._current = self._current, load
        if previous is not None:
            self._release(previous)

        try:
            results = await asyncio.gather(*(self._await_source(s) for s in sources))
        except asyncio.CancelledError:
            self._release(load)
            if self._current is load:
                self._current = None
            raise

        if self._current is load:
            self._current = None

        if generation != self._generation:
            log.debug("stale viewport result discarded", latest=self._generation)
            return None

        features = [f for r in results for f in r]
        log.info(
            "viewport loaded",
            features=len(features),
            categories=len(categories),
            elapsed_ms=round((time.perf_counter() - started) * 1000.0, 1),
        )
        return features

    def clear_cache(self) -> None:
        self.cache.clear()

    def get_cache_stats(self) -> dict[str, int]:
        return self.cache.stats()

    async def aclose(self) -> None:
        self.abort_all()
        tasks = [e.task for e in self._inflight.values()]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def _join_or_start(
        self, key: str, bbox: BBox, zoom: float, category: str, opts: LoadOptions
    ) -> _InflightFetch:
        entry = self._inflight.get(key)
        if entry is not None and not entry.token.cancelled:
            logger.debug("joining in-flight fetch", tile_key=key)
            return entry

        # A cancelled fetch may still be unwinding; never hand out its partial data.
        token = CancellationToken()
        task = asyncio.create_task(self._run_fetch(key, token, bbox, zoom, category, opts))
        entry = _InflightFetch(key=key, token=token, task=task)
        self._inflight[key] = entry
        return entry

    async def _run_fetch(
        self,
        key: str,
        token: CancellationToken,
        bbox: BBox,
        zoom: float,
        category: str,
        opts: LoadOptions,
    ) -> list[Feature]:
        try:
            features = await self.fetcher.fetch_category(bbox, zoom, category, opts, token)
            if token.cancelled:
                logger.debug("fetch cancelled, partial data not cached", tile_key=key)
                return []
            if opts.shareable:
                # Cached even if every waiting load was superseded.
                self.cache.put(
                    key,
                    features,
                    {"bounds": bbox.as_dict(), "zoom": float(zoom), "category": category},
                )
            return features
        except Exception:
            logger.exception("tile fetch failed", tile_key=key)
            return []
        finally:
            entry = self._inflight.get(key)
            if entry is not None and entry.token is token:
                del self._inflight[key]

    async def _await_source(self, source: list[Feature] | _InflightFetch) -> list[Feature]:
        if isinstance(source, list):
            return source
        # Shielded: cancelling one waiter must not kill a fetch others share.
        return await asyncio.shield(source.task)

    def _release(self, load: _ViewportLoad) -> None:
        for entry in load.entries:
            entry.waiters.discard(load.generation)
            if not entry.waiters and not entry.token.cancelled:
                logger.debug("cancelling unneeded fetch", tile_key=entry.key)
                entry.token.cancel()
