from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Callable

import httpx
import structlog

from loader.config import max_sessions as configured_max_sessions
from loader.viewport import ViewportDataLoader
from remote.config import http_timeout_s
from remote.fetcher import PaginatedFetcher
from tilecache.store import TileCache

logger = structlog.get_logger(__name__)


@dataclass
class LoaderRegistry:
    """
    One loader per map session, all sharing a single tile cache and HTTP client.

    A load supersedes the previous load of the same loader, so independent map clients
    must not share one. At most `max_sessions` loaders are kept; the least recently used
    one is closed to make room.
    """

    cache: TileCache
    # Defaults to a PaginatedFetcher over the shared client.
    make_loader: Callable[[TileCache], ViewportDataLoader] | None = None
    max_sessions: int = field(default_factory=configured_max_sessions)
    loaders: "OrderedDict[str, ViewportDataLoader]" = field(default_factory=OrderedDict)
    _client: httpx.AsyncClient | None = field(default=None, repr=False)

    async def get(self, session: str) -> ViewportDataLoader:
        sid = (session or "").strip() or "default"
        loader = self.loaders.get(sid)
        if loader is not None:
            self.loaders.move_to_end(sid)
            return loader

        while len(self.loaders) >= max(1, self.max_sessions):
            old_sid, old = self.loaders.popitem(last=False)
            logger.info("evicting idle session loader", session=old_sid)
            await old.aclose()

        loader = self._new_loader()
        self.loaders[sid] = loader
        return loader

    def _new_loader(self) -> ViewportDataLoader:
        if self.make_loader is not None:
            return self.make_loader(self.cache)
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=http_timeout_s())
        return ViewportDataLoader(PaginatedFetcher(self._client), self.cache)

    async def aclose(self) -> None:
        loaders, self.loaders = list(self.loaders.values()), OrderedDict()
        for loader in loaders:
            await loader.aclose()
        if self._client is not None:
            await self._client.aclose()
            self._client = None
        self.cache.close()
