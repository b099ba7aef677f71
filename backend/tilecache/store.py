from __future__ import annotations

import json
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

import duckdb
import structlog

from geo.tiles import parse_tile_key
from layers.types import Feature
from tilecache.config import MEMORY_PATH, tile_cache_enabled, tile_cache_path
from tilecache.sql import (
    CLEAR_TILES_SQL,
    COUNT_EXPIRED_SQL,
    COUNT_TILES_SQL,
    CREATE_META_TABLE_SQL,
    CREATE_TILES_TABLE_SQL,
    DELETE_EXPIRED_SQL,
    DELETE_TILE_SQL,
    DROP_TILES_TABLE_SQL,
    SELECT_SCHEMA_VERSION_SQL,
    SELECT_TILE_SQL,
    UPSERT_SCHEMA_VERSION_SQL,
    UPSERT_TILE_SQL,
)

logger = structlog.get_logger(__name__)

CACHE_TTL_MS = 7 * 24 * 60 * 60 * 1000  # 7 days

# Bumping this drops every tile stored under an older layout.
CACHE_SCHEMA_VERSION = 2


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class TileCache:
    """
    Tile key -> decoded features, persisted in a local DuckDB file.

    With `conn=None` the cache is a permanent miss and every write is a no-op; that's
    what callers get when storage is disabled or can't be opened.
    """

    conn: duckdb.DuckDBPyConnection | None
    path: str | None = None
    ttl_ms: int = CACHE_TTL_MS
    now_ms: Callable[[], int] = field(default=_now_ms, repr=False)
    _lock: threading.RLock = field(default_factory=threading.RLock, repr=False)

    @property
    def available(self) -> bool:
        return self.conn is not None

    def ensure_schema(self) -> None:
        if self.conn is None:
            return
        with self._lock:
            self.conn.execute(CREATE_META_TABLE_SQL)
            row = self.conn.execute(SELECT_SCHEMA_VERSION_SQL).fetchone()
            if row is None or str(row[0]) != str(CACHE_SCHEMA_VERSION):
                if row is not None:
                    logger.info(
                        "tile cache schema changed, dropping tiles",
                        old=row[0],
                        new=CACHE_SCHEMA_VERSION,
                    )
                self.conn.execute(DROP_TILES_TABLE_SQL)
                self.conn.execute(UPSERT_SCHEMA_VERSION_SQL, [str(CACHE_SCHEMA_VERSION)])
            self.conn.execute(CREATE_TILES_TABLE_SQL)

    def get(self, tile_key: str) -> list[Feature] | None:
        if self.conn is None:
            return None
        try:
            with self._lock:
                row = self.conn.execute(SELECT_TILE_SQL, [tile_key]).fetchone()
        except duckdb.Error as exc:
            logger.error("tile cache read failed", tile_key=tile_key, error=str(exc))
            return None
        if row is None:
            return None

        features_json, ts_ms = row
        if self.now_ms() - int(ts_ms) > self.ttl_ms:
            # Delete on read so stale tiles don't pile up.
            self.delete(tile_key)
            return None

        try:
            return [Feature.from_geojson(o) for o in json.loads(features_json)]
        except (ValueError, KeyError, TypeError):
            logger.warning("corrupt tile cache record dropped", tile_key=tile_key)
            self.delete(tile_key)
            return None

    def put(self, tile_key: str, features: list[Feature], metadata: dict[str, Any] | None = None) -> None:
        if self.conn is None:
            return
        parts = parse_tile_key(tile_key)
        row = [
            tile_key,
            parts.z,
            parts.x,
            parts.y,
            parts.category,
            json.dumps([f.to_geojson() for f in features], ensure_ascii=False),
            json.dumps(metadata or {}, ensure_ascii=False),
            int(self.now_ms()),
        ]
        try:
            with self._lock:
                self.conn.execute(UPSERT_TILE_SQL, row)
        except duckdb.Error as exc:
            logger.error("tile cache write failed", tile_key=tile_key, error=str(exc))

    def delete(self, tile_key: str) -> None:
        self._execute(DELETE_TILE_SQL, [tile_key])

    def clear(self) -> None:
        self._execute(CLEAR_TILES_SQL)

    def stats(self) -> dict[str, int]:
        if self.conn is None:
            return {"totalRecords": 0}
        try:
            with self._lock:
                row = self.conn.execute(COUNT_TILES_SQL).fetchone()
        except duckdb.Error as exc:
            logger.error("tile cache stats failed", error=str(exc))
            return {"totalRecords": 0}
        return {"totalRecords": int(row[0]) if row else 0}

    def purge_expired(self) -> int:
        """
        Bulk-remove expired tiles. Returns how many were removed.
        """
        if self.conn is None:
            return 0
        cutoff = int(self.now_ms()) - int(self.ttl_ms)
        try:
            with self._lock:
                n = int(self.conn.execute(COUNT_EXPIRED_SQL, [cutoff]).fetchone()[0])
                if n:
                    self.conn.execute(DELETE_EXPIRED_SQL, [cutoff])
        except duckdb.Error as exc:
            logger.error("tile cache purge failed", error=str(exc))
            return 0
        return n

    def close(self) -> None:
        with self._lock:
            if self.conn is not None:
                try:
                    self.conn.close()
                except duckdb.Error:
                    pass
                self.conn = None

    def _execute(self, sql: str, params: list[Any] | None = None) -> None:
        if self.conn is None:
            return
        try:
            with self._lock:
                if params:
                    self.conn.execute(sql, params)
                else:
                    self.conn.execute(sql)
        except duckdb.Error as exc:
            logger.error("tile cache statement failed", error=str(exc))


def open_tile_cache(
    path: str | Path | None = None,
    *,
    now_ms: Callable[[], int] | None = None,
    ttl_ms: int = CACHE_TTL_MS,
) -> TileCache:
    """
    Open (or create) the cache; falls back to a no-op cache instead of raising.
    """
    clock = now_ms or _now_ms
    if not tile_cache_enabled():
        return TileCache(conn=None, ttl_ms=ttl_ms, now_ms=clock)

    target = str(path or tile_cache_path())
    try:
        if target != MEMORY_PATH:
            Path(target).parent.mkdir(parents=True, exist_ok=True)
        conn = duckdb.connect(target)
    except (duckdb.Error, OSError) as exc:
        logger.warning("tile cache unavailable, running without it", path=target, error=str(exc))
        return TileCache(conn=None, ttl_ms=ttl_ms, now_ms=clock)

    cache = TileCache(conn=conn, path=target, ttl_ms=ttl_ms, now_ms=clock)
    try:
        cache.ensure_schema()
    except duckdb.Error as exc:
        logger.warning("tile cache schema setup failed, running without it", path=target, error=str(exc))
        cache.close()
        return TileCache(conn=None, ttl_ms=ttl_ms, now_ms=clock)

    purged = cache.purge_expired()
    if purged:
        logger.info("purged expired tiles", count=purged)
    return cache
