from __future__ import annotations

import duckdb

from layers.types import Feature
from tilecache.store import CACHE_TTL_MS, TileCache, open_tile_cache

KEY = "urbangreen:v2:14:8708:5814:1"
OTHER = "urbangreen:v2:14:8708:5814:3"
T0 = 1_700_000_000_000


def _features(n: int = 2) -> list[Feature]:
    return [
        Feature(
            geometry={"type": "Point", "coordinates": [11.35 + i * 0.001, 46.49]},
            properties={"id": f"UG-{i}", "category": "1"},
        )
        for i in range(n)
    ]


class Clock:
    def __init__(self, now: int) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now


def test_put_then_get_round_trips_features():
    cache = open_tile_cache(":memory:", now_ms=Clock(T0))
    cache.put(KEY, _features(), {"zoom": 14.2, "category": "1"})
    got = cache.get(KEY)
    assert got == _features()
    assert cache.get(OTHER) is None


def test_put_records_key_parts():
    cache = open_tile_cache(":memory:", now_ms=Clock(T0))
    cache.put(KEY, _features(1), {"zoom": 14.2})
    row = cache.conn.execute(
        "select z, x, y, category, ts_ms from tiles where tile_key = ?", [KEY]
    ).fetchone()
    assert row == (14, 8708, 5814, "1", T0)


def test_put_replaces_existing_record():
    cache = open_tile_cache(":memory:", now_ms=Clock(T0))
    cache.put(KEY, _features(3))
    cache.put(KEY, _features(1))
    assert len(cache.get(KEY)) == 1
    assert cache.stats() == {"totalRecords": 1}


def test_expired_record_is_a_miss_and_is_removed():
    clock = Clock(T0)
    cache = open_tile_cache(":memory:", now_ms=clock)
    cache.put(KEY, _features())

    clock.now = T0 + CACHE_TTL_MS
    assert cache.get(KEY) is not None

    clock.now = T0 + CACHE_TTL_MS + 1
    assert cache.get(KEY) is None
    assert cache.stats() == {"totalRecords": 0}


def test_purge_expired_removes_only_old_tiles():
    clock = Clock(T0)
    cache = open_tile_cache(":memory:", now_ms=clock)
    cache.put(KEY, _features())
    clock.now = T0 + CACHE_TTL_MS // 2
    cache.put(OTHER, _features())

    clock.now = T0 + CACHE_TTL_MS + 1
    assert cache.purge_expired() == 1
    assert cache.get(OTHER) is not None


def test_delete_clear_and_stats():
    cache = open_tile_cache(":memory:", now_ms=Clock(T0))
    cache.put(KEY, _features())
    cache.put(OTHER, _features())
    assert cache.stats() == {"totalRecords": 2}

    cache.delete(KEY)
    assert cache.get(KEY) is None
    assert cache.stats() == {"totalRecords": 1}

    cache.clear()
    assert cache.stats() == {"totalRecords": 0}


def test_stats_does_not_evict():
    clock = Clock(T0)
    cache = open_tile_cache(":memory:", now_ms=clock)
    cache.put(KEY, _features())
    clock.now = T0 + CACHE_TTL_MS + 1
    assert cache.stats() == {"totalRecords": 1}


def test_schema_version_bump_drops_old_tiles(tmp_path):
    path = tmp_path / "tiles.duckdb"
    cache = open_tile_cache(path, now_ms=Clock(T0))
    cache.put(KEY, _features())
    cache.close()

    conn = duckdb.connect(str(path))
    conn.execute("update cache_meta set value = '1' where key = 'schema_version'")
    conn.close()

    reopened = open_tile_cache(path, now_ms=Clock(T0))
    assert reopened.available
    assert reopened.stats() == {"totalRecords": 0}
    reopened.close()


def test_cache_survives_reopen(tmp_path):
    path = tmp_path / "tiles.duckdb"
    cache = open_tile_cache(path, now_ms=Clock(T0))
    cache.put(KEY, _features())
    cache.close()

    reopened = open_tile_cache(path, now_ms=Clock(T0 + 1000))
    assert reopened.get(KEY) == _features()
    reopened.close()


def test_unavailable_storage_is_a_silent_no_op(tmp_path):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("x", encoding="utf-8")

    cache = open_tile_cache(blocker / "tiles.duckdb")
    assert not cache.available
    cache.put(KEY, _features())
    assert cache.get(KEY) is None
    cache.delete(KEY)
    cache.clear()
    assert cache.stats() == {"totalRecords": 0}


def test_disabled_by_env(monkeypatch, tmp_path):
    monkeypatch.setenv("URBANGREEN_TILE_CACHE", "off")
    cache = open_tile_cache(tmp_path / "tiles.duckdb")
    assert not cache.available
    assert not (tmp_path / "tiles.duckdb").exists()


def test_noop_cache_direct():
    cache = TileCache(conn=None)
    assert cache.get(KEY) is None
    assert cache.purge_expired() == 0
