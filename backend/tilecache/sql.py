from __future__ import annotations

CREATE_META_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS cache_meta (
  key TEXT PRIMARY KEY,
  value TEXT
);
"""

SELECT_SCHEMA_VERSION_SQL = """
SELECT value FROM cache_meta WHERE key = 'schema_version'
"""

UPSERT_SCHEMA_VERSION_SQL = """
INSERT OR REPLACE INTO cache_meta (key, value) VALUES ('schema_version', ?)
"""

DROP_TILES_TABLE_SQL = "DROP TABLE IF EXISTS tiles;"

CREATE_TILES_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS tiles (
  tile_key TEXT PRIMARY KEY,
  z INTEGER,
  x INTEGER,
  y INTEGER,
  category TEXT,
  features_json TEXT,
  metadata_json TEXT,
  ts_ms BIGINT
);
"""

SELECT_TILE_SQL = """
SELECT features_json, ts_ms FROM tiles WHERE tile_key = ?
"""

UPSERT_TILE_SQL = """
INSERT OR REPLACE INTO tiles
  (tile_key, z, x, y, category, features_json, metadata_json, ts_ms)
VALUES (?, ?, ?, ?, ?, ?, ?, ?)
"""

DELETE_TILE_SQL = "DELETE FROM tiles WHERE tile_key = ?"

CLEAR_TILES_SQL = "DELETE FROM tiles"

COUNT_TILES_SQL = "SELECT COUNT(*) FROM tiles"

DELETE_EXPIRED_SQL = "DELETE FROM tiles WHERE ts_ms < ?"

COUNT_EXPIRED_SQL = "SELECT COUNT(*) FROM tiles WHERE ts_ms < ?"
