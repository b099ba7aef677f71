from __future__ import annotations

import os
from pathlib import Path

MEMORY_PATH = ":memory:"


def _repo_root() -> Path:
    return Path(__file__).resolve().parents[2]


def tile_cache_path() -> str:
    # Kept under the repo by default so it's easy to inspect (and stays local).
    return os.getenv("URBANGREEN_TILE_CACHE_PATH") or str(
        _repo_root() / "data" / "cache" / "tiles.duckdb"
    )


def tile_cache_enabled() -> bool:
    v = (os.getenv("URBANGREEN_TILE_CACHE") or "1").strip().lower()
    return v not in {"0", "false", "no", "off"}
