from __future__ import annotations

import os

DEFAULT_API_BASE = "https://api.tourism.testingmachine.eu"
RESOURCE_PATH = "/v1/UrbanGreen"


def api_base() -> str:
    return (os.getenv("URBANGREEN_API_BASE") or DEFAULT_API_BASE).strip().rstrip("/")


def api_language() -> str:
    return (os.getenv("URBANGREEN_LANG") or "en").strip().lower() or "en"


def http_timeout_s() -> float | None:
    """
    None means no client-side timeout; a hung request is ended by the next viewport move.
    """
    raw = (os.getenv("URBANGREEN_HTTP_TIMEOUT_S") or "").strip()
    if raw:
        try:
            return float(raw)
        except Exception:
            pass
    return None
