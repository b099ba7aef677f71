from __future__ import annotations

import os

DEFAULT_MAX_SESSIONS = 64


def max_sessions() -> int:
    """
    How many map sessions keep a loader before the least recently used one is closed.
    """
    raw = (os.getenv("URBANGREEN_MAX_SESSIONS") or "").strip()
    if raw:
        try:
            return max(1, int(raw))
        except ValueError:
            pass
    return DEFAULT_MAX_SESSIONS
