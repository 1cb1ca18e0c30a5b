from __future__ import annotations

import threading
import time
from collections import deque
from typing import Any

MAX_EVENTS = 10_000

_events: deque[dict[str, Any]] = deque(maxlen=MAX_EVENTS)
_lock = threading.Lock()


def record_event(event_type: str, data: dict[str, Any]) -> None:
    """Append one outcome to the log; the oldest entries roll off."""
    with _lock:
        _events.append({"type": event_type, "timestamp": time.time(), **data})


def get_events(event_type: str | None = None) -> list[dict[str, Any]]:
    with _lock:
        if event_type is None:
            return list(_events)
        return [e for e in _events if e["type"] == event_type]


def clear_events() -> None:
    with _lock:
        _events.clear()
