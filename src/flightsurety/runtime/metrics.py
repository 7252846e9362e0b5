from __future__ import annotations

"""Process-local counters and gauges for the oracle service.

Always collected; exposure over HTTP is opt-in (FLIGHTSURETY_METRICS_ENABLED).
"""

import os
import threading
import time
from typing import Dict, List

_lock = threading.Lock()
_counters: Dict[str, int] = {}
_gauges: Dict[str, int] = {}
_STARTED_MS = int(time.time() * 1000)


def metrics_enabled() -> bool:
    return (os.environ.get("FLIGHTSURETY_METRICS_ENABLED") or "").strip().lower() in {"1", "true", "yes", "y", "on"}


def inc_counter(name: str, value: int = 1) -> None:
    key = str(name or "").strip()
    if key:
        with _lock:
            _counters[key] = _counters.get(key, 0) + int(value)


def set_gauge(name: str, value: int) -> None:
    key = str(name or "").strip()
    if key:
        with _lock:
            _gauges[key] = int(value)


def get_counter(name: str) -> int:
    with _lock:
        return _counters.get(str(name), 0)


def reset() -> None:
    with _lock:
        _counters.clear()
        _gauges.clear()


def snapshot() -> dict:
    now = int(time.time() * 1000)
    with _lock:
        return {
            "uptime_ms": now - _STARTED_MS,
            "counters": dict(_counters),
            "gauges": dict(_gauges),
        }


def format_prometheus(prefix: str = "flightsurety_") -> str:
    snap = snapshot()
    out: List[str] = [f"{prefix}uptime_ms {snap['uptime_ms']}"]
    for kind, values in (("counter", snap["counters"]), ("gauge", snap["gauges"])):
        for name in sorted(values):
            out.append(f"# TYPE {prefix}{name} {kind}")
            out.append(f"{prefix}{name} {values[name]}")
    return "\n".join(out) + "\n"
