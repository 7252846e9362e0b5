from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Request

from flightsurety.api.routes_parts.common import _env_int, _service

router = APIRouter()


def _int_param(v: Any, default: int) -> int:
    if v is None:
        return int(default)
    try:
        s = str(v).strip()
        return int(s) if s else int(default)
    except ValueError:
        return int(default)


@router.get("/events")
def list_events(request: Request, since: Optional[str] = None, limit: Optional[str] = None, kind: Optional[str] = None) -> dict:
    """Read the event log after `since` (exclusive), oldest first."""
    svc = _service(request)
    max_limit = max(1, _env_int("FLIGHTSURETY_EVENTS_MAX_LIMIT", 1000))
    lim = min(max(1, _int_param(limit, 100)), max_limit)
    evs = svc.events.read(since_seq=max(0, _int_param(since, 0)), limit=None if kind else lim)
    if kind:
        evs = [e for e in evs if e.kind == kind][:lim]
    return {
        "ok": True,
        "events": [e.to_json() for e in evs],
        "next": evs[-1].seq if evs else max(0, _int_param(since, 0)),
    }
