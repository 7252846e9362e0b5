from __future__ import annotations

import time

from fastapi import APIRouter, Request

router = APIRouter()

_STARTED_MS = int(time.time() * 1000)


@router.get("/health")
def health(request: Request) -> dict:
    """Liveness: the process is up. Never touches the service."""
    svc = getattr(request.app.state, "service", None)
    return {
        "ok": True,
        "service_attached": svc is not None,
        "uptime_ms": int(time.time() * 1000) - _STARTED_MS,
    }
