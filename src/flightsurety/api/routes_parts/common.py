from __future__ import annotations

import os

from fastapi import Request

from flightsurety.api.errors import ApiError
from flightsurety.runtime.service import FlightSuretyService


def _service(request: Request) -> FlightSuretyService:
    svc = getattr(request.app.state, "service", None)
    if svc is None:
        raise ApiError.internal("not_ready", "service not attached to app.state", {})
    return svc


def _env_int(name: str, default: int) -> int:
    try:
        v = str(os.environ.get(name, "") or "").strip()
        return int(v) if v else int(default)
    except Exception:
        return int(default)
