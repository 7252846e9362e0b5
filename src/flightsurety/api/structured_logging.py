from __future__ import annotations

import logging
import os
import time
import uuid
from typing import Any, Dict, Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from flightsurety.runtime.runtime_logging import log_event

_ON = {"1", "true", "yes", "y", "on"}
_OFF = {"0", "false", "no", "n", "off"}
_LOGGED_HEADERS = ("user-agent", "content-type", "content-length", "x-forwarded-for")


def configure_structured_logging(level_name: Optional[str] = None) -> None:
    """Send every logger to stdout as one JSON object per line.

    Idempotent: a second call only adjusts the level.
    """
    name = (level_name or os.environ.get("FLIGHTSURETY_LOG_LEVEL") or "INFO").strip().upper()
    level = logging.getLevelName(name)
    if not isinstance(level, int):
        level = logging.INFO

    root = logging.getLogger()
    root.setLevel(level)
    if getattr(root, "_flightsurety_configured", False):
        return

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(message)s"))
    root.handlers = [handler]
    root._flightsurety_configured = True  # type: ignore[attr-defined]


class RequestLogMiddleware(BaseHTTPMiddleware):
    """One `http_request` line per request, tagged with an x-request-id.

    FLIGHTSURETY_LOG_REQUESTS=0 turns it off; FLIGHTSURETY_LOG_REQUEST_HEADERS=1
    adds a few request headers.
    """

    def __init__(self, app) -> None:
        super().__init__(app)
        self._enabled = (os.environ.get("FLIGHTSURETY_LOG_REQUESTS") or "1").strip().lower() not in _OFF
        self._with_headers = (os.environ.get("FLIGHTSURETY_LOG_REQUEST_HEADERS") or "").strip().lower() in _ON
        self._log = logging.getLogger("flightsurety.http")

    def _headers(self, request: Request) -> Dict[str, Any]:
        if not self._with_headers:
            return {}
        return {h: request.headers[h] for h in _LOGGED_HEADERS if request.headers.get(h)}

    async def dispatch(self, request: Request, call_next):
        if not self._enabled:
            return await call_next(request)

        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
        request.state.request_id = request_id
        t0 = time.monotonic()
        status = 500
        error: Optional[str] = None
        try:
            response = await call_next(request)
            status = response.status_code
            response.headers.setdefault("x-request-id", request_id)
            return response
        except Exception as e:
            error = type(e).__name__
            raise
        finally:
            log_event(
                self._log,
                "http_request",
                request_id=request_id,
                method=request.method,
                path=request.url.path,
                status=status,
                duration_ms=int((time.monotonic() - t0) * 1000),
                client=request.client.host if request.client else "",
                headers=self._headers(request),
                error=error,
            )
