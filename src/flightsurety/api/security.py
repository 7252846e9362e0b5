from __future__ import annotations

import os
from typing import Optional, Tuple

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

DEFAULT_MAX_REQUEST_BYTES = 64_000


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """Reject oversized bodies with 413 before they reach a route.

    FLIGHTSURETY_MAX_REQUEST_BYTES sets the cap; FLIGHTSURETY_SIZE_LIMIT_DISABLE=1
    turns the check off.
    """

    def __init__(
        self,
        app,
        *,
        max_bytes: Optional[int] = None,
        exempt_prefixes: Tuple[str, ...] = ("/docs", "/openapi.json", "/v1/health"),
    ) -> None:
        super().__init__(app)
        disabled = (os.environ.get("FLIGHTSURETY_SIZE_LIMIT_DISABLE") or "").strip().lower()
        self._enabled = disabled not in {"1", "true", "yes", "y", "on"}
        if max_bytes is None:
            raw = (os.environ.get("FLIGHTSURETY_MAX_REQUEST_BYTES") or "").strip()
            max_bytes = int(raw) if raw.isdigit() else DEFAULT_MAX_REQUEST_BYTES
        self._max_bytes = int(max_bytes)
        self._exempt = exempt_prefixes

    def _reject(self, size: int) -> JSONResponse:
        return JSONResponse(
            status_code=413,
            content={
                "ok": False,
                "error": {
                    "code": "request_too_large",
                    "message": "request body too large",
                    "details": {"bytes": size, "max_bytes": self._max_bytes},
                },
            },
        )

    async def dispatch(self, request: Request, call_next):
        if not self._enabled or request.url.path.startswith(self._exempt):
            return await call_next(request)

        declared = request.headers.get("content-length", "")
        if declared.isdigit() and int(declared) > self._max_bytes:
            return self._reject(int(declared))

        if request.method.upper() in {"POST", "PUT", "PATCH"}:
            body = await request.body()
            if len(body) > self._max_bytes:
                return self._reject(len(body))

        return await call_next(request)
