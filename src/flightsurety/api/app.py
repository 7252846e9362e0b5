from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from flightsurety.api.errors import install_error_handlers
from flightsurety.api.routes import public_router
from flightsurety.api.security import RequestSizeLimitMiddleware
from flightsurety.api.structured_logging import RequestLogMiddleware
from flightsurety.runtime.config import load_oracle_config
from flightsurety.runtime.errors import FlightSuretyError
from flightsurety.runtime.replay import load_service
from flightsurety.runtime.runtime_logging import log_event
from flightsurety.runtime.service import FlightSuretyService

log = logging.getLogger("flightsurety.api")


def build_service() -> FlightSuretyService:
    """Build the service for an API process.

    Resumes from the configured event log when it already holds events. Kept
    as a module-level hook so tests can monkeypatch
    `flightsurety.api.app.build_service`.
    """
    return load_service(load_oracle_config())


def _truthy(v: Optional[str]) -> bool:
    return (v or "").strip().lower() in {"1", "true", "yes", "y", "on"}


def _parse_cors_origins() -> List[str]:
    """Parse CORS origins.

    - unset/empty FLIGHTSURETY_CORS_ORIGINS -> CORS disabled
    - "*" is rejected in FLIGHTSURETY_MODE=prod
    """
    raw = os.environ.get("FLIGHTSURETY_CORS_ORIGINS", "").strip()
    mode = os.environ.get("FLIGHTSURETY_MODE", "prod").strip().lower()

    if not raw:
        return []

    origins = [o.strip() for o in raw.split(",") if o.strip()]

    if "*" in origins:
        if mode == "prod":
            raise RuntimeError(
                "Unsafe CORS configuration: wildcard '*' not allowed in production. "
                "Set explicit origins in FLIGHTSURETY_CORS_ORIGINS."
            )
        return ["*"]

    return origins


def create_app(*, service: Optional[FlightSuretyService] = None, boot_runtime: bool = True) -> FastAPI:
    """Create the FastAPI application.

    service:
      - given: attached as-is; the caller owns its lifecycle
      - None and boot_runtime=True: built via build_service() and closed at shutdown
      - None and boot_runtime=False: no service (route/middleware tests)

    FLIGHTSURETY_AGENTS_AUTOSTART=1 registers and runs an oracle fleet in-process
    for an app-owned service.
    """
    mode = os.environ.get("FLIGHTSURETY_MODE", "prod").strip().lower()
    owns_service = service is None and boot_runtime

    @asynccontextmanager
    async def _lifespan(app: FastAPI):
        fleet = None
        svc = getattr(app.state, "service", None)
        if owns_service and svc is not None and _truthy(os.environ.get("FLIGHTSURETY_AGENTS_AUTOSTART")):
            from flightsurety.services.oracle_agents import OracleFleet

            fleet = OracleFleet(service=svc, count=svc.config.oracle_count, seed=svc.config.seed)
            try:
                fleet.register_all()
            except FlightSuretyError as e:
                log_event(log, "oracle_registration_failed", level=logging.ERROR, code=e.code, reason=e.reason)
                raise
            fleet.start()

        app.state.fleet = fleet
        yield
        if fleet is not None:
            fleet.stop()
        if owns_service and svc is not None:
            svc.close()

    if mode == "prod":
        app = FastAPI(
            title="FlightSurety Oracle API",
            docs_url=None,
            redoc_url=None,
            openapi_url=None,
            lifespan=_lifespan,
        )
    else:
        app = FastAPI(title="FlightSurety Oracle API", lifespan=_lifespan)

    if service is not None:
        app.state.service = service
    elif boot_runtime:
        app.state.service = build_service()
    else:
        app.state.service = None
    app.state.fleet = None

    install_error_handlers(app)

    # --- Middleware ---
    app.add_middleware(RequestSizeLimitMiddleware)
    app.add_middleware(RequestLogMiddleware)

    cors_origins = _parse_cors_origins()
    if cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=cors_origins,
            allow_credentials=cors_origins != ["*"],
            allow_methods=["GET", "POST", "OPTIONS"],
            allow_headers=["Content-Type"],
        )

    # --- Routers ---
    app.include_router(public_router)

    return app
