from __future__ import annotations

from fastapi import APIRouter

from flightsurety.api.routes_parts.airlines import router as airlines_router
from flightsurety.api.routes_parts.events import router as events_router
from flightsurety.api.routes_parts.flights import router as flights_router
from flightsurety.api.routes_parts.health import router as health_router
from flightsurety.api.routes_parts.oracles import router as oracles_router
from flightsurety.api.routes_parts.status import router as status_router

public_router = APIRouter()

public_router.include_router(health_router, prefix="/v1", tags=["health"])
public_router.include_router(status_router, prefix="/v1", tags=["status"])
public_router.include_router(airlines_router, prefix="/v1", tags=["airlines"])
public_router.include_router(flights_router, prefix="/v1", tags=["flights"])
public_router.include_router(oracles_router, prefix="/v1", tags=["oracles"])
public_router.include_router(events_router, prefix="/v1", tags=["events"])
