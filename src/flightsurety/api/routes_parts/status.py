from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import PlainTextResponse

from flightsurety.api.errors import ApiError
from flightsurety.api.routes_parts.common import _service
from flightsurety.api.schemas import OperationalRequest
from flightsurety.runtime.metrics import format_prometheus, metrics_enabled

router = APIRouter()


@router.get("/status")
def status(request: Request) -> dict:
    svc = _service(request)
    fleet = getattr(request.app.state, "fleet", None)
    return {
        "ok": True,
        "operational": svc.operational,
        "oracles": svc.registry.count(),
        "airlines": svc.airlines.count(),
        "participating_airlines": svc.airlines.participating_count(),
        "open_requests": len(svc.ledger.open_requests()),
        "last_event_seq": svc.events.last_seq(),
        "min_responses": svc.config.min_responses,
        "registration_fee": str(svc.config.registration_fee),
        "agents_running": sum(1 for a in fleet.agents if a.is_alive()) if fleet is not None else 0,
    }


@router.post("/status/operational")
def set_operational(body: OperationalRequest, request: Request) -> dict:
    svc = _service(request)
    svc.set_operational(body.operational, caller=body.caller)
    return {"ok": True, "operational": svc.operational}


@router.get("/metrics", response_class=PlainTextResponse)
def metrics() -> str:
    """Process counters and gauges in Prometheus text format.

    404 unless FLIGHTSURETY_METRICS_ENABLED is set.
    """
    if not metrics_enabled():
        raise ApiError(404, "metrics_disabled", "metrics exposure is off", {})
    return format_prometheus()
