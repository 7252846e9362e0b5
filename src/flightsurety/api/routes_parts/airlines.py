from __future__ import annotations

from fastapi import APIRouter, Request

from flightsurety.api.routes_parts.common import _service
from flightsurety.api.schemas import AirlineFundRequest, AirlineRegisterRequest, FlightRegisterRequest

router = APIRouter()


@router.post("/airlines/register")
def register_airline(body: AirlineRegisterRequest, request: Request) -> dict:
    """Admit a candidate directly, or record a vote once multi-party admission applies."""
    svc = _service(request)
    admitted, votes = svc.register_airline(body.airline, by=body.by)
    return {"ok": True, "airline": body.airline, "admitted": admitted, "votes": votes}


@router.post("/airlines/fund")
def fund_airline(body: AirlineFundRequest, request: Request) -> dict:
    svc = _service(request)
    a = svc.fund_airline(body.airline, body.amount)
    return {"ok": True, "airline": a.address, "is_participating": a.is_participating, "funded": str(a.funded_amount)}


@router.get("/airlines/{airline}")
def get_airline(airline: str, request: Request) -> dict:
    svc = _service(request)
    a = svc.airlines.get(airline)
    return {
        "ok": True,
        "airline": a.address,
        "is_participating": a.is_participating,
        "funded": str(a.funded_amount),
        "pending_votes": svc.airlines.votes_for(airline),
    }


@router.post("/flights/register")
def register_flight(body: FlightRegisterRequest, request: Request) -> dict:
    svc = _service(request)
    f = svc.register_flight(body.airline, body.flight, body.timestamp)
    return {"ok": True, "flight": f.to_json()}
