from __future__ import annotations

from fastapi import APIRouter, Request

from flightsurety.api.routes_parts.common import _service
from flightsurety.api.schemas import StatusRequestBody
from flightsurety.runtime.status_codes import status_name

router = APIRouter()


@router.get("/flights")
def list_flights(request: Request) -> dict:
    svc = _service(request)
    return {"ok": True, "flights": [f.to_json() for f in svc.flights.flights()]}


@router.get("/flights/{airline}/{flight}")
def get_flight(airline: str, flight: str, request: Request) -> dict:
    svc = _service(request)
    f = svc.get_flight(airline, flight)
    out = f.to_json()
    out["status"] = status_name(f.status_code)
    return {"ok": True, "flight": out}


@router.post("/flights/status-request")
def request_flight_status(body: StatusRequestBody, request: Request) -> dict:
    """Ask the oracles for a flight's status.

    Returns the index the request was tagged with. Repeating the call while the
    request is open returns the same index.
    """
    svc = _service(request)
    f = svc.get_flight(body.airline, body.flight)
    ts = f.timestamp if body.timestamp is None else int(body.timestamp)
    index = svc.request_flight_status(f.airline, f.flight, ts)
    return {"ok": True, "index": index, "airline": f.airline, "flight": f.flight, "timestamp": ts}


@router.get("/requests/{airline}/{flight}/{timestamp}")
def get_request(airline: str, flight: str, timestamp: int, request: Request) -> dict:
    svc = _service(request)
    req = svc.get_request(airline, flight, timestamp)
    return {"ok": True, "request": req.to_json()}
