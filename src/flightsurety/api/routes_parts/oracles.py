from __future__ import annotations

from fastapi import APIRouter, Request

from flightsurety.api.routes_parts.common import _service
from flightsurety.api.schemas import OracleRegisterRequest, OracleResponseRequest

router = APIRouter()


@router.post("/oracles/register")
def register_oracle(body: OracleRegisterRequest, request: Request) -> dict:
    svc = _service(request)
    indexes = svc.register_oracle(body.identity, body.fee_paid, pubkey=body.pubkey)
    return {"ok": True, "identity": body.identity, "indexes": list(indexes)}


@router.get("/oracles/{identity}/indexes")
def oracle_indexes(identity: str, request: Request) -> dict:
    svc = _service(request)
    return {"ok": True, "identity": identity, "indexes": list(svc.indexes_of(identity))}


@router.post("/oracles/responses")
def submit_response(body: OracleResponseRequest, request: Request) -> dict:
    svc = _service(request)
    res = svc.submit_response(
        body.identity,
        body.index,
        body.airline,
        body.flight,
        body.timestamp,
        body.status_code,
        sig=body.sig,
    )
    return {
        "ok": True,
        "result": res.status,
        "status_code": res.status_code,
        "votes": res.votes,
        "index": res.index,
    }
