from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from flightsurety.runtime.errors import (
    AirlineNotParticipating,
    AlreadyAirline,
    AlreadyRegistered,
    DuplicateSubmission,
    DuplicateVote,
    FlightAlreadyRegistered,
    FlightSuretyError,
    IndexMismatch,
    InsufficientFee,
    InsufficientFunding,
    InvalidSignature,
    NotAirline,
    NotOperational,
    NotOwner,
    NotRegistered,
    RequestClosed,
    UnknownFlight,
    UnknownOracle,
    UnknownRequest,
)


@dataclass(frozen=True, slots=True)
class ApiError(Exception):
    status_code: int
    code: str
    message: str
    details: Dict[str, Any]

    @staticmethod
    def internal(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(500, code, message, details or {})


_STATUS_BY_ERROR = {
    InsufficientFee: 402,
    InsufficientFunding: 402,
    AlreadyRegistered: 409,
    AlreadyAirline: 409,
    FlightAlreadyRegistered: 409,
    DuplicateVote: 409,
    IndexMismatch: 409,
    UnknownRequest: 409,
    RequestClosed: 409,
    DuplicateSubmission: 409,
    NotRegistered: 404,
    UnknownOracle: 404,
    UnknownFlight: 404,
    NotAirline: 403,
    AirlineNotParticipating: 403,
    NotOwner: 403,
    InvalidSignature: 401,
    NotOperational: 503,
}


def status_for(e: FlightSuretyError) -> int:
    for cls in type(e).__mro__:
        if cls in _STATUS_BY_ERROR:
            return _STATUS_BY_ERROR[cls]
    return 400


def _error_body(code: str, message: str, details: Any) -> dict:
    return {"ok": False, "error": {"code": code, "message": message, "details": details if details is not None else {}}}


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ApiError)
    async def _api_error(_request: Request, e: ApiError) -> JSONResponse:
        return JSONResponse(status_code=e.status_code, content=_error_body(e.code, e.message, e.details))

    @app.exception_handler(FlightSuretyError)
    async def _domain_error(_request: Request, e: FlightSuretyError) -> JSONResponse:
        body = _error_body(e.code, e.reason, e.details)
        body["error"]["expected"] = bool(e.expected)
        return JSONResponse(status_code=status_for(e), content=body)

    @app.exception_handler(RequestValidationError)
    async def _validation_error(_request: Request, e: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=422,
            content=_error_body("invalid_request", "request validation failed", {"errors": e.errors()}),
        )

    @app.exception_handler(ValueError)
    async def _value_error(_request: Request, e: ValueError) -> JSONResponse:
        # Inputs that pass the schema but not the runtime checks (blank identities, bad flight codes).
        return JSONResponse(status_code=422, content=_error_body("invalid_request", str(e), {}))
