from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar


@dataclass(eq=False)
class FlightSuretyError(Exception):
    """Canonical error type for registry, ledger and consensus failures.

    `code` is a stable machine-readable tag. `expected` marks outcomes that are
    normal steady-state control flow for oracle callers (most oracles do not
    match most requests, most requests close before every oracle answers).
    """

    reason: str = ""
    details: Any | None = None

    code: ClassVar[str] = "error"
    expected: ClassVar[bool] = False

    def __str__(self) -> str:  # pragma: no cover
        if self.details is None:
            return f"{self.code}:{self.reason}"
        return f"{self.code}:{self.reason}:{self.details}"


# ---- oracle registration ----


class InsufficientFee(FlightSuretyError):
    code = "insufficient_fee"


class AlreadyRegistered(FlightSuretyError):
    code = "already_registered"


class NotRegistered(FlightSuretyError):
    code = "not_registered"


# ---- oracle responses ----


class UnknownOracle(FlightSuretyError):
    code = "unknown_oracle"


class IndexMismatch(FlightSuretyError):
    code = "index_mismatch"
    expected = True


class UnknownRequest(FlightSuretyError):
    code = "unknown_request"
    expected = True


class RequestClosed(FlightSuretyError):
    code = "request_closed"
    expected = True


class DuplicateSubmission(FlightSuretyError):
    code = "duplicate_submission"
    expected = True


class InvalidSignature(FlightSuretyError):
    code = "invalid_signature"


# ---- airlines / flights ----


class UnknownFlight(FlightSuretyError):
    code = "unknown_flight"


class FlightAlreadyRegistered(FlightSuretyError):
    code = "flight_already_registered"


class NotAirline(FlightSuretyError):
    code = "not_airline"


class AlreadyAirline(FlightSuretyError):
    code = "already_airline"


class AirlineNotParticipating(FlightSuretyError):
    code = "airline_not_participating"


class InsufficientFunding(FlightSuretyError):
    code = "insufficient_funding"


class DuplicateVote(FlightSuretyError):
    code = "duplicate_vote"


# ---- service ----


class NotOperational(FlightSuretyError):
    code = "not_operational"


class NotOwner(FlightSuretyError):
    code = "not_owner"


class ReplayMismatch(FlightSuretyError):
    code = "replay_mismatch"


__all__ = [
    "FlightSuretyError",
    "InsufficientFee",
    "AlreadyRegistered",
    "NotRegistered",
    "UnknownOracle",
    "IndexMismatch",
    "UnknownRequest",
    "RequestClosed",
    "DuplicateSubmission",
    "InvalidSignature",
    "UnknownFlight",
    "FlightAlreadyRegistered",
    "NotAirline",
    "AlreadyAirline",
    "AirlineNotParticipating",
    "InsufficientFunding",
    "DuplicateVote",
    "NotOperational",
    "NotOwner",
    "ReplayMismatch",
]
