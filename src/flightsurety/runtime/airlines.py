from __future__ import annotations

"""Airline admission, funding and flight registration.

Admission rules:
  - the owner airline is admitted at construction
  - while fewer than `multiparty_threshold` airlines exist, any participating
    airline admits a candidate directly
  - afterwards each participating airline casts one vote and the candidate is
    admitted once votes reach half of the participating airlines (rounded up)

An airline participates (may admit others and register flights) only after it
funds at least `airline_fund`.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from flightsurety.runtime.errors import (
    AirlineNotParticipating,
    AlreadyAirline,
    DuplicateVote,
    FlightAlreadyRegistered,
    InsufficientFunding,
    NotAirline,
    UnknownFlight,
)
from flightsurety.runtime.event_log import (
    AIRLINE_FUNDED,
    AIRLINE_REGISTERED,
    AIRLINE_VOTED,
    FLIGHT_REGISTERED,
    EventLog,
)
from flightsurety.runtime.runtime_logging import log_event
from flightsurety.runtime.status_codes import STATUS_CODE_UNKNOWN

log = logging.getLogger("flightsurety.airlines")


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class Airline:
    address: str
    funded_amount: int = 0
    is_participating: bool = False

    def to_json(self) -> dict:
        return {
            "address": self.address,
            "funded_amount": self.funded_amount,
            "is_participating": self.is_participating,
        }


@dataclass
class Flight:
    airline: str
    flight: str
    timestamp: int
    status_code: int = STATUS_CODE_UNKNOWN
    updated_ms: int = field(default_factory=_now_ms)

    def to_json(self) -> dict:
        return {
            "airline": self.airline,
            "flight": self.flight,
            "timestamp": self.timestamp,
            "status_code": self.status_code,
            "updated_ms": self.updated_ms,
        }


class AirlineRegistry:
    def __init__(
        self,
        *,
        event_log: EventLog,
        owner: str,
        airline_fund: int,
        multiparty_threshold: int = 4,
        emit_owner: bool = True,
    ) -> None:
        self.owner = str(owner)
        self.airline_fund = int(airline_fund)
        self.multiparty_threshold = int(multiparty_threshold)
        self._events = event_log
        self._lock = threading.Lock()
        self._airlines: Dict[str, Airline] = {self.owner: Airline(address=self.owner)}
        self._votes: Dict[str, List[str]] = {}
        if emit_owner:
            self._events.append(AIRLINE_REGISTERED, {"airline": self.owner, "by": self.owner, "votes": 0})

    def is_airline(self, address: str) -> bool:
        with self._lock:
            return str(address) in self._airlines

    def is_participating(self, address: str) -> bool:
        with self._lock:
            a = self._airlines.get(str(address))
            return bool(a and a.is_participating)

    def get(self, address: str) -> Airline:
        with self._lock:
            a = self._airlines.get(str(address))
        if a is None:
            raise NotAirline("address is not a registered airline", {"airline": str(address)})
        return a

    def participating_count(self) -> int:
        with self._lock:
            return sum(1 for a in self._airlines.values() if a.is_participating)

    def count(self) -> int:
        with self._lock:
            return len(self._airlines)

    def require_participating(self, address: str) -> Airline:
        a = self.get(address)
        if not a.is_participating:
            raise AirlineNotParticipating("airline has not funded its participation", {"airline": a.address})
        return a

    def fund(self, airline: str, amount: int) -> Airline:
        addr = str(airline)
        with self._lock:
            a = self._airlines.get(addr)
            if a is None:
                raise NotAirline("address is not a registered airline", {"airline": addr})
            if int(amount) < self.airline_fund:
                raise InsufficientFunding(
                    "funding below the participation amount",
                    {"airline": addr, "amount": int(amount), "required": self.airline_fund},
                )
            self._events.append(AIRLINE_FUNDED, {"airline": addr, "amount": int(amount)})
            a.funded_amount += int(amount)
            a.is_participating = True
        log_event(log, "airline_funded", airline=addr, amount=int(amount))
        return a

    def register_airline(self, candidate: str, *, by: str) -> Tuple[bool, int]:
        """Admit or vote for `candidate`. Returns (admitted, votes)."""
        cand = str(candidate or "").strip()
        if not cand:
            raise ValueError("candidate must be a non-empty string")
        voter = self.require_participating(by).address

        with self._lock:
            if cand in self._airlines:
                raise AlreadyAirline("airline is already registered", {"airline": cand})

            if len(self._airlines) < self.multiparty_threshold:
                self._events.append(AIRLINE_REGISTERED, {"airline": cand, "by": voter, "votes": 0})
                self._airlines[cand] = Airline(address=cand)
                admitted, votes = True, 0
            else:
                voters = self._votes.get(cand, [])
                if voter in voters:
                    raise DuplicateVote("airline already voted for this candidate", {"airline": cand, "voter": voter})
                votes = len(voters) + 1
                participating = sum(1 for a in self._airlines.values() if a.is_participating)
                needed = (participating + 1) // 2
                admitted = votes >= needed
                if admitted:
                    self._events.append(AIRLINE_REGISTERED, {"airline": cand, "by": voter, "votes": votes})
                    self._airlines[cand] = Airline(address=cand)
                    self._votes.pop(cand, None)
                else:
                    self._events.append(AIRLINE_VOTED, {"airline": cand, "by": voter, "votes": votes})
                    self._votes[cand] = voters + [voter]

        log_event(log, "airline_vote", candidate=cand, by=voter, admitted=admitted, votes=votes)
        return admitted, votes

    def votes_for(self, candidate: str) -> List[str]:
        with self._lock:
            return list(self._votes.get(str(candidate), []))

    def restore_registered(self, airline: str) -> None:
        with self._lock:
            self._airlines.setdefault(str(airline), Airline(address=str(airline)))
            self._votes.pop(str(airline), None)

    def pending_votes(self) -> Dict[str, List[str]]:
        with self._lock:
            return {k: list(self._votes[k]) for k in sorted(self._votes)}

    def restore_vote(self, candidate: str, voter: str) -> None:
        with self._lock:
            self._votes.setdefault(str(candidate), []).append(str(voter))

    def restore_funded(self, airline: str, amount: int) -> None:
        with self._lock:
            a = self._airlines.setdefault(str(airline), Airline(address=str(airline)))
            a.funded_amount += int(amount)
            a.is_participating = True

    def snapshot(self) -> dict:
        with self._lock:
            return {k: self._airlines[k].to_json() for k in sorted(self._airlines)}


class FlightRegistry:
    """Flights keyed by (airline, flight). Status is written only by consensus."""

    def __init__(self, *, event_log: EventLog, airlines: AirlineRegistry) -> None:
        self._events = event_log
        self._airlines = airlines
        self._lock = threading.Lock()
        self._flights: Dict[Tuple[str, str], Flight] = {}

    def register_flight(self, airline: str, flight: str, timestamp: int) -> Flight:
        a = self._airlines.require_participating(airline)
        code = str(flight or "").strip()
        if not code:
            raise ValueError("flight must be a non-empty string")
        key = (a.address, code)
        with self._lock:
            if key in self._flights:
                raise FlightAlreadyRegistered("flight is already registered", {"airline": a.address, "flight": code})
            self._events.append(FLIGHT_REGISTERED, {"airline": a.address, "flight": code, "timestamp": int(timestamp)})
            f = Flight(airline=a.address, flight=code, timestamp=int(timestamp))
            self._flights[key] = f
        log_event(log, "flight_registered", airline=a.address, flight=code, timestamp=int(timestamp))
        return f

    def get(self, airline: str, flight: str) -> Flight:
        with self._lock:
            f = self._flights.get((str(airline), str(flight)))
        if f is None:
            raise UnknownFlight("flight is not registered", {"airline": str(airline), "flight": str(flight)})
        return f

    def find(self, airline: str, flight: str) -> Optional[Flight]:
        with self._lock:
            return self._flights.get((str(airline), str(flight)))

    def set_status(self, airline: str, flight: str, status_code: int) -> Flight:
        with self._lock:
            f = self._flights.get((str(airline), str(flight)))
            if f is None:
                raise UnknownFlight("flight is not registered", {"airline": str(airline), "flight": str(flight)})
            f.status_code = int(status_code)
            f.updated_ms = _now_ms()
            return f

    def flights(self) -> List[Flight]:
        with self._lock:
            return [self._flights[k] for k in sorted(self._flights)]

    def restore(self, airline: str, flight: str, timestamp: int) -> None:
        with self._lock:
            self._flights.setdefault((str(airline), str(flight)), Flight(str(airline), str(flight), int(timestamp)))

    def snapshot(self) -> dict:
        with self._lock:
            return {
                f"{k[0]}/{k[1]}": {kk: vv for kk, vv in self._flights[k].to_json().items() if kk != "updated_ms"}
                for k in sorted(self._flights)
            }
