from __future__ import annotations

"""Flight-status request ledger.

A request is keyed by (airline, flight, timestamp) and tagged with one index
drawn when it is opened. Only oracles whose triple contains that index may vote.
Each submit runs check-then-mutate under the request key's lock, so a failed
submit never changes the tally and exactly one caller observes finalization.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Dict, List, Literal, Optional, Tuple

from flightsurety.runtime.errors import (
    DuplicateSubmission,
    IndexMismatch,
    RequestClosed,
    UnknownOracle,
    UnknownRequest,
)
from flightsurety.runtime.event_log import ORACLE_REPORT, REQUEST_OPENED, EventLog
from flightsurety.runtime.locks import KeyedLocks
from flightsurety.runtime.metrics import inc_counter, set_gauge
from flightsurety.runtime.oracle_registry import OracleRegistry
from flightsurety.runtime.randomness import RandomSource
from flightsurety.runtime.runtime_logging import log_event

log = logging.getLogger("flightsurety.ledger")

RequestKey = Tuple[str, str, int]

DEFAULT_MIN_RESPONSES = 3


def _now_ms() -> int:
    return int(time.time() * 1000)


def request_key(airline: str, flight: str, timestamp: int) -> RequestKey:
    return (str(airline), str(flight), int(timestamp))


@dataclass
class StatusRequest:
    index: int
    airline: str
    flight: str
    timestamp: int
    opened_ms: int = field(default_factory=_now_ms)
    is_open: bool = True
    # status_code -> voters in arrival order
    responses: Dict[int, List[str]] = field(default_factory=dict)
    status_code: Optional[int] = None
    closed_ms: Optional[int] = None

    @property
    def key(self) -> RequestKey:
        return request_key(self.airline, self.flight, self.timestamp)

    def voters(self) -> List[str]:
        out: List[str] = []
        for ids in self.responses.values():
            out.extend(ids)
        return out

    def has_voted(self, identity: str) -> bool:
        return any(identity in ids for ids in self.responses.values())

    def tally(self) -> Dict[int, int]:
        return {code: len(ids) for code, ids in sorted(self.responses.items())}

    def to_json(self) -> dict:
        return {
            "index": self.index,
            "airline": self.airline,
            "flight": self.flight,
            "timestamp": self.timestamp,
            "is_open": self.is_open,
            "responses": {str(k): list(v) for k, v in sorted(self.responses.items())},
            "status_code": self.status_code,
        }


@dataclass(frozen=True, slots=True)
class SubmitResult:
    status: Literal["pending", "finalized"]
    index: int
    airline: str
    flight: str
    timestamp: int
    status_code: int
    votes: int

    @property
    def finalized(self) -> bool:
        return self.status == "finalized"


class RequestLedger:
    def __init__(
        self,
        *,
        registry: OracleRegistry,
        event_log: EventLog,
        random_source: RandomSource,
        max_index: int,
        min_responses: int = DEFAULT_MIN_RESPONSES,
    ) -> None:
        if int(min_responses) < 1:
            raise ValueError("min_responses must be >= 1")
        self.min_responses = int(min_responses)
        self.max_index = int(max_index)
        self._registry = registry
        self._events = event_log
        self._random = random_source
        self._requests: Dict[RequestKey, StatusRequest] = {}
        self._table_lock = threading.Lock()
        self._key_locks = KeyedLocks()

    # ---- lookup ----

    def _lookup(self, key: RequestKey) -> Optional[StatusRequest]:
        with self._table_lock:
            return self._requests.get(key)

    def get(self, airline: str, flight: str, timestamp: int) -> StatusRequest:
        req = self._lookup(request_key(airline, flight, timestamp))
        if req is None:
            raise UnknownRequest(
                "no status request for this flight",
                {"airline": str(airline), "flight": str(flight), "timestamp": int(timestamp)},
            )
        return req

    def find(self, airline: str, flight: str, timestamp: int) -> Optional[StatusRequest]:
        return self._lookup(request_key(airline, flight, timestamp))

    def open_requests(self) -> List[StatusRequest]:
        with self._table_lock:
            return [r for r in self._requests.values() if r.is_open]

    def requests(self) -> List[StatusRequest]:
        with self._table_lock:
            return [self._requests[k] for k in sorted(self._requests)]

    # ---- lifecycle ----

    def open(self, airline: str, flight: str, timestamp: int) -> int:
        """Open a request for the key and return its index.

        Idempotent while open. A closed key is never reopened.
        """
        key = request_key(airline, flight, timestamp)
        with self._key_locks.hold(key):
            existing = self._lookup(key)
            if existing is not None:
                if existing.is_open:
                    return existing.index
                raise RequestClosed(
                    "request already finalized",
                    {"index": existing.index, "status_code": existing.status_code},
                )

            index = self._random.randbelow(self.max_index)
            req = StatusRequest(index=index, airline=key[0], flight=key[1], timestamp=key[2])
            self._events.append(
                REQUEST_OPENED,
                {"index": index, "airline": req.airline, "flight": req.flight, "timestamp": req.timestamp},
            )
            with self._table_lock:
                self._requests[key] = req
                n_open = sum(1 for r in self._requests.values() if r.is_open)

        inc_counter("requests_opened")
        set_gauge("requests_open", n_open)
        log_event(log, "request_opened", index=index, airline=key[0], flight=key[1], timestamp=key[2])
        return index

    def submit(
        self,
        identity: str,
        index: int,
        airline: str,
        flight: str,
        timestamp: int,
        status_code: int,
    ) -> SubmitResult:
        oracle = self._registry.find(identity)
        if oracle is None:
            raise UnknownOracle("oracle is not registered", {"identity": str(identity)})
        if not oracle.has_index(index):
            raise IndexMismatch(
                "index does not match oracle request",
                {"identity": oracle.identity, "index": int(index), "indexes": list(oracle.indexes)},
            )

        key = request_key(airline, flight, timestamp)
        code = int(status_code)
        with self._key_locks.hold(key):
            req = self._lookup(key)
            if req is None or req.index != int(index):
                raise UnknownRequest(
                    "flight or timestamp do not match an oracle request",
                    {"index": int(index), "airline": key[0], "flight": key[1], "timestamp": key[2]},
                )
            if not req.is_open:
                raise RequestClosed("request already finalized", {"index": req.index, "status_code": req.status_code})
            if req.has_voted(oracle.identity):
                raise DuplicateSubmission(
                    "oracle already submitted for this request",
                    {"identity": oracle.identity, "index": req.index},
                )

            # All checks passed; the append is the first externally visible side effect.
            votes = len(req.responses.get(code, [])) + 1
            self._events.append(
                ORACLE_REPORT,
                {
                    "identity": oracle.identity,
                    "index": req.index,
                    "airline": req.airline,
                    "flight": req.flight,
                    "timestamp": req.timestamp,
                    "status_code": code,
                },
            )
            req.responses.setdefault(code, []).append(oracle.identity)

            finalized = votes >= self.min_responses
            if finalized:
                req.is_open = False
                req.status_code = code
                req.closed_ms = _now_ms()

        inc_counter("responses_accepted")
        if finalized:
            inc_counter("requests_finalized")
            set_gauge("requests_open", len(self.open_requests()))
        log_event(
            log,
            "oracle_report",
            level=logging.DEBUG,
            identity=oracle.identity,
            index=req.index,
            airline=req.airline,
            flight=req.flight,
            status_code=code,
            votes=votes,
        )
        return SubmitResult(
            status="finalized" if finalized else "pending",
            index=req.index,
            airline=req.airline,
            flight=req.flight,
            timestamp=req.timestamp,
            status_code=code,
            votes=votes,
        )

    # ---- replay ----

    def restore_open(self, index: int, airline: str, flight: str, timestamp: int) -> StatusRequest:
        key = request_key(airline, flight, timestamp)
        with self._table_lock:
            if key in self._requests:
                raise ValueError(f"request already restored: {key}")
            req = StatusRequest(index=int(index), airline=key[0], flight=key[1], timestamp=key[2])
            self._requests[key] = req
            return req

    def restore_vote(self, identity: str, airline: str, flight: str, timestamp: int, status_code: int) -> StatusRequest:
        key = request_key(airline, flight, timestamp)
        with self._table_lock:
            req = self._requests.get(key)
            if req is None:
                raise ValueError(f"vote for unknown request: {key}")
            code = int(status_code)
            req.responses.setdefault(code, []).append(str(identity))
            if len(req.responses[code]) >= self.min_responses:
                req.is_open = False
                req.status_code = code
            return req

    def snapshot(self) -> dict:
        with self._table_lock:
            return {f"{k[0]}/{k[1]}/{k[2]}": self._requests[k].to_json() for k in sorted(self._requests)}
