from __future__ import annotations

"""Quorum consensus over oracle responses.

The quorum rule is the whole algorithm: the first status code to collect
`min_responses` distinct-oracle votes wins. Submissions for one key are
processed serially by the ledger, so arrival order breaks any would-be tie and
exactly one submit call returns `finalized`. The engine publishes
`status_finalized` only from that call, and applies the status to the flight
under a per-flight lock after the event is appended.
"""

import logging
from typing import Optional

from flightsurety.crypto.sig import canonical_response_message, verify_ed25519_signature
from flightsurety.runtime.airlines import FlightRegistry
from flightsurety.runtime.errors import FlightSuretyError, InvalidSignature, UnknownOracle, UnknownFlight
from flightsurety.runtime.event_log import STATUS_FINALIZED, EventLog
from flightsurety.runtime.locks import KeyedLocks
from flightsurety.runtime.metrics import inc_counter
from flightsurety.runtime.oracle_registry import OracleRegistry
from flightsurety.runtime.request_ledger import RequestLedger, SubmitResult
from flightsurety.runtime.runtime_logging import log_event
from flightsurety.runtime.status_codes import status_name

log = logging.getLogger("flightsurety.consensus")


class ConsensusEngine:
    def __init__(
        self,
        *,
        ledger: RequestLedger,
        registry: OracleRegistry,
        flights: FlightRegistry,
        event_log: EventLog,
    ) -> None:
        self.ledger = ledger
        self._registry = registry
        self._flights = flights
        self._events = event_log
        self._flight_locks = KeyedLocks()

    def request_flight_status(self, airline: str, flight: str, timestamp: Optional[int] = None) -> int:
        """Open (or resurface) a status request for a registered flight. Returns its index."""
        f = self._flights.get(airline, flight)
        ts = f.timestamp if timestamp is None else int(timestamp)
        return self.ledger.open(f.airline, f.flight, ts)

    def _verify_signature(
        self,
        identity: str,
        index: int,
        airline: str,
        flight: str,
        timestamp: int,
        status_code: int,
        sig: Optional[str],
    ) -> None:
        oracle = self._registry.find(identity)
        if oracle is None:
            raise UnknownOracle("oracle is not registered", {"identity": str(identity)})
        if not oracle.pubkey:
            return
        msg = canonical_response_message(
            identity=oracle.identity,
            index=index,
            airline=airline,
            flight=flight,
            timestamp=timestamp,
            status_code=status_code,
        )
        if not sig or not verify_ed25519_signature(message=msg, sig=sig, pubkey=oracle.pubkey):
            raise InvalidSignature("response signature does not verify", {"identity": oracle.identity})

    def submit_response(
        self,
        identity: str,
        index: int,
        airline: str,
        flight: str,
        timestamp: int,
        status_code: int,
        *,
        sig: Optional[str] = None,
    ) -> SubmitResult:
        try:
            self._verify_signature(identity, index, airline, flight, timestamp, status_code, sig)
            result = self.ledger.submit(identity, index, airline, flight, timestamp, status_code)
        except FlightSuretyError as e:
            inc_counter(f"responses_rejected_{e.code}")
            raise

        if result.finalized:
            self._finalize(result)
        return result

    def _finalize(self, result: SubmitResult) -> None:
        # Per flight, the log order of status_finalized is the order statuses are applied.
        with self._flight_locks.hold((result.airline, result.flight)):
            self._events.append(
                STATUS_FINALIZED,
                {
                    "index": result.index,
                    "airline": result.airline,
                    "flight": result.flight,
                    "timestamp": result.timestamp,
                    "status_code": result.status_code,
                },
            )
            try:
                self._flights.set_status(result.airline, result.flight, result.status_code)
            except UnknownFlight:
                # Requests opened directly on the ledger may name a flight the registry never saw.
                log.warning("finalized status for unregistered flight %s/%s", result.airline, result.flight)

        log_event(
            log,
            "status_finalized",
            index=result.index,
            airline=result.airline,
            flight=result.flight,
            timestamp=result.timestamp,
            status_code=result.status_code,
            status=status_name(result.status_code),
        )
