from __future__ import annotations

"""Service object wiring registry, ledger and consensus.

Created once at process start and passed by reference; `close()` tears it down.
There are no module-level singletons.
"""

import logging
import threading
from typing import Optional

from flightsurety.runtime.airlines import AirlineRegistry, Flight, FlightRegistry
from flightsurety.runtime.config import OracleConfig, default_oracle_config
from flightsurety.runtime.consensus import ConsensusEngine
from flightsurety.runtime.errors import NotOperational, NotOwner
from flightsurety.runtime.event_log import OPERATIONAL_CHANGED, EventLog, open_event_log
from flightsurety.runtime.index_assigner import IndexAssigner, IndexTriple
from flightsurety.runtime.oracle_registry import OracleRegistry
from flightsurety.runtime.randomness import RandomSource, random_source_for_seed
from flightsurety.runtime.request_ledger import RequestLedger, StatusRequest, SubmitResult
from flightsurety.runtime.runtime_logging import log_event

log = logging.getLogger("flightsurety.service")


class FlightSuretyService:
    def __init__(
        self,
        *,
        config: Optional[OracleConfig] = None,
        event_log: Optional[EventLog] = None,
        random_source: Optional[RandomSource] = None,
        index_random_source: Optional[RandomSource] = None,
        emit_genesis: bool = True,
    ) -> None:
        self.config = config or default_oracle_config()
        self.events = event_log if event_log is not None else open_event_log(self.config.event_log_path)
        self.random = random_source if random_source is not None else random_source_for_seed(self.config.seed)
        index_random = index_random_source if index_random_source is not None else self.random

        self.assigner = IndexAssigner(random_source=index_random, max_index=self.config.max_index)
        self.registry = OracleRegistry(
            assigner=self.assigner,
            event_log=self.events,
            registration_fee=self.config.registration_fee,
        )
        self.airlines = AirlineRegistry(
            event_log=self.events,
            owner=self.config.owner_airline,
            airline_fund=self.config.airline_fund,
            multiparty_threshold=self.config.multiparty_threshold,
            emit_owner=emit_genesis,
        )
        self.flights = FlightRegistry(event_log=self.events, airlines=self.airlines)
        self.ledger = RequestLedger(
            registry=self.registry,
            event_log=self.events,
            random_source=self.random,
            max_index=self.config.max_index,
            min_responses=self.config.min_responses,
        )
        self.engine = ConsensusEngine(
            ledger=self.ledger,
            registry=self.registry,
            flights=self.flights,
            event_log=self.events,
        )

        self._operational = True
        self._op_lock = threading.Lock()
        self._closed = False

    # ---- operational switch ----

    @property
    def operational(self) -> bool:
        with self._op_lock:
            return self._operational

    def set_operational(self, flag: bool, *, caller: str) -> None:
        if str(caller) != self.airlines.owner:
            raise NotOwner("only the owner airline may change operating status", {"caller": str(caller)})
        with self._op_lock:
            if self._operational == bool(flag):
                return
            self.events.append(OPERATIONAL_CHANGED, {"operational": bool(flag), "by": str(caller)})
            self._operational = bool(flag)
        log_event(log, "operational_changed", operational=bool(flag), by=str(caller))

    def restore_operational(self, flag: bool) -> None:
        with self._op_lock:
            self._operational = bool(flag)

    def _require_operational(self) -> None:
        if not self.operational:
            raise NotOperational("service is paused")

    # ---- oracles ----

    def register_oracle(self, identity: str, fee_paid: int, *, pubkey: Optional[str] = None) -> IndexTriple:
        self._require_operational()
        return self.registry.register(identity, fee_paid, pubkey=pubkey)

    def indexes_of(self, identity: str) -> IndexTriple:
        return self.registry.indexes_of(identity)

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
        self._require_operational()
        return self.engine.submit_response(identity, index, airline, flight, timestamp, status_code, sig=sig)

    # ---- airlines / flights ----

    def register_airline(self, candidate: str, *, by: str):
        self._require_operational()
        return self.airlines.register_airline(candidate, by=by)

    def fund_airline(self, airline: str, amount: int):
        self._require_operational()
        return self.airlines.fund(airline, amount)

    def register_flight(self, airline: str, flight: str, timestamp: int) -> Flight:
        self._require_operational()
        return self.flights.register_flight(airline, flight, timestamp)

    def get_flight(self, airline: str, flight: str) -> Flight:
        return self.flights.get(airline, flight)

    def request_flight_status(self, airline: str, flight: str, timestamp: Optional[int] = None) -> int:
        self._require_operational()
        return self.engine.request_flight_status(airline, flight, timestamp)

    def get_request(self, airline: str, flight: str, timestamp: int) -> StatusRequest:
        return self.ledger.get(airline, flight, timestamp)

    # ---- lifecycle ----

    def snapshot(self) -> dict:
        return {
            "operational": self.operational,
            "oracles": self.registry.snapshot(),
            "airlines": self.airlines.snapshot(),
            "airline_votes": self.airlines.pending_votes(),
            "flights": self.flights.snapshot(),
            "requests": self.ledger.snapshot(),
        }

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.events.close()
        log_event(log, "service_closed", last_seq=self.events.last_seq())
