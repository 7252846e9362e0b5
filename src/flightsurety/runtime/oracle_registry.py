from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Dict, List, Optional

from flightsurety.runtime.errors import AlreadyRegistered, InsufficientFee, NotRegistered
from flightsurety.runtime.event_log import ORACLE_REGISTERED, EventLog
from flightsurety.runtime.index_assigner import IndexAssigner, IndexTriple
from flightsurety.runtime.locks import KeyedLocks
from flightsurety.runtime.metrics import inc_counter, set_gauge
from flightsurety.runtime.runtime_logging import log_event

log = logging.getLogger("flightsurety.registry")


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True, slots=True)
class Oracle:
    identity: str
    indexes: IndexTriple
    registered_ms: int
    counter: int
    entropy: str
    pubkey: Optional[str] = None

    def has_index(self, index: int) -> bool:
        return int(index) in self.indexes

    def to_json(self) -> dict:
        return {
            "identity": self.identity,
            "indexes": list(self.indexes),
            "registered_ms": self.registered_ms,
            "counter": self.counter,
            "entropy": self.entropy,
            "pubkey": self.pubkey,
        }


class OracleRegistry:
    """Append-only registry of oracle identities and their index triples.

    Registration is gated by a minimum fee. There is no removal: once stored, an
    oracle's triple is fixed for the lifetime of the process (and of the log).
    """

    def __init__(self, *, assigner: IndexAssigner, event_log: EventLog, registration_fee: int) -> None:
        self.registration_fee = int(registration_fee)
        self._assigner = assigner
        self._events = event_log
        self._oracles: Dict[str, Oracle] = {}
        self._lock = threading.Lock()
        self._identity_locks = KeyedLocks()

    def register(self, identity: str, fee_paid: int, *, pubkey: Optional[str] = None) -> IndexTriple:
        ident = str(identity or "").strip()
        if not ident:
            raise ValueError("identity must be a non-empty string")

        if int(fee_paid) < self.registration_fee:
            raise InsufficientFee(
                "registration fee is required",
                {"identity": ident, "fee_paid": int(fee_paid), "required": self.registration_fee},
            )

        with self._identity_locks.hold(ident):
            with self._lock:
                if ident in self._oracles:
                    raise AlreadyRegistered("oracle is already registered", {"identity": ident})

            assignment = self._assigner.next_triple(ident)
            oracle = Oracle(
                identity=ident,
                indexes=assignment.indexes,
                registered_ms=_now_ms(),
                counter=assignment.counter,
                entropy=assignment.entropy,
                pubkey=(str(pubkey).strip() or None) if pubkey else None,
            )
            self._events.append(ORACLE_REGISTERED, oracle.to_json())

            with self._lock:
                self._oracles[ident] = oracle
                n = len(self._oracles)

        inc_counter("oracles_registered")
        set_gauge("oracles_total", n)
        log_event(log, "oracle_registered", identity=ident, indexes=list(oracle.indexes))
        return oracle.indexes

    def indexes_of(self, identity: str) -> IndexTriple:
        return self.get(identity).indexes

    def get(self, identity: str) -> Oracle:
        with self._lock:
            oracle = self._oracles.get(str(identity))
        if oracle is None:
            raise NotRegistered("oracle is not registered", {"identity": str(identity)})
        return oracle

    def find(self, identity: str) -> Optional[Oracle]:
        with self._lock:
            return self._oracles.get(str(identity))

    def is_registered(self, identity: str) -> bool:
        with self._lock:
            return str(identity) in self._oracles

    def identities(self) -> List[str]:
        with self._lock:
            return list(self._oracles.keys())

    def count(self) -> int:
        with self._lock:
            return len(self._oracles)

    def restore(self, oracle: Oracle) -> None:
        """Insert a replayed oracle without emitting an event."""
        with self._lock:
            if oracle.identity in self._oracles:
                raise AlreadyRegistered("oracle is already registered", {"identity": oracle.identity})
            self._oracles[oracle.identity] = oracle
        self._assigner.advance_to(oracle.counter)

    def snapshot(self) -> dict:
        with self._lock:
            return {k: self._oracles[k].to_json() for k in sorted(self._oracles)}
