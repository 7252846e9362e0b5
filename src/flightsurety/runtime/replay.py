from __future__ import annotations

"""Rebuild service state from an event log.

Oracle triples are recomputed from the recorded (identity, counter, entropy)
and compared with the recorded triple, so a replay doubles as an audit of
every index assignment.
"""

import logging
from typing import Iterable, List, Optional

from flightsurety.runtime.config import OracleConfig, default_oracle_config
from flightsurety.runtime.errors import ReplayMismatch
from flightsurety.runtime.event_log import (
    AIRLINE_FUNDED,
    AIRLINE_REGISTERED,
    AIRLINE_VOTED,
    FLIGHT_REGISTERED,
    OPERATIONAL_CHANGED,
    ORACLE_REGISTERED,
    ORACLE_REPORT,
    REQUEST_OPENED,
    STATUS_FINALIZED,
    Event,
    EventLog,
    MemoryEventLog,
    open_event_log,
)
from flightsurety.runtime.index_assigner import assign
from flightsurety.runtime.oracle_registry import Oracle
from flightsurety.runtime.runtime_logging import log_event
from flightsurety.runtime.service import FlightSuretyService

log = logging.getLogger("flightsurety.replay")


def _oracle_from_payload(p: dict, *, max_index: int) -> Oracle:
    identity = str(p["identity"])
    counter = int(p["counter"])
    entropy = str(p.get("entropy") or "")
    recorded = tuple(int(x) for x in p["indexes"])
    derived = assign(identity, counter, entropy, max_index=max_index)
    if recorded != derived:
        raise ReplayMismatch(
            "recorded index triple does not match its derivation",
            {"identity": identity, "recorded": list(recorded), "derived": list(derived)},
        )
    return Oracle(
        identity=identity,
        indexes=derived,
        registered_ms=int(p.get("registered_ms") or 0),
        counter=counter,
        entropy=entropy,
        pubkey=p.get("pubkey") or None,
    )


def apply_event(svc: FlightSuretyService, ev: Event) -> None:
    p = ev.payload
    kind = ev.kind

    if kind == ORACLE_REGISTERED:
        svc.registry.restore(_oracle_from_payload(p, max_index=svc.config.max_index))
    elif kind == AIRLINE_REGISTERED:
        svc.airlines.restore_registered(str(p["airline"]))
    elif kind == AIRLINE_VOTED:
        svc.airlines.restore_vote(str(p["airline"]), str(p["by"]))
    elif kind == AIRLINE_FUNDED:
        svc.airlines.restore_funded(str(p["airline"]), int(p["amount"]))
    elif kind == FLIGHT_REGISTERED:
        svc.flights.restore(str(p["airline"]), str(p["flight"]), int(p["timestamp"]))
    elif kind == REQUEST_OPENED:
        svc.ledger.restore_open(int(p["index"]), str(p["airline"]), str(p["flight"]), int(p["timestamp"]))
    elif kind == ORACLE_REPORT:
        svc.ledger.restore_vote(
            str(p["identity"]), str(p["airline"]), str(p["flight"]), int(p["timestamp"]), int(p["status_code"])
        )
    elif kind == STATUS_FINALIZED:
        req = svc.ledger.find(str(p["airline"]), str(p["flight"]), int(p["timestamp"]))
        if req is None or req.is_open or req.status_code != int(p["status_code"]):
            raise ReplayMismatch("finalization does not follow from recorded votes", {"seq": ev.seq})
        if svc.flights.find(str(p["airline"]), str(p["flight"])) is not None:
            svc.flights.set_status(str(p["airline"]), str(p["flight"]), int(p["status_code"]))
    elif kind == OPERATIONAL_CHANGED:
        svc.restore_operational(bool(p["operational"]))
    else:
        raise ReplayMismatch("unknown event kind", {"seq": ev.seq, "kind": kind})


def replay_service(
    events: Iterable[Event],
    config: Optional[OracleConfig] = None,
    *,
    event_log: Optional[EventLog] = None,
) -> FlightSuretyService:
    """Return a fresh service whose state equals the replayed events.

    event_log: the log new events are appended to. It must already hold
    `events` (a reopened durable log). When omitted, an in-memory log seeded
    with `events` is used.
    """
    evs: List[Event] = sorted(events, key=lambda e: e.seq)
    target = event_log if event_log is not None else MemoryEventLog(initial=evs)
    if target.last_seq() != (evs[-1].seq if evs else 0):
        raise ReplayMismatch("append target does not end where the replayed events end", {"last_seq": target.last_seq()})
    svc = FlightSuretyService(
        config=config or default_oracle_config(),
        event_log=target,
        emit_genesis=False,
    )
    for ev in evs:
        apply_event(svc, ev)
    log_event(log, "replay_complete", events=len(evs), last_seq=evs[-1].seq if evs else 0)
    return svc


def load_service(config: OracleConfig) -> FlightSuretyService:
    """Open the configured event log and resume from it.

    A durable log that already holds events is replayed, and the service keeps
    appending to it. An empty log starts a fresh service.
    """
    events = open_event_log(config.event_log_path)
    if events.last_seq() == 0:
        return FlightSuretyService(config=config, event_log=events)
    return replay_service(events.read(), config, event_log=events)
