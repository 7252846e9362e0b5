from __future__ import annotations

import threading

import pytest

from flightsurety.runtime.errors import AlreadyRegistered, InsufficientFee, NotOperational, NotRegistered
from flightsurety.runtime.event_log import ORACLE_REGISTERED
from flightsurety.testing.fixtures import make_service


def test_register_returns_triple_and_indexes_of_is_stable() -> None:
    svc = make_service()
    triple = svc.register_oracle("oracle-a", svc.config.registration_fee)
    assert len(triple) == 3
    assert all(0 <= i < svc.config.max_index for i in triple)
    for _ in range(5):
        assert svc.indexes_of("oracle-a") == triple


def test_fee_one_below_minimum_is_rejected_and_nothing_is_stored() -> None:
    svc = make_service()
    before = svc.events.last_seq()
    with pytest.raises(InsufficientFee):
        svc.register_oracle("cheap", svc.config.registration_fee - 1)
    assert not svc.registry.is_registered("cheap")
    with pytest.raises(NotRegistered):
        svc.indexes_of("cheap")
    assert svc.events.last_seq() == before

    # A corrected retry succeeds.
    assert len(svc.register_oracle("cheap", svc.config.registration_fee)) == 3


def test_second_registration_fails_and_keeps_original_triple() -> None:
    svc = make_service()
    triple = svc.register_oracle("oracle-a", svc.config.registration_fee)
    with pytest.raises(AlreadyRegistered):
        svc.register_oracle("oracle-a", svc.config.registration_fee * 2)
    assert svc.indexes_of("oracle-a") == triple
    assert svc.registry.count() == 1


def test_registration_emits_auditable_event() -> None:
    svc = make_service()
    triple = svc.register_oracle("oracle-a", svc.config.registration_fee)
    evs = [e for e in svc.events.read() if e.kind == ORACLE_REGISTERED]
    assert len(evs) == 1
    p = evs[0].payload
    assert p["identity"] == "oracle-a"
    assert tuple(p["indexes"]) == triple
    assert p["counter"] == 0
    assert p["entropy"]


def test_concurrent_double_registration_admits_exactly_one() -> None:
    svc = make_service()
    barrier = threading.Barrier(8)
    outcomes: list[str] = []
    lock = threading.Lock()

    def _worker() -> None:
        barrier.wait()
        try:
            svc.register_oracle("racer", svc.config.registration_fee)
            res = "ok"
        except AlreadyRegistered:
            res = "dup"
        with lock:
            outcomes.append(res)

    threads = [threading.Thread(target=_worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(10)

    assert outcomes.count("ok") == 1
    assert outcomes.count("dup") == 7
    assert len([e for e in svc.events.read() if e.kind == ORACLE_REGISTERED]) == 1


def test_registration_blocked_while_paused() -> None:
    svc = make_service()
    svc.set_operational(False, caller=svc.airlines.owner)
    with pytest.raises(NotOperational):
        svc.register_oracle("oracle-a", svc.config.registration_fee)
