from __future__ import annotations

import pytest

from flightsurety.runtime import metrics
from flightsurety.runtime.errors import RequestClosed
from flightsurety.testing.fixtures import fund_owner_and_register_flight, make_service, register_oracles_with_index


@pytest.fixture(autouse=True)
def _reset_metrics():
    metrics.reset()
    yield
    metrics.reset()


def test_prometheus_text_lists_counters_and_gauges() -> None:
    metrics.inc_counter("a_total", 2)
    metrics.set_gauge("b_open", 5)
    text = metrics.format_prometheus()
    assert "# TYPE flightsurety_a_total counter\nflightsurety_a_total 2" in text
    assert "# TYPE flightsurety_b_open gauge\nflightsurety_b_open 5" in text
    assert text.endswith("\n")


def test_consensus_flow_updates_counters() -> None:
    svc = make_service()
    owner, flight, ts = fund_owner_and_register_flight(svc)
    oracles = register_oracles_with_index(svc, 7, 4)
    svc.request_flight_status(owner, flight)
    for o in oracles[:3]:
        svc.submit_response(o, 7, owner, flight, ts, 20)
    with pytest.raises(RequestClosed):
        svc.submit_response(oracles[3], 7, owner, flight, ts, 20)

    assert metrics.get_counter("requests_opened") == 1
    assert metrics.get_counter("responses_accepted") == 3
    assert metrics.get_counter("requests_finalized") == 1
    assert metrics.get_counter("responses_rejected_request_closed") == 1
    assert metrics.snapshot()["gauges"]["requests_open"] == 0
