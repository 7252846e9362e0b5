from __future__ import annotations

from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from flightsurety.api.app import create_app
from flightsurety.runtime import metrics
from flightsurety.testing.fixtures import make_service, register_oracles_with_index, register_oracles_without_index

FEE = str(10**18)


@pytest.fixture()
def svc():
    s = make_service()
    yield s
    s.close()


@pytest.fixture()
def client(svc):
    with TestClient(create_app(service=svc)) as c:
        yield c


def _fund_owner_and_flight(client, svc, flight: str = "FS100", ts: int = 1_700_000_000) -> str:
    owner = svc.airlines.owner
    r = client.post("/v1/airlines/fund", json={"airline": owner, "amount": svc.config.airline_fund})
    assert r.status_code == 200 and r.json()["is_participating"] is True
    r = client.post("/v1/flights/register", json={"airline": owner, "flight": flight, "timestamp": ts})
    assert r.status_code == 200
    return owner


def test_health_does_not_need_a_service() -> None:
    app = create_app(boot_runtime=False)
    with TestClient(app) as c:
        r = c.get("/v1/health")
        assert r.status_code == 200
        assert r.json()["service_attached"] is False

        r = c.get("/v1/status")
        assert r.status_code == 500
        assert r.json()["error"]["code"] == "not_ready"


def test_boot_runtime_uses_build_service_hook(monkeypatch: pytest.MonkeyPatch) -> None:
    from flightsurety.api import app as api_app

    closed = []
    fake = SimpleNamespace(close=lambda: closed.append(True))
    monkeypatch.delenv("FLIGHTSURETY_AGENTS_AUTOSTART", raising=False)
    monkeypatch.setattr(api_app, "build_service", lambda: fake)

    app = api_app.create_app(boot_runtime=True)
    assert app.state.service is fake
    with TestClient(app):
        pass
    assert closed == [True]


def test_register_oracle_and_read_indexes(client) -> None:
    r = client.post("/v1/oracles/register", json={"identity": "oracle-a", "fee_paid": FEE})
    assert r.status_code == 200
    indexes = r.json()["indexes"]
    assert len(indexes) == 3 and all(0 <= i < 10 for i in indexes)

    r = client.get("/v1/oracles/oracle-a/indexes")
    assert r.json()["indexes"] == indexes

    r = client.post("/v1/oracles/register", json={"identity": "oracle-a", "fee_paid": FEE})
    assert r.status_code == 409
    assert r.json()["error"]["code"] == "already_registered"


def test_underpaid_registration_is_402(client) -> None:
    r = client.post("/v1/oracles/register", json={"identity": "cheap", "fee_paid": 10**18 - 1})
    assert r.status_code == 402
    assert r.json()["error"]["code"] == "insufficient_fee"

    r = client.get("/v1/oracles/cheap/indexes")
    assert r.status_code == 404
    assert r.json()["error"]["code"] == "not_registered"


def test_status_request_and_consensus_over_http(client, svc) -> None:
    owner = _fund_owner_and_flight(client, svc)
    oracles = register_oracles_with_index(svc, 7, 3)

    r = client.post("/v1/flights/status-request", json={"airline": owner, "flight": "FS100"})
    assert r.status_code == 200
    body = r.json()
    assert body["index"] == 7 and body["timestamp"] == 1_700_000_000

    results = []
    for o in oracles:
        r = client.post(
            "/v1/oracles/responses",
            json={
                "identity": o,
                "index": 7,
                "airline": owner,
                "flight": "FS100",
                "timestamp": 1_700_000_000,
                "status_code": 20,
            },
        )
        assert r.status_code == 200
        results.append(r.json()["result"])
    assert results == ["pending", "pending", "finalized"]

    r = client.get(f"/v1/flights/{owner}/FS100")
    assert r.json()["flight"]["status_code"] == 20
    assert r.json()["flight"]["status"] == "late_airline"

    r = client.get(f"/v1/requests/{owner}/FS100/1700000000")
    assert r.json()["request"]["is_open"] is False

    r = client.post("/v1/flights/status-request", json={"airline": owner, "flight": "FS100"})
    assert r.status_code == 409
    assert r.json()["error"]["code"] == "request_closed"
    assert r.json()["error"]["expected"] is True


def test_index_mismatch_is_expected_conflict(client, svc) -> None:
    owner = _fund_owner_and_flight(client, svc)
    outsider = register_oracles_without_index(svc, 7, 1)[0]
    client.post("/v1/flights/status-request", json={"airline": owner, "flight": "FS100"})

    r = client.post(
        "/v1/oracles/responses",
        json={"identity": outsider, "index": 7, "airline": owner, "flight": "FS100", "timestamp": 1_700_000_000, "status_code": 10},
    )
    assert r.status_code == 409
    err = r.json()["error"]
    assert err["code"] == "index_mismatch"
    assert err["expected"] is True


def test_unknown_flight_is_404(client, svc) -> None:
    r = client.post("/v1/flights/status-request", json={"airline": svc.airlines.owner, "flight": "NOPE"})
    assert r.status_code == 404
    assert r.json()["error"]["code"] == "unknown_flight"


def test_validation_errors_use_error_envelope(client) -> None:
    r = client.post("/v1/oracles/register", json={"identity": "", "fee_paid": -1})
    assert r.status_code == 422
    assert r.json()["ok"] is False
    assert r.json()["error"]["code"] == "invalid_request"


def test_blank_names_are_422_not_500(client, svc) -> None:
    r = client.post("/v1/oracles/register", json={"identity": "   ", "fee_paid": FEE})
    assert r.status_code == 422
    assert r.json()["ok"] is False
    assert r.json()["error"]["code"] == "invalid_request"
    assert svc.registry.count() == 0

    r = client.post("/v1/airlines/register", json={"airline": " ", "by": svc.airlines.owner})
    assert r.status_code == 422
    assert r.json()["error"]["code"] == "invalid_request"


def test_operational_switch_over_http(client, svc) -> None:
    r = client.post("/v1/status/operational", json={"operational": False, "caller": "airline-7"})
    assert r.status_code == 403

    r = client.post("/v1/status/operational", json={"operational": False, "caller": svc.airlines.owner})
    assert r.status_code == 200 and r.json()["operational"] is False

    r = client.post("/v1/oracles/register", json={"identity": "late", "fee_paid": FEE})
    assert r.status_code == 503
    assert r.json()["error"]["code"] == "not_operational"

    assert client.get("/v1/status").json()["operational"] is False


def test_airline_votes_over_http(client, svc) -> None:
    owner = svc.airlines.owner
    client.post("/v1/airlines/fund", json={"airline": owner, "amount": svc.config.airline_fund})
    r = client.post("/v1/airlines/register", json={"airline": "airline-1", "by": owner})
    assert r.json()["admitted"] is True

    r = client.get("/v1/airlines/airline-1")
    assert r.json()["is_participating"] is False

    r = client.post("/v1/flights/register", json={"airline": "airline-1", "flight": "X1", "timestamp": 1})
    assert r.status_code == 403
    assert r.json()["error"]["code"] == "airline_not_participating"


def test_events_feed_filters_by_kind_and_since(client, svc) -> None:
    _fund_owner_and_flight(client, svc)
    client.post("/v1/oracles/register", json={"identity": "o1", "fee_paid": FEE})

    r = client.get("/v1/events")
    seqs = [e["seq"] for e in r.json()["events"]]
    assert seqs == sorted(seqs) and seqs[0] == 1

    r = client.get("/v1/events", params={"kind": "oracle_registered"})
    evs = r.json()["events"]
    assert [e["payload"]["identity"] for e in evs] == ["o1"]

    r = client.get("/v1/events", params={"since": seqs[-2]})
    assert [e["seq"] for e in r.json()["events"]] == [seqs[-1]]


def test_request_size_limit_returns_413(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FLIGHTSURETY_MAX_REQUEST_BYTES", "128")
    monkeypatch.delenv("FLIGHTSURETY_SIZE_LIMIT_DISABLE", raising=False)
    svc = make_service()
    with TestClient(create_app(service=svc)) as c:
        r = c.post("/v1/oracles/register", json={"identity": "x" * 500, "fee_paid": FEE})
    assert r.status_code == 413
    assert r.json()["error"]["code"] == "request_too_large"
    assert svc.registry.count() == 0


def test_metrics_endpoint_is_opt_in(monkeypatch: pytest.MonkeyPatch, client, svc) -> None:
    monkeypatch.delenv("FLIGHTSURETY_METRICS_ENABLED", raising=False)
    r = client.get("/v1/metrics")
    assert r.status_code == 404
    assert r.json()["error"]["code"] == "metrics_disabled"

    monkeypatch.setenv("FLIGHTSURETY_METRICS_ENABLED", "1")
    metrics.reset()
    client.post("/v1/oracles/register", json={"identity": "m1", "fee_paid": FEE})
    r = client.get("/v1/metrics")
    assert r.status_code == 200
    assert "flightsurety_oracles_registered 1" in r.text
    assert "# TYPE flightsurety_oracles_total gauge" in r.text
