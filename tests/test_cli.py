from __future__ import annotations

import pytest

from flightsurety.runtime.event_log import (
    AIRLINE_REGISTERED,
    FLIGHT_REGISTERED,
    ORACLE_REGISTERED,
    SqliteEventLog,
)
from flightsurety.runtime.replay import replay_service
from flightsurety.services import oracle_agents
from flightsurety.testing.fixtures import default_test_config


@pytest.fixture(autouse=True)
def _isolated_cli(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    from flightsurety.api import structured_logging

    monkeypatch.setattr(structured_logging, "configure_structured_logging", lambda *_a, **_k: None)
    monkeypatch.setattr(oracle_agents.signal, "signal", lambda *_a, **_k: None)
    monkeypatch.setenv("FLIGHTSURETY_DOTENV_PATH", str(tmp_path / "missing.env"))
    monkeypatch.delenv("FLIGHTSURETY_CONFIG_PATH", raising=False)
    monkeypatch.delenv("FLIGHTSURETY_MIN_RESPONSES", raising=False)


def test_bad_config_exits_2(tmp_path, capsys) -> None:
    p = tmp_path / "bad.json"
    p.write_text('{"min_responses": 0}', encoding="utf-8")
    assert oracle_agents.main(["--config", str(p)]) == 2
    assert "invalid config" in capsys.readouterr().err


def test_missing_config_file_exits_2(tmp_path) -> None:
    assert oracle_agents.main(["--config", str(tmp_path / "nope.yaml")]) == 2


def test_demo_run_with_event_log_then_exit(tmp_path) -> None:
    db = tmp_path / "events.db"
    rc = oracle_agents.main(
        ["--oracles", "6", "--seed", "3", "--demo", "--duration", "0.3", "--no-sign", "--event-log", str(db)]
    )
    assert rc == 0
    assert db.exists()


def test_restart_on_the_same_event_log_resumes_it(tmp_path) -> None:
    db = str(tmp_path / "events.db")
    argv = ["--oracles", "6", "--seed", "3", "--demo", "--duration", "0.3", "--event-log", db]
    assert oracle_agents.main(argv) == 0
    assert oracle_agents.main(argv) == 0

    log = SqliteEventLog(path=db)
    events = log.read()
    log.close()
    assert [e.seq for e in events] == list(range(1, len(events) + 1))

    kinds = [e.kind for e in events]
    assert kinds.count(AIRLINE_REGISTERED) == 1
    assert kinds.count(FLIGHT_REGISTERED) == len(oracle_agents.DEMO_FLIGHTS)
    registered = [e.payload["identity"] for e in events if e.kind == ORACLE_REGISTERED]
    assert registered == [f"oracle-{n}" for n in range(6)]

    restored = replay_service(events, config=default_test_config())
    assert restored.registry.count() == 6
