from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest

from flightsurety.runtime.sqlite_db import SqliteDB


def _pragma(con: sqlite3.Connection, name: str) -> int | str:
    row = con.execute(f"PRAGMA {name};").fetchone()
    if row is None:
        raise AssertionError(f"missing pragma: {name}")
    return row[0]


def test_event_db_pragmas_are_applied(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FLIGHTSURETY_MODE", "prod")
    monkeypatch.delenv("FLIGHTSURETY_SQLITE_SYNCHRONOUS", raising=False)
    monkeypatch.setenv("FLIGHTSURETY_SQLITE_BUSY_TIMEOUT_MS", "1234")

    db = SqliteDB(path=str(tmp_path / "nested" / "events.db"))
    db.init_schema()

    with db.connection() as con:
        assert str(_pragma(con, "journal_mode")).lower() == "wal"
        # FULL is the prod default.
        assert int(_pragma(con, "synchronous")) == 2
        assert int(_pragma(con, "temp_store")) == 2
        assert int(_pragma(con, "busy_timeout")) == 1234


def test_synchronous_override_and_dev_default(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FLIGHTSURETY_MODE", "dev")
    monkeypatch.delenv("FLIGHTSURETY_SQLITE_SYNCHRONOUS", raising=False)
    db = SqliteDB(path=str(tmp_path / "a.db"))
    with db.connection() as con:
        assert int(_pragma(con, "synchronous")) == 1

    monkeypatch.setenv("FLIGHTSURETY_SQLITE_SYNCHRONOUS", "off")
    with db.connection() as con:
        assert int(_pragma(con, "synchronous")) == 0


def test_schema_version_mismatch_refuses_to_start(tmp_path: Path) -> None:
    db = SqliteDB(path=str(tmp_path / "events.db"))
    db.init_schema()
    with db.write_tx() as con:
        con.execute("UPDATE meta SET value='99' WHERE key='schema_version';")

    with pytest.raises(RuntimeError):
        SqliteDB(path=db.path).init_schema()


def test_failed_write_rolls_back(tmp_path: Path) -> None:
    db = SqliteDB(path=str(tmp_path / "events.db"))
    db.init_schema()
    with pytest.raises(ZeroDivisionError):
        with db.write_tx() as con:
            con.execute("INSERT INTO events(seq, kind, payload_json, ts_ms) VALUES(1, 'x', '{}', 0);")
            1 / 0
    with db.connection() as con:
        assert con.execute("SELECT COUNT(*) FROM events;").fetchone()[0] == 0
