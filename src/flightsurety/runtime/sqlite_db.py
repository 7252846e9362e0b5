from __future__ import annotations

"""SQLite storage for the durable event log.

One file, one `events` table keyed by seq, plus a `meta` table holding the
schema version. Connections are opened per operation and never shared across
threads; writers serialize through BEGIN IMMEDIATE.
"""

import json
import os
import random
import sqlite3
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

_SYNC_LEVELS = ("OFF", "NORMAL", "FULL", "EXTRA")


def _canon_json(obj: Any) -> str:
    # No `default=`: a payload that is not plain JSON must fail on append, not on replay.
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def _env_int(name: str, default: int) -> int:
    raw = (os.environ.get(name) or "").strip()
    if not raw:
        return int(default)
    try:
        return int(raw)
    except ValueError:
        return int(default)


def _as_version(v: Any) -> int:
    try:
        return int(str(v))
    except ValueError:
        return 0


def _synchronous_level() -> str:
    """FULL in prod, NORMAL elsewhere; FLIGHTSURETY_SQLITE_SYNCHRONOUS overrides."""
    mode = (os.environ.get("FLIGHTSURETY_MODE") or "prod").strip().lower()
    fallback = "FULL" if mode == "prod" else "NORMAL"
    level = (os.environ.get("FLIGHTSURETY_SQLITE_SYNCHRONOUS") or fallback).strip().upper()
    return level if level in _SYNC_LEVELS else fallback


class SqliteDB:
    SCHEMA_VERSION = 1

    def __init__(self, *, path: str) -> None:
        self.path = str(path)

    def _open(self) -> sqlite3.Connection:
        Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        timeout_ms = _env_int("FLIGHTSURETY_SQLITE_CONNECT_TIMEOUT_MS", 30_000)

        # isolation_level=None: transactions are opened explicitly in write_tx().
        con = sqlite3.connect(self.path, timeout=timeout_ms / 1000.0, isolation_level=None, check_same_thread=False)
        con.row_factory = sqlite3.Row
        for pragma in (
            "journal_mode=WAL",
            f"synchronous={_synchronous_level()}",
            "temp_store=MEMORY",
            f"busy_timeout={max(0, _env_int('FLIGHTSURETY_SQLITE_BUSY_TIMEOUT_MS', timeout_ms))}",
        ):
            con.execute(f"PRAGMA {pragma};")
        return con

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        con = self._open()
        try:
            yield con
        finally:
            con.close()

    def init_schema(self) -> None:
        with self.write_tx() as con:
            con.execute("CREATE TABLE IF NOT EXISTS meta (key TEXT PRIMARY KEY, value TEXT NOT NULL);")
            con.execute(
                """
                CREATE TABLE IF NOT EXISTS events (
                  seq INTEGER PRIMARY KEY,
                  kind TEXT NOT NULL,
                  payload_json TEXT NOT NULL,
                  ts_ms INTEGER NOT NULL
                );
                """
            )
            con.execute("CREATE INDEX IF NOT EXISTS idx_events_kind ON events(kind);")

            row = con.execute("SELECT value FROM meta WHERE key = 'schema_version';").fetchone()
            if row is None:
                con.execute("INSERT INTO meta(key, value) VALUES('schema_version', ?);", (str(self.SCHEMA_VERSION),))
                return
            have = _as_version(row["value"])
            if have != self.SCHEMA_VERSION:
                raise RuntimeError(
                    f"event log schema_version is {have}, expected {self.SCHEMA_VERSION}; refusing to open {self.path}"
                )

    @contextmanager
    def write_tx(self) -> Iterator[sqlite3.Connection]:
        """BEGIN IMMEDIATE with jittered exponential backoff while another writer holds the lock."""
        give_up_at = time.monotonic() + max(250, _env_int("FLIGHTSURETY_SQLITE_WRITE_DEADLINE_MS", 30_000)) / 1000.0
        with self.connection() as con:
            delay = 0.005
            while True:
                try:
                    con.execute("BEGIN IMMEDIATE;")
                    break
                except sqlite3.OperationalError as e:
                    busy = "locked" in str(e).lower() or "busy" in str(e).lower()
                    if not busy or time.monotonic() >= give_up_at:
                        raise
                    time.sleep(delay * random.uniform(0.5, 1.5))
                    delay = min(0.25, delay * 2)

            try:
                yield con
            except BaseException:
                con.execute("ROLLBACK;")
                raise
            con.execute("COMMIT;")