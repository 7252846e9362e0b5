from __future__ import annotations

"""Append-only event log.

Registry, ledger and consensus depend only on `append`. `read` and `subscribe`
serve replay, reporting and the oracle agents.

Ordering:
  - seq is assigned under the log lock, starting at 1, strictly increasing
  - subscribers receive events in seq order
"""

import json
import logging
import queue
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Protocol

from flightsurety.runtime.sqlite_db import SqliteDB, _canon_json

Json = Dict[str, Any]

log = logging.getLogger("flightsurety.event_log")

ORACLE_REGISTERED = "oracle_registered"
REQUEST_OPENED = "request_opened"
ORACLE_REPORT = "oracle_report"
STATUS_FINALIZED = "status_finalized"
AIRLINE_REGISTERED = "airline_registered"
AIRLINE_VOTED = "airline_voted"
AIRLINE_FUNDED = "airline_funded"
FLIGHT_REGISTERED = "flight_registered"
OPERATIONAL_CHANGED = "operational_changed"

EVENT_KINDS = frozenset(
    {
        ORACLE_REGISTERED,
        REQUEST_OPENED,
        ORACLE_REPORT,
        STATUS_FINALIZED,
        AIRLINE_REGISTERED,
        AIRLINE_VOTED,
        AIRLINE_FUNDED,
        FLIGHT_REGISTERED,
        OPERATIONAL_CHANGED,
    }
)


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True, slots=True)
class Event:
    seq: int
    kind: str
    payload: Json = field(default_factory=dict)
    ts_ms: int = 0

    def to_json(self) -> Json:
        return {"seq": self.seq, "kind": self.kind, "payload": dict(self.payload), "ts_ms": self.ts_ms}

    @staticmethod
    def from_json(j: Json) -> "Event":
        return Event(
            seq=int(j.get("seq", 0)),
            kind=str(j.get("kind", "")),
            payload=dict(j.get("payload") or {}),
            ts_ms=int(j.get("ts_ms", 0)),
        )


class Subscription:
    """A subscriber's private, unbounded queue of events."""

    def __init__(self, owner: "_FanOut") -> None:
        self._owner = owner
        self._q: "queue.Queue[Event]" = queue.Queue()
        self.closed = False

    def _deliver(self, ev: Event) -> None:
        self._q.put(ev)

    def get(self, timeout: Optional[float] = None) -> Optional[Event]:
        try:
            return self._q.get(timeout=timeout)
        except queue.Empty:
            return None

    def pending(self) -> int:
        return self._q.qsize()

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._owner._unsubscribe(self)


class EventLog(Protocol):
    def append(self, kind: str, payload: Json) -> Event: ...

    def read(self, since_seq: int = 0, limit: Optional[int] = None) -> List[Event]: ...

    def subscribe(self) -> Subscription: ...

    def last_seq(self) -> int: ...

    def close(self) -> None: ...


class _FanOut:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subs: List[Subscription] = []

    def subscribe(self) -> Subscription:
        sub = Subscription(self)
        with self._lock:
            self._subs.append(sub)
        return sub

    def _unsubscribe(self, sub: Subscription) -> None:
        with self._lock:
            self._subs = [s for s in self._subs if s is not sub]

    def _fan_out(self, ev: Event) -> None:
        with self._lock:
            subs = list(self._subs)
        for s in subs:
            s._deliver(ev)

    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subs)


def _check_append(kind: str, payload: Json) -> str:
    k = str(kind or "").strip()
    if k not in EVENT_KINDS:
        raise ValueError(f"unknown event kind: {kind!r}")
    if not isinstance(payload, dict):
        raise ValueError("event payload must be a dict")
    # Fail fast on non-JSON payloads.
    _canon_json(payload)
    return k


class MemoryEventLog(_FanOut):
    """In-process log. Optionally seeded with existing events (replay)."""

    def __init__(self, initial: Optional[Iterable[Event]] = None) -> None:
        super().__init__()
        self._append_lock = threading.Lock()
        self._events: List[Event] = []
        for ev in initial or []:
            if self._events and ev.seq <= self._events[-1].seq:
                raise ValueError("initial events must be in strictly increasing seq order")
            self._events.append(ev)

    def append(self, kind: str, payload: Json) -> Event:
        k = _check_append(kind, payload)
        with self._append_lock:
            seq = (self._events[-1].seq + 1) if self._events else 1
            ev = Event(seq=seq, kind=k, payload=dict(payload), ts_ms=_now_ms())
            self._events.append(ev)
            # Fan out while holding the append lock so every subscriber sees seq order.
            self._fan_out(ev)
        return ev

    def read(self, since_seq: int = 0, limit: Optional[int] = None) -> List[Event]:
        with self._append_lock:
            out = [ev for ev in self._events if ev.seq > int(since_seq)]
        if limit is not None and int(limit) > 0:
            out = out[: int(limit)]
        return out

    def last_seq(self) -> int:
        with self._append_lock:
            return self._events[-1].seq if self._events else 0

    def __len__(self) -> int:
        with self._append_lock:
            return len(self._events)

    def close(self) -> None:
        with self._lock:
            subs = list(self._subs)
        for s in subs:
            s.close()


class SqliteEventLog(_FanOut):
    """Durable log persisted in SQLite. Survives restarts; replay reads it back."""

    def __init__(self, *, path: str) -> None:
        super().__init__()
        self._db = SqliteDB(path=path)
        self._db.init_schema()
        self._append_lock = threading.Lock()

    @property
    def path(self) -> str:
        return self._db.path

    def append(self, kind: str, payload: Json) -> Event:
        k = _check_append(kind, payload)
        body = _canon_json(payload)
        with self._append_lock:
            now = _now_ms()
            with self._db.write_tx() as con:
                row = con.execute("SELECT COALESCE(MAX(seq), 0) AS n FROM events;").fetchone()
                seq = int(row["n"]) + 1
                con.execute(
                    "INSERT INTO events(seq, kind, payload_json, ts_ms) VALUES(?, ?, ?, ?);",
                    (seq, k, body, now),
                )
            ev = Event(seq=seq, kind=k, payload=json.loads(body), ts_ms=now)
            self._fan_out(ev)
        return ev

    def read(self, since_seq: int = 0, limit: Optional[int] = None) -> List[Event]:
        lim = int(limit) if limit is not None and int(limit) > 0 else -1
        with self._db.connection() as con:
            rows = con.execute(
                "SELECT seq, kind, payload_json, ts_ms FROM events WHERE seq > ? ORDER BY seq ASC LIMIT ?;",
                (int(since_seq), lim),
            ).fetchall()
        out: List[Event] = []
        for r in rows:
            payload = json.loads(str(r["payload_json"]))
            if not isinstance(payload, dict):
                log.warning("skipping event seq=%s with non-object payload", r["seq"])
                continue
            out.append(Event(seq=int(r["seq"]), kind=str(r["kind"]), payload=payload, ts_ms=int(r["ts_ms"])))
        return out

    def last_seq(self) -> int:
        with self._db.connection() as con:
            row = con.execute("SELECT COALESCE(MAX(seq), 0) AS n FROM events;").fetchone()
            return int(row["n"])

    def close(self) -> None:
        with self._lock:
            subs = list(self._subs)
        for s in subs:
            s.close()


def open_event_log(path: str = "") -> EventLog:
    p = str(path or "").strip()
    if not p:
        return MemoryEventLog()
    return SqliteEventLog(path=p)


__all__ = [
    "Event",
    "EventLog",
    "Subscription",
    "MemoryEventLog",
    "SqliteEventLog",
    "open_event_log",
    "EVENT_KINDS",
    "ORACLE_REGISTERED",
    "REQUEST_OPENED",
    "ORACLE_REPORT",
    "STATUS_FINALIZED",
    "AIRLINE_REGISTERED",
    "AIRLINE_VOTED",
    "AIRLINE_FUNDED",
    "FLIGHT_REGISTERED",
    "OPERATIONAL_CHANGED",
]
