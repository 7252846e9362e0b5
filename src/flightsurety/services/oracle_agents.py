from __future__ import annotations

import argparse
import logging
import signal
import sys
import threading
import time
from typing import Dict, List, Optional, Sequence, Set, Tuple

from flightsurety.crypto.sig import derive_keypair, generate_keypair, sign_response
from flightsurety.env import load_dotenv_if_present
from flightsurety.runtime.config import OracleConfig, load_oracle_config, with_overrides
from flightsurety.runtime.errors import FlightSuretyError, RequestClosed
from flightsurety.runtime.event_log import REQUEST_OPENED, Event
from flightsurety.runtime.index_assigner import IndexTriple
from flightsurety.runtime.randomness import RandomSource, SeededRandom, random_source_for_seed
from flightsurety.runtime.replay import load_service
from flightsurety.runtime.request_ledger import RequestKey, request_key
from flightsurety.runtime.runtime_logging import log_event
from flightsurety.runtime.service import FlightSuretyService
from flightsurety.runtime.status_codes import WEIGHTED_STATUS_TABLE

log = logging.getLogger("flightsurety.oracle_agent")

DEMO_FLIGHTS = (
    "FS-BCND001",
    "FS-BCND002",
    "FS-BCND003",
    "FS-BCND004",
    "FS-BCND005",
)


class OracleAgent(threading.Thread):
    """One oracle identity listening for requests on its three indices.

    The subscription is taken at construction so no request opened between
    construction and start() is missed. Each request key is answered at most
    once; the ledger's duplicate guard is the second line.
    """

    def __init__(
        self,
        *,
        service: FlightSuretyService,
        identity: str,
        indexes: IndexTriple,
        random_source: RandomSource,
        privkey: Optional[str] = None,
        poll_seconds: float = 0.25,
        status_table: Sequence[int] = WEIGHTED_STATUS_TABLE,
    ) -> None:
        super().__init__(name=f"oracle-agent:{identity}", daemon=True)
        self.service = service
        self.identity = str(identity)
        self.indexes = tuple(int(i) for i in indexes)
        self.poll_seconds = max(0.01, float(poll_seconds))
        self._random = random_source
        self._privkey = privkey
        self._table = tuple(status_table)
        self._seen: Set[RequestKey] = set()
        self._stop_evt = threading.Event()
        self._sub = service.events.subscribe()

        self.submitted = 0
        self.rejected = 0

    def stop(self) -> None:
        self._stop_evt.set()

    @property
    def stopped(self) -> bool:
        return self._stop_evt.is_set()

    def catch_up(self) -> int:
        """Answer requests that were already open before the subscription. Returns how many were answered."""
        answered = 0
        for req in self.service.ledger.open_requests():
            if req.index not in self.indexes or req.has_voted(self.identity):
                continue
            if self._answer(req.index, req.airline, req.flight, req.timestamp):
                answered += 1
        return answered

    def run(self) -> None:
        try:
            try:
                self.catch_up()
            except Exception:
                log.exception("oracle agent %s failed to catch up on open requests", self.identity)
            while not self._stop_evt.is_set():
                ev = self._sub.get(timeout=self.poll_seconds)
                if ev is None:
                    continue
                try:
                    self.handle(ev)
                except Exception:
                    # Keep the agent alive across unexpected failures on a single event.
                    log.exception("oracle agent %s failed on event seq=%s", self.identity, ev.seq)
        finally:
            self._sub.close()

    def handle(self, ev: Event) -> Optional[bool]:
        """Answer a request_opened event. Returns None when the event is not ours."""
        if ev.kind != REQUEST_OPENED:
            return None
        p = ev.payload
        index = int(p["index"])
        if index not in self.indexes:
            return None
        return self._answer(index, p["airline"], p["flight"], p["timestamp"])

    def _answer(self, index: int, airline: str, flight: str, timestamp: int) -> Optional[bool]:
        key = request_key(airline, flight, timestamp)
        if key in self._seen:
            return None
        self._seen.add(key)

        status_code = int(self._random.choice(self._table))
        sig = None
        if self._privkey:
            sig = sign_response(
                privkey=self._privkey,
                identity=self.identity,
                index=index,
                airline=key[0],
                flight=key[1],
                timestamp=key[2],
                status_code=status_code,
            )

        try:
            result = self.service.submit_response(
                self.identity, index, key[0], key[1], key[2], status_code, sig=sig
            )
        except FlightSuretyError as e:
            self.rejected += 1
            if e.expected:
                log.debug("oracle %s response not needed: %s", self.identity, e.code)
            else:
                log_event(log, "oracle_response_rejected", level=logging.WARNING, identity=self.identity, code=e.code)
            return False

        self.submitted += 1
        log_event(
            log,
            "oracle_response_submitted",
            level=logging.DEBUG,
            identity=self.identity,
            index=index,
            flight=key[1],
            status_code=status_code,
            result=result.status,
        )
        return True


class OracleFleet:
    """Registers N oracle identities on a service and runs one agent per identity."""

    def __init__(
        self,
        *,
        service: FlightSuretyService,
        count: int,
        fee: Optional[int] = None,
        prefix: str = "oracle",
        seed: Optional[int] = None,
        sign: bool = True,
        poll_seconds: float = 0.25,
        status_table: Sequence[int] = WEIGHTED_STATUS_TABLE,
    ) -> None:
        self.service = service
        self.count = max(0, int(count))
        self.fee = int(service.config.registration_fee if fee is None else fee)
        self.prefix = str(prefix)
        self.seed = seed
        self.sign = bool(sign)
        self.poll_seconds = float(poll_seconds)
        self.status_table = tuple(status_table)
        self.agents: List[OracleAgent] = []
        self._keys: Dict[str, Tuple[str, str]] = {}

    def _agent_random(self, n: int) -> RandomSource:
        if self.seed is None:
            return random_source_for_seed(None)
        return SeededRandom(int(self.seed) * 1_000_003 + n)

    def _keypair(self, identity: str) -> Tuple[str, str]:
        # Seeded fleets derive keys from (seed, identity); unseeded ones generate fresh keys.
        if self.seed is None:
            return generate_keypair()
        return derive_keypair(f"{self.seed}:{identity}")

    def register_all(self) -> List[str]:
        """Register every identity, reusing ones the service already knows.

        An already-registered oracle is run only when this fleet can answer for
        it: unsigned if it was registered without a key, signed if its key is
        the one this fleet derives. Registration errors propagate to the caller.
        """
        identities: List[str] = []
        reused = 0
        for n in range(self.count):
            identity = f"{self.prefix}-{n}"
            keys = self._keypair(identity) if self.sign else None
            existing = self.service.registry.find(identity)
            if existing is None:
                indexes = self.service.register_oracle(identity, self.fee, pubkey=keys[1] if keys else None)
            elif not existing.pubkey or (keys is not None and keys[1] == existing.pubkey):
                indexes = existing.indexes
                keys = keys if existing.pubkey else None
                reused += 1
            else:
                log_event(log, "oracle_key_unavailable", level=logging.WARNING, identity=identity)
                continue

            if keys is not None:
                self._keys[identity] = keys
            self.agents.append(
                OracleAgent(
                    service=self.service,
                    identity=identity,
                    indexes=indexes,
                    random_source=self._agent_random(n),
                    privkey=keys[0] if keys else None,
                    poll_seconds=self.poll_seconds,
                    status_table=self.status_table,
                )
            )
            identities.append(identity)
        log_event(log, "oracles_registered", count=len(identities), reused=reused)
        return identities

    def start(self) -> None:
        for a in self.agents:
            if not a.is_alive() and not a.stopped:
                a.start()

    def stop(self, timeout: float = 5.0) -> None:
        for a in self.agents:
            a.stop()
        deadline = time.monotonic() + max(0.0, float(timeout))
        for a in self.agents:
            if a.is_alive():
                a.join(max(0.0, deadline - time.monotonic()))

    def __enter__(self) -> "OracleFleet":
        self.start()
        return self

    def __exit__(self, *exc) -> None:
        self.stop()


def register_demo_flights(service: FlightSuretyService, *, fund: Optional[int] = None) -> List[str]:
    """Fund the owner airline and register the demo flights one hour ahead."""
    owner = service.airlines.owner
    if not service.airlines.is_participating(owner):
        service.fund_airline(owner, service.config.airline_fund if fund is None else int(fund))
    ts = int(time.time()) + 60 * 60
    out: List[str] = []
    for code in DEMO_FLIGHTS:
        if service.flights.find(owner, code) is None:
            service.register_flight(owner, code, ts)
        out.append(code)
    return out


def request_demo_statuses(service: FlightSuretyService, codes: Sequence[str]) -> List[str]:
    """Ask for the status of each demo flight. Returns the codes with an open request.

    Flights whose request was finalized in an earlier run are skipped.
    """
    owner = service.airlines.owner
    opened: List[str] = []
    for code in codes:
        try:
            service.request_flight_status(owner, code)
        except RequestClosed:
            log.debug("demo flight %s already has a final status", code)
            continue
        opened.append(code)
    return opened


def _serve_api(service: FlightSuretyService, cfg: OracleConfig) -> None:
    import uvicorn

    from flightsurety.api.app import create_app

    uvicorn.run(create_app(service=service), host=cfg.api_host, port=cfg.api_port, log_level="info")


def main(argv: Optional[list[str]] = None) -> int:
    load_dotenv_if_present()

    from flightsurety.api.structured_logging import configure_structured_logging

    p = argparse.ArgumentParser(description="FlightSurety oracle agents (register N oracles, answer status requests)")
    p.add_argument("--config", default=None, help="JSON or YAML config file")
    p.add_argument("--oracles", type=int, default=None, help="number of oracle identities to register")
    p.add_argument("--seed", type=int, default=None, help="seed for reproducible runs")
    p.add_argument("--event-log", default=None, help="SQLite event log path (default: in-memory)")
    p.add_argument("--demo", action="store_true", help="register demo flights and request their status")
    p.add_argument("--serve", action="store_true", help="serve the HTTP API in this process")
    p.add_argument("--duration", type=float, default=0.0, help="exit after N seconds (0 = until signalled)")
    p.add_argument("--no-sign", action="store_true", help="do not sign oracle responses")
    args = p.parse_args(argv)

    try:
        cfg = load_oracle_config(config_path=args.config)
        overrides = {}
        if args.oracles is not None:
            overrides["oracle_count"] = int(args.oracles)
        if args.seed is not None:
            overrides["seed"] = int(args.seed)
        if args.event_log is not None:
            overrides["event_log_path"] = str(args.event_log)
        if overrides:
            cfg = with_overrides(cfg, **overrides)
    except (OSError, ValueError) as e:
        print(f"invalid config: {e}", file=sys.stderr)
        return 2

    configure_structured_logging(cfg.log_level)

    try:
        service = load_service(cfg)
    except FlightSuretyError as e:
        log_event(log, "event_log_replay_failed", level=logging.ERROR, code=e.code, reason=e.reason)
        return 2
    fleet = OracleFleet(service=service, count=cfg.oracle_count, seed=cfg.seed, sign=not args.no_sign)

    try:
        fleet.register_all()
    except FlightSuretyError as e:
        log_event(log, "oracle_registration_failed", level=logging.ERROR, code=e.code, reason=e.reason)
        service.close()
        return 2

    fleet.start()

    try:
        if args.demo:
            request_demo_statuses(service, register_demo_flights(service))

        if args.serve:
            _serve_api(service, cfg)
        else:
            stop = threading.Event()

            def _on_signal(signum, _frame) -> None:
                log_event(log, "shutdown_signal", signal=int(signum))
                stop.set()

            signal.signal(signal.SIGINT, _on_signal)
            signal.signal(signal.SIGTERM, _on_signal)
            stop.wait(timeout=args.duration if args.duration > 0 else None)
    finally:
        fleet.stop()
        service.close()

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
