from __future__ import annotations

"""Test helpers. TEST ONLY."""

import hashlib
from typing import List, Optional, Sequence, Tuple, TypeVar

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

from flightsurety.runtime.config import OracleConfig, default_oracle_config, with_overrides
from flightsurety.runtime.event_log import EventLog, MemoryEventLog
from flightsurety.runtime.randomness import SeededRandom
from flightsurety.runtime.service import FlightSuretyService

T = TypeVar("T")


class FixedRandom:
    """RandomSource that replays a script of randbelow values, then repeats the last one."""

    def __init__(self, values: Sequence[int], *, entropy: str = "fixed") -> None:
        if not values:
            raise ValueError("values must be non-empty")
        self._values = [int(v) for v in values]
        self._pos = 0
        self._entropy = entropy

    def randbelow(self, n: int) -> int:
        v = self._values[min(self._pos, len(self._values) - 1)]
        self._pos += 1
        return int(v) % int(n)

    def entropy(self) -> str:
        return self._entropy

    def choice(self, seq: Sequence[T]) -> T:
        return seq[self.randbelow(len(seq))]


def deterministic_ed25519_keypair(*, label: str) -> Tuple[str, str]:
    """Derive (privkey_hex, pubkey_hex) from a stable label."""
    seed = hashlib.sha256(("flightsurety-test-ed25519:" + (label or "")).encode("utf-8")).digest()
    sk = Ed25519PrivateKey.from_private_bytes(seed)
    pk = sk.public_key().public_bytes(serialization.Encoding.Raw, serialization.PublicFormat.Raw)
    return seed.hex(), pk.hex()


def make_service(
    *,
    request_index: int = 7,
    seed: int = 1234,
    config: Optional[OracleConfig] = None,
    event_log: Optional[EventLog] = None,
    **overrides,
) -> FlightSuretyService:
    """Service whose requests always draw `request_index` and whose triples follow `seed`."""
    cfg = config or with_overrides(default_oracle_config(), mode="dev", **overrides)
    return FlightSuretyService(
        config=cfg,
        event_log=event_log if event_log is not None else MemoryEventLog(),
        random_source=FixedRandom([request_index]),
        index_random_source=SeededRandom(seed),
    )


def register_oracles_with_index(
    svc: FlightSuretyService,
    index: int,
    n: int,
    *,
    prefix: str = "oracle",
    max_attempts: int = 2000,
    pubkeys: Optional[dict] = None,
) -> List[str]:
    """Register identities until `n` of them hold `index` in their triple.

    Returns those `n` identities, in registration order.
    """
    matched: List[str] = []
    for i in range(max_attempts):
        identity = f"{prefix}-{i}"
        pubkey = (pubkeys or {}).get(identity)
        triple = svc.register_oracle(identity, svc.config.registration_fee, pubkey=pubkey)
        if int(index) in triple:
            matched.append(identity)
            if len(matched) >= n:
                return matched
    raise RuntimeError(f"could not find {n} oracles holding index {index}")


def register_oracles_without_index(svc: FlightSuretyService, index: int, n: int, *, prefix: str = "other") -> List[str]:
    out: List[str] = []
    for i in range(2000):
        identity = f"{prefix}-{i}"
        triple = svc.register_oracle(identity, svc.config.registration_fee)
        if int(index) not in triple:
            out.append(identity)
            if len(out) >= n:
                return out
    raise RuntimeError(f"could not find {n} oracles without index {index}")


def fund_owner_and_register_flight(
    svc: FlightSuretyService, flight: str = "FS100", timestamp: int = 1_700_000_000
) -> Tuple[str, str, int]:
    owner = svc.airlines.owner
    if not svc.airlines.is_participating(owner):
        svc.fund_airline(owner, svc.config.airline_fund)
    svc.register_flight(owner, flight, timestamp)
    return owner, flight, timestamp


def default_test_config(**overrides) -> OracleConfig:
    return with_overrides(default_oracle_config(), mode="dev", **overrides)
