from __future__ import annotations

"""Injected randomness.

The registry and the request ledger never touch a global RNG. They receive a
RandomSource at construction so tests can pin every draw while production uses
OS entropy.
"""

import random
import secrets
import threading
from typing import Optional, Protocol, Sequence, TypeVar

T = TypeVar("T")


class RandomSource(Protocol):
    def randbelow(self, n: int) -> int: ...

    def entropy(self) -> str: ...

    def choice(self, seq: Sequence[T]) -> T: ...


class SeededRandom:
    """Reproducible source backed by random.Random. Thread-safe."""

    def __init__(self, seed: Optional[int] = None) -> None:
        self._rng = random.Random(seed)
        self._lock = threading.Lock()

    def randbelow(self, n: int) -> int:
        if int(n) <= 0:
            raise ValueError("n must be > 0")
        with self._lock:
            return self._rng.randrange(int(n))

    def entropy(self) -> str:
        with self._lock:
            return f"{self._rng.getrandbits(128):032x}"

    def choice(self, seq: Sequence[T]) -> T:
        if not seq:
            raise ValueError("cannot choose from an empty sequence")
        return seq[self.randbelow(len(seq))]


class SystemRandomSource:
    """Unpredictable source for production processes."""

    def randbelow(self, n: int) -> int:
        if int(n) <= 0:
            raise ValueError("n must be > 0")
        return secrets.randbelow(int(n))

    def entropy(self) -> str:
        return secrets.token_hex(16)

    def choice(self, seq: Sequence[T]) -> T:
        if not seq:
            raise ValueError("cannot choose from an empty sequence")
        return secrets.choice(seq)


def random_source_for_seed(seed: Optional[int]) -> RandomSource:
    if seed is None:
        return SystemRandomSource()
    return SeededRandom(seed)


__all__ = ["RandomSource", "SeededRandom", "SystemRandomSource", "random_source_for_seed"]
