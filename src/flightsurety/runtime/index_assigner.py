from __future__ import annotations

"""Deterministic oracle index assignment.

Each registering oracle receives three slot indices in [0, max_index). The
triple is a pure function of (identity, counter, entropy seed) so any observer
holding the event log can recompute and audit it.

Duplicates inside one triple are allowed.
"""

import hashlib
import threading
from dataclasses import dataclass
from typing import Tuple

from flightsurety.runtime.randomness import RandomSource

IndexTriple = Tuple[int, int, int]

DEFAULT_MAX_INDEX = 10


def _sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def _index_at(identity: str, counter: int, entropy_seed: str, max_index: int) -> int:
    material = f"flightsurety:index:{identity}:{int(counter)}:{entropy_seed}".encode("utf-8")
    digest = _sha256_hex(material)
    # First 16 hex chars as an integer for a stable mapping.
    return int(digest[:16], 16) % int(max_index)


def assign(
    identity: str,
    counter: int,
    entropy_seed: str,
    *,
    max_index: int = DEFAULT_MAX_INDEX,
) -> IndexTriple:
    """Return the index triple for (identity, counter, entropy_seed).

    Slot k uses counter + k, so one registration consumes three counter values.
    """
    if int(max_index) <= 0:
        raise ValueError("max_index must be > 0")
    ident = str(identity)
    seed = str(entropy_seed or "")
    c = int(counter)
    return (
        _index_at(ident, c, seed, max_index),
        _index_at(ident, c + 1, seed, max_index),
        _index_at(ident, c + 2, seed, max_index),
    )


@dataclass(frozen=True, slots=True)
class IndexAssignment:
    indexes: IndexTriple
    counter: int
    entropy: str


class IndexAssigner:
    """Stateful wrapper: owns the counter and draws entropy from the injected source."""

    def __init__(self, *, random_source: RandomSource, max_index: int = DEFAULT_MAX_INDEX) -> None:
        self.max_index = int(max_index)
        self._random = random_source
        self._counter = 0
        self._lock = threading.Lock()

    @property
    def counter(self) -> int:
        return self._counter

    def next_triple(self, identity: str) -> IndexAssignment:
        with self._lock:
            counter = self._counter
            self._counter += 3
        entropy = self._random.entropy()
        indexes = assign(identity, counter, entropy, max_index=self.max_index)
        return IndexAssignment(indexes=indexes, counter=counter, entropy=entropy)

    def advance_to(self, counter: int) -> None:
        """Move the counter past a replayed assignment."""
        with self._lock:
            self._counter = max(self._counter, int(counter) + 3)


__all__ = ["IndexTriple", "IndexAssignment", "IndexAssigner", "assign", "DEFAULT_MAX_INDEX"]
