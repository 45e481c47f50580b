# galton_bins.py
# Per-bin landing counters for the Galton board simulation.
# - One counter per bin, each guarded by its own lock.
# - Lifecycle: EMPTY -> FILLING (concurrent increments) -> SEALED (read-only).

import threading
from typing import List, Tuple

import numpy as np

EMPTY = "empty"
FILLING = "filling"
SEALED = "sealed"


class BinStoreError(RuntimeError):
    """Raised when the store is used outside of its current lifecycle phase."""


class BinStore:
    def __init__(self, size: int):
        if size < 2 or size % 2 != 0:
            raise ValueError(f"BinStore size must be even and >= 2, got {size}")
        self._counts = [0] * size
        self._locks = [threading.Lock() for _ in range(size)]
        self._state_lock = threading.Lock()
        self._state = EMPTY

    def __len__(self) -> int:
        return len(self._counts)

    @property
    def state(self) -> str:
        return self._state

    @property
    def sealed(self) -> bool:
        return self._state == SEALED

    # ---------- Filling ----------

    def increment(self, index: int) -> None:
        """Add exactly one to the counter at ``index``; safe from any thread."""
        if not 0 <= index < len(self._counts):
            raise IndexError(f"bin index {index} out of range [0, {len(self._counts) - 1}]")
        if self._state != FILLING:
            self._begin_filling()
        with self._locks[index]:
            self._counts[index] += 1

    def _begin_filling(self) -> None:
        with self._state_lock:
            if self._state == SEALED:
                raise BinStoreError("cannot increment a sealed BinStore")
            self._state = FILLING

    def seal(self) -> None:
        """
        Mark the store read-only.

        Only the owner may call this, and only once every increment is known to
        have completed; nothing here waits for in-flight writers.
        """
        with self._state_lock:
            self._state = SEALED

    # ---------- Reading ----------

    def _check_sealed(self) -> None:
        if self._state != SEALED:
            raise BinStoreError(f"BinStore is not sealed (state={self._state})")

    def read_all(self) -> List[Tuple[int, int]]:
        """Return ``(index, count)`` pairs in bin order."""
        self._check_sealed()
        return list(enumerate(self._counts))

    def counts(self) -> List[int]:
        self._check_sealed()
        return list(self._counts)

    def as_array(self) -> np.ndarray:
        self._check_sealed()
        return np.array(self._counts, dtype=np.int64)

    def sum(self) -> int:
        self._check_sealed()
        return sum(self._counts)

    def __repr__(self) -> str:
        return f"BinStore(size={len(self._counts)}, state={self._state})"
