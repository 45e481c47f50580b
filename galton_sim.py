# galton_sim.py
# Concurrent Galton board simulation.
# - Every ball is one task on a thread pool sized to the available CPUs.
# - Landing bins are accumulated in a shared BinStore.
# - A single time budget covers the whole batch; running out of it aborts the run.

import concurrent.futures
import logging
import math
import os
import time
from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np

from galton_bins import BinStore

logger = logging.getLogger(__name__)

DEFAULT_TIME_BUDGET = 30.0


# ---------- Errors ----------


class GaltonError(Exception):
    """Base class for simulation failures."""


class ConfigurationError(GaltonError, ValueError):
    pass


class SimulationTimeout(GaltonError):
    def __init__(self, time_budget: float):
        super().__init__(
            f"simulation did not finish within {time_budget:g} seconds"
        )
        self.time_budget = time_budget


class SimulationCancelled(GaltonError):
    def __init__(self, time_budget: float):
        super().__init__("simulation was interrupted before all balls landed")
        self.time_budget = time_budget


# ---------- Configuration ----------


@dataclass(frozen=True)
class SimulationConfig:
    trials: int
    bins: int
    time_budget: float = DEFAULT_TIME_BUDGET

    def validate(self) -> "SimulationConfig":
        if self.trials < 1:
            raise ConfigurationError(f"trials must be >= 1, got {self.trials}")
        if self.bins < 2 or self.bins % 2 != 0:
            raise ConfigurationError(f"bins must be even and >= 2, got {self.bins}")
        if self.time_budget < 0:
            raise ConfigurationError(
                f"time budget must be non-negative, got {self.time_budget}"
            )
        return self


def available_execution_contexts() -> int:
    """Return how many CPUs this process may run on (affinity-aware)."""
    if hasattr(os, "sched_getaffinity"):
        try:
            return len(os.sched_getaffinity(0)) or 1
        except OSError:
            pass
    return os.cpu_count() or 1


# ---------- Trial ----------


def drop_ball(bins: int, rng: Optional[np.random.Generator] = None) -> int:
    """
    Walk one ball down the board and return its landing bin.

    The ball starts at ``bins - 1`` and each of the ``bins - 1`` fair coin
    flips either moves it one bin to the left or leaves it in place, so the
    result is always within [0, bins - 1].
    """
    if rng is None:
        rng = np.random.default_rng()
    flips = rng.integers(0, 2, size=bins - 1)
    return bins - 1 - int(np.count_nonzero(flips == 0))


def _ball_task(store: BinStore, bins: int) -> None:
    store.increment(drop_ball(bins))


# ---------- Simulator ----------


class Simulator:
    def __init__(self, config: SimulationConfig):
        self.config = config.validate()
        self.pool_width = 0
        self.elapsed = 0.0

    def run(self) -> BinStore:
        cfg = self.config
        store = BinStore(cfg.bins)
        self.pool_width = available_execution_contexts()
        logger.debug(
            "dropping %d balls into %d bins on %d workers",
            cfg.trials,
            cfg.bins,
            self.pool_width,
        )

        start = time.perf_counter()
        executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=self.pool_width, thread_name_prefix="galton"
        )
        futures: List[concurrent.futures.Future] = []
        try:
            for _ in range(cfg.trials):
                futures.append(executor.submit(_ball_task, store, cfg.bins))
            # Closed to new work; the queued balls still drain.
            executor.shutdown(wait=False)
            done, not_done = concurrent.futures.wait(futures, timeout=cfg.time_budget)
        except KeyboardInterrupt as exc:
            self._abandon(futures, executor)
            logger.error("simulation interrupted after %d submissions", len(futures))
            raise SimulationCancelled(cfg.time_budget) from exc

        if not_done:
            self._abandon(not_done, executor)
            logger.error(
                "%d of %d balls still pending after %gs",
                len(not_done),
                cfg.trials,
                cfg.time_budget,
            )
            raise SimulationTimeout(cfg.time_budget)

        for f in done:
            f.result()

        store.seal()
        self.elapsed = time.perf_counter() - start
        logger.info("dropped %d balls in %.3fs", cfg.trials, self.elapsed)
        return store

    @staticmethod
    def _abandon(futures, executor):
        # Running tasks are left to finish; their increments are never read.
        for f in futures:
            f.cancel()
        executor.shutdown(wait=False)


# ---------- Result ----------


@dataclass
class SimulationResult:
    trials: int
    bins: int
    counts: List[Tuple[int, int]]
    total: int
    pool_width: int
    elapsed: float

    @property
    def is_conserved(self) -> bool:
        return self.total == self.trials

    def values(self) -> np.ndarray:
        return np.array([c for _, c in self.counts], dtype=np.int64)


def simulate(
    trials: int, bins: int, time_budget: float = DEFAULT_TIME_BUDGET
) -> SimulationResult:
    sim = Simulator(SimulationConfig(trials, bins, time_budget))
    store = sim.run()
    return SimulationResult(
        trials=trials,
        bins=bins,
        counts=store.read_all(),
        total=store.sum(),
        pool_width=sim.pool_width,
        elapsed=sim.elapsed,
    )


# ---------- Analysis ----------


def expected_counts(trials: int, bins: int) -> np.ndarray:
    """Binomial(bins - 1, 1/2) expectation of the count in every bin."""
    n = bins - 1
    pmf = np.array([math.comb(n, k) for k in range(bins)], dtype=float) / 2.0**n
    return trials * pmf


def mode_index(counts) -> int:
    return int(np.argmax(np.asarray(counts)))
