"""
Problem representation cache for thread-safe grid point evaluation.

Problem functions may mutate internal scratch state (e.g., a musculoskeletal
model realizing its kinematics), so concurrent workers must never share one
problem object. The cache hands each worker an exclusively owned snapshot.
"""

import logging
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any

from ..exceptions import ConfigurationError, DataIntegrityError, EvaluationError


logger = logging.getLogger(__name__)


@dataclass
class CacheStatistics:
    """Counters describing cache usage."""

    constructed: int = 0
    reused: int = 0
    discarded: int = 0
    waits: int = 0


class ProblemRepresentationCache:
    """Bounded pool of independently evaluatable problem snapshots.

    Snapshots are constructed lazily by ``factory`` up to ``max_size``. A call
    to :meth:`acquire` beyond that count blocks until another worker releases
    or discards its snapshot.
    """

    def __init__(self, factory: Callable[[], Any], max_size: int) -> None:
        if not isinstance(max_size, int) or max_size < 1:
            raise ConfigurationError(f"Cache size must be a positive integer, got {max_size}")
        self._factory = factory
        self._max_size = max_size
        self._available: list[Any] = []
        self._in_use: dict[int, Any] = {}  # id(snapshot) -> snapshot
        self._num_constructing = 0
        self._condition = threading.Condition(threading.Lock())
        self.statistics = CacheStatistics()

    @property
    def max_size(self) -> int:
        return self._max_size

    @property
    def size(self) -> int:
        """Number of snapshots currently owned by the cache (free or checked out)."""
        with self._condition:
            return len(self._available) + len(self._in_use)

    @property
    def num_available(self) -> int:
        with self._condition:
            return len(self._available)

    def acquire(self, timeout: float | None = None) -> Any:
        """Take exclusive ownership of a snapshot.

        Args:
            timeout: Maximum seconds to wait for a free snapshot (None waits forever)

        Returns:
            A snapshot owned by the caller until :meth:`release` or :meth:`discard`.

        Raises:
            TimeoutError: If no snapshot became available within ``timeout``
            EvaluationError: If constructing a new snapshot failed
        """
        with self._condition:
            while True:
                if self._available:
                    snapshot = self._available.pop()
                    self._in_use[id(snapshot)] = snapshot
                    self.statistics.reused += 1
                    return snapshot
                if self._total_locked() < self._max_size:
                    # Reserve a slot, construct outside the lock
                    self._num_constructing += 1
                    break
                self.statistics.waits += 1
                if not self._condition.wait(timeout):
                    raise TimeoutError(
                        f"No problem snapshot became available within {timeout} seconds"
                    )

        try:
            snapshot = self._factory()
        except Exception as e:
            with self._condition:
                self._num_constructing -= 1
                self._condition.notify()
            raise EvaluationError(
                f"Failed to construct problem snapshot: {e}", "Problem representation cache"
            ) from e

        with self._condition:
            self._num_constructing -= 1
            self._in_use[id(snapshot)] = snapshot
            self.statistics.constructed += 1
            logger.debug(
                "Constructed problem snapshot %d of at most %d",
                len(self._available) + len(self._in_use),
                self._max_size,
            )
        return snapshot

    def release(self, snapshot: Any) -> None:
        """Return a snapshot to the pool so the next :meth:`acquire` can reuse it."""
        with self._condition:
            self._take_back(snapshot)
            self._available.append(snapshot)
            self._condition.notify()

    def discard(self, snapshot: Any) -> None:
        """Drop a snapshot whose internal state is suspect, freeing its slot."""
        with self._condition:
            self._take_back(snapshot)
            self.statistics.discarded += 1
            self._condition.notify()
        logger.debug("Discarded problem snapshot after failed evaluation")

    @contextmanager
    def checkout(self, timeout: float | None = None) -> Iterator[Any]:
        """Acquire a snapshot for the duration of a ``with`` block.

        The snapshot is released on normal exit and discarded if the block raises.
        """
        snapshot = self.acquire(timeout)
        try:
            yield snapshot
        except BaseException:
            self.discard(snapshot)
            raise
        self.release(snapshot)

    def clear(self) -> None:
        """Drop all free snapshots; checked-out snapshots are unaffected."""
        with self._condition:
            self._available.clear()
            self._condition.notify_all()

    def _take_back(self, snapshot: Any) -> None:
        if self._in_use.pop(id(snapshot), None) is None:
            raise DataIntegrityError(
                "Snapshot returned to the cache was not checked out from it",
                "Problem representation cache",
            )

    def _total_locked(self) -> int:
        return len(self._available) + len(self._in_use) + self._num_constructing
