"""
Adaptive Concurrency
====================
Bounds how many domain batches run at once and re-tunes the bound from
recent outcomes and host pressure.

- ``ResourceProbe``      : psutil-backed memory / load-average reading
- ``ConcurrencyGovernor``: bound in ``[floor, ceiling]``, re-evaluated at
  most once per window from the success / error counters
- ``TaskQueue``          : FIFO admission into the bounded region

The governor is an explicit object handed to the queue (and from there to
the engine); there is no module-level state.
"""

from __future__ import annotations

import asyncio
import logging
import os
import time
from collections import deque
from dataclasses import dataclass
from typing import Awaitable, Callable, Deque, Optional, TypeVar

import psutil

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_INITIAL_BOUND = 4
DEFAULT_FLOOR = 2
DEFAULT_CEILING = 8
DEFAULT_WINDOW_S = 30.0

# Pressure thresholds
MEMORY_PRESSURE_RATIO = 0.8
LOAD_PRESSURE_RATIO = 0.8

# Window thresholds
ERRORS_BEFORE_DECREASE = 5
SUCCESSES_BEFORE_INCREASE = 10


# ---------------------------------------------------------------------------
# Host pressure
# ---------------------------------------------------------------------------

class ResourceProbe:
    """Reads host memory utilisation and 1-minute load relative to core count."""

    def memory_ratio(self) -> float:
        return psutil.virtual_memory().percent / 100.0

    def load_ratio(self) -> float:
        load_1m = psutil.getloadavg()[0]
        cores = psutil.cpu_count() or os.cpu_count() or 1
        return load_1m / cores

    def under_pressure(self) -> bool:
        try:
            memory = self.memory_ratio()
            load = self.load_ratio()
        except (OSError, AttributeError) as exc:
            logger.debug(f"[GOVERNOR] Resource probe unavailable: {exc}")
            return False

        if memory > MEMORY_PRESSURE_RATIO:
            logger.warning(f"[GOVERNOR] High memory utilisation: {memory * 100:.1f}%")
            return True
        if load > LOAD_PRESSURE_RATIO:
            logger.warning(f"[GOVERNOR] High CPU load: {load:.2f} per core")
            return True
        return False


# ---------------------------------------------------------------------------
# Governor
# ---------------------------------------------------------------------------

@dataclass
class GovernorSnapshot:
    bound: int
    successes: int
    errors: int
    adjustments: int


class ConcurrencyGovernor:
    """
    Self-tuning concurrency bound.

    Each evaluation (at most one per ``window_s``):

    - host under pressure, or more than 5 errors since the last evaluation
      → bound - 1 (not below ``floor``)
    - no errors and more than 10 successes → bound + 1 (not above ``ceiling``)
    - otherwise unchanged

    Both counters reset after every evaluation. ``clock`` and ``probe`` are
    injectable for tests.
    """

    def __init__(
        self,
        initial: int = DEFAULT_INITIAL_BOUND,
        floor: int = DEFAULT_FLOOR,
        ceiling: int = DEFAULT_CEILING,
        window_s: float = DEFAULT_WINDOW_S,
        probe: Optional[ResourceProbe] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        if floor > ceiling:
            raise ValueError(f"floor ({floor}) above ceiling ({ceiling})")
        self.floor = floor
        self.ceiling = ceiling
        self.window_s = window_s
        self._bound = max(floor, min(ceiling, initial))
        self._probe = probe or ResourceProbe()
        self._clock = clock
        self._successes = 0
        self._errors = 0
        self._adjustments = 0
        self._last_adjustment = clock()

    @property
    def bound(self) -> int:
        return self._bound

    def record_success(self) -> None:
        self._successes += 1
        self.adjust()

    def record_error(self) -> None:
        self._errors += 1
        self.adjust()

    def adjust(self) -> Optional[int]:
        """
        Evaluate the bound if the window has elapsed.

        Returns the new bound when an evaluation ran, ``None`` otherwise.
        """
        now = self._clock()
        if now - self._last_adjustment < self.window_s:
            return None

        previous = self._bound
        if self._probe.under_pressure() or self._errors > ERRORS_BEFORE_DECREASE:
            self._bound = max(self.floor, self._bound - 1)
        elif self._errors == 0 and self._successes > SUCCESSES_BEFORE_INCREASE:
            self._bound = min(self.ceiling, self._bound + 1)

        if self._bound < previous:
            logger.info(f"[GOVERNOR] Reducing concurrency to {self._bound}")
        elif self._bound > previous:
            logger.info(f"[GOVERNOR] Increasing concurrency to {self._bound}")

        self._successes = 0
        self._errors = 0
        self._adjustments += 1
        self._last_adjustment = now
        return self._bound

    def snapshot(self) -> GovernorSnapshot:
        return GovernorSnapshot(
            bound=self._bound,
            successes=self._successes,
            errors=self._errors,
            adjustments=self._adjustments,
        )


# ---------------------------------------------------------------------------
# Admission queue
# ---------------------------------------------------------------------------

class TaskQueue:
    """
    FIFO admission control in front of the governor's bound.

    A task starts immediately while fewer than ``bound`` tasks are in flight
    and nobody is waiting; otherwise it waits in line. A finishing task hands
    its slot straight to the head of the line, so a late arrival can never
    overtake a waiter.
    """

    def __init__(self, governor: ConcurrencyGovernor):
        self.governor = governor
        self._in_flight = 0
        self._waiters: Deque[asyncio.Future] = deque()

    @property
    def in_flight(self) -> int:
        return self._in_flight

    @property
    def waiting(self) -> int:
        return len(self._waiters)

    async def run(self, factory: Callable[[], Awaitable[T]]) -> T:
        """
        Run ``factory()`` inside the bounded region.

        The outcome feeds the governor (one success or one error). A failing
        task still releases its slot before the exception propagates.
        """
        await self._acquire()
        try:
            result = await factory()
        except asyncio.CancelledError:
            raise
        except Exception:
            self.governor.record_error()
            raise
        else:
            self.governor.record_success()
            return result
        finally:
            self._release()

    async def _acquire(self) -> None:
        if not self._waiters and self._in_flight < self.governor.bound:
            self._in_flight += 1
            return

        fut = asyncio.get_running_loop().create_future()
        self._waiters.append(fut)
        logger.debug(f"[QUEUE] Waiting for a slot ({len(self._waiters)} queued)")
        try:
            await fut
        except asyncio.CancelledError:
            if fut.done() and not fut.cancelled():
                # Slot was already handed over; pass it on
                self._release()
            elif fut in self._waiters:
                self._waiters.remove(fut)
            raise

    def _release(self) -> None:
        self._in_flight -= 1
        while self._waiters and self._in_flight < self.governor.bound:
            fut = self._waiters.popleft()
            if fut.done():
                continue
            self._in_flight += 1
            fut.set_result(None)
