from __future__ import annotations
import asyncio
import logging
from datetime import datetime, timedelta
from enum import Enum
from typing import Awaitable, Callable
from zoneinfo import ZoneInfo

from stockpost.core.config import ScheduleMode
from stockpost.schemas.snapshot import Snapshot
from stockpost.services.cycle import CycleOutcome


log = logging.getLogger(__name__)


class SchedulerState(str, Enum):
    IDLE = "idle"
    WAITING = "waiting"
    FIRING = "firing"
    STOPPED = "stopped"


def delay_to_next_boundary(now: datetime, interval_minutes: int) -> timedelta:
    """
    Time until the next multiple of `interval_minutes` past local midnight.

    Exactly on a boundary returns a full interval, never zero.
    """
    interval = timedelta(minutes=interval_minutes)
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    into_slot = (now - midnight) % interval
    return interval - into_slot


def adaptive_delay(
    snapshot: Snapshot | None,
    *,
    safety_margin_seconds: float = 1.0,
    min_delay_seconds: float = 1.0,
    elapsed_seconds: float = 0.0,
) -> float | None:
    """
    Smallest category countdown plus a margin, floored so expired or zero
    countdowns do not spin. None when the snapshot carries no countdowns.

    Countdowns were read at fetch time; `elapsed_seconds` is the time spent
    since then (compose, publish, retry backoff) and is taken off the delay.
    """
    if snapshot is None:
        return None
    countdowns = [
        state.countdown_seconds
        for state in snapshot.categories.values()
        if state.countdown_seconds is not None
    ]
    if not countdowns:
        return None
    return max(min_delay_seconds, min(countdowns) + safety_margin_seconds - max(0.0, elapsed_seconds))


class CycleScheduler:
    """
    Runs `run_cycle` on a wall-clock grid (or on data-reported countdowns).

    - First fire lands on the next grid boundary in `tz`.
    - After every cycle, success or not, the next delay is computed from the
      clock again, so a slow cycle does not push later fires off the grid.
    - Single-flight: a trigger that arrives while a cycle is running is
      dropped; the next scheduled slot picks the work up.
    """

    def __init__(
        self,
        run_cycle: Callable[[], Awaitable[CycleOutcome]],
        *,
        tz: str = "Asia/Manila",
        interval_minutes: int = 5,
        mode: ScheduleMode = "fixed",
        safety_margin_seconds: float = 1.0,
        min_delay_seconds: float = 1.0,
        clock: Callable[[], datetime] | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.run_cycle = run_cycle
        self.tz = ZoneInfo(tz)
        self.interval_minutes = interval_minutes
        self.mode = mode
        self.safety_margin_seconds = safety_margin_seconds
        self.min_delay_seconds = min_delay_seconds
        self.clock = clock or (lambda: datetime.now(self.tz))
        self.sleep = sleep

        self.state = SchedulerState.IDLE
        self.next_fire_at: datetime | None = None
        self.last_outcome: CycleOutcome | None = None
        self.cycles_run = 0

        self._lock = asyncio.Lock()
        self._task: asyncio.Task | None = None

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    def initial_delay(self) -> float:
        return delay_to_next_boundary(self.clock(), self.interval_minutes).total_seconds()

    def next_delay(self, outcome: CycleOutcome | None) -> float:
        if self.mode == "adaptive":
            snapshot = outcome.snapshot if outcome else None
            elapsed = 0.0
            if outcome is not None and outcome.fetched_at is not None:
                elapsed = (self.clock() - outcome.fetched_at).total_seconds()
            delay = adaptive_delay(
                snapshot,
                safety_margin_seconds=self.safety_margin_seconds,
                min_delay_seconds=self.min_delay_seconds,
                elapsed_seconds=elapsed,
            )
            if delay is not None:
                return delay
            log.info("scheduler: no countdown available, falling back to the %d-minute grid", self.interval_minutes)
        delay = delay_to_next_boundary(self.clock(), self.interval_minutes).total_seconds()
        # woke a hair early and the cycle was quick: skip to the following slot
        if delay < self.min_delay_seconds:
            delay += self.interval_minutes * 60
        return delay

    async def trigger(self) -> CycleOutcome | None:
        """Run one cycle now unless one is already in flight (then None)."""
        if self._lock.locked():
            log.info("scheduler: cycle already in flight, trigger deferred to next slot")
            return None
        async with self._lock:
            previous = self.state
            self.state = SchedulerState.FIRING
            try:
                outcome = await self.run_cycle()
                self.last_outcome = outcome
                return outcome
            except Exception:
                log.exception("scheduler: cycle crashed")
                return None
            finally:
                self.cycles_run += 1
                self.state = previous

    def start(self) -> None:
        if self._task is not None and not self._task.done():
            return
        self._task = asyncio.create_task(self._loop(), name="stock-scheduler")

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self.state = SchedulerState.STOPPED
        self.next_fire_at = None
        log.info("scheduler: stopped")

    async def _loop(self) -> None:
        delay = self.initial_delay()
        while True:
            self._arm(delay)
            await self.sleep(delay)

            outcome = await self.trigger()
            self.state = SchedulerState.IDLE
            delay = self.next_delay(outcome)

    def _arm(self, delay: float) -> None:
        self.state = SchedulerState.WAITING
        self.next_fire_at = self.clock() + timedelta(seconds=delay)
        mm, ss = divmod(int(delay), 60)
        log.info("scheduler: next cycle in %dm %ds", mm, ss)
