import asyncio
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

import pytest

from stockpost.schemas.snapshot import parse_stock_payload
from stockpost.services.cycle import CycleOutcome, CycleStatus
from stockpost.services.scheduler import (
    CycleScheduler,
    SchedulerState,
    adaptive_delay,
    delay_to_next_boundary,
)


MANILA = ZoneInfo("Asia/Manila")


def _at(h, m, s=0, us=0):
    return datetime(2026, 10, 19, h, m, s, us, tzinfo=MANILA)


def test_delay_to_next_five_minute_boundary():
    delay = delay_to_next_boundary(_at(12, 3, 27, 500_000), 5)

    assert delay == timedelta(milliseconds=92_500)


def test_delay_on_boundary_is_a_full_interval():
    assert delay_to_next_boundary(_at(12, 5), 5) == timedelta(minutes=5)
    assert delay_to_next_boundary(_at(0, 0), 5) == timedelta(minutes=5)


def test_delay_crosses_the_hour():
    assert delay_to_next_boundary(_at(12, 59, 59), 5) == timedelta(seconds=1)


def test_adaptive_delay_uses_min_countdown_plus_margin(payload):
    snap = parse_stock_payload(payload())  # gear/seed 04m 12s, egg 29m 40s

    assert adaptive_delay(snap, safety_margin_seconds=1.0) == 253.0


def test_adaptive_delay_is_floored_for_expired_countdowns():
    snap = parse_stock_payload({"data": {"seed": {"items": [], "countdown": "00:00"}}})

    assert adaptive_delay(snap, safety_margin_seconds=0.0, min_delay_seconds=1.0) == 1.0


def test_adaptive_delay_without_countdowns_is_none():
    snap = parse_stock_payload({"data": {"seed": {"items": [{"name": "Carrot", "quantity": 1}]}}})

    assert adaptive_delay(snap) is None
    assert adaptive_delay(None) is None


def _outcome(snapshot=None, status=CycleStatus.UNCHANGED):
    return CycleOutcome(status=status, feed="stock", snapshot=snapshot)


def test_adaptive_mode_falls_back_to_grid_after_fetch_failure():
    sched = CycleScheduler(_noop_cycle, mode="adaptive", clock=lambda: _at(12, 3, 27, 500_000))

    assert sched.next_delay(_outcome(status=CycleStatus.FETCH_FAILED)) == 92.5
    assert sched.next_delay(None) == 92.5


def test_adaptive_mode_uses_snapshot_countdown(payload):
    sched = CycleScheduler(_noop_cycle, mode="adaptive", clock=lambda: _at(12, 3))

    assert sched.next_delay(_outcome(parse_stock_payload(payload()))) == 253.0


def test_adaptive_mode_takes_time_since_fetch_off_the_countdown(payload):
    sched = CycleScheduler(_noop_cycle, mode="adaptive", clock=lambda: _at(12, 3, 40))
    outcome = _outcome(parse_stock_payload(payload()))
    outcome.fetched_at = _at(12, 3, 0)  # publish and retries took 40s

    assert sched.next_delay(outcome) == 213.0

    outcome.fetched_at = _at(11, 50)  # countdown long gone
    assert sched.next_delay(outcome) == 1.0


def test_fixed_mode_realigns_to_grid_after_a_slow_cycle():
    sched = CycleScheduler(_noop_cycle, clock=lambda: _at(12, 5, 42))

    assert sched.next_delay(_outcome()) == 258.0


def test_fixed_mode_skips_a_slot_when_woken_just_before_it():
    sched = CycleScheduler(_noop_cycle, clock=lambda: _at(12, 4, 59, 999_900))

    assert sched.next_delay(_outcome()) == pytest.approx(300.0001)


async def _noop_cycle():
    return _outcome()


@pytest.mark.asyncio
async def test_second_trigger_while_in_flight_does_not_overlap():
    gate = asyncio.Event()
    running = 0
    peak = 0
    calls = 0

    async def slow_cycle():
        nonlocal running, peak, calls
        calls += 1
        running += 1
        peak = max(peak, running)
        await gate.wait()
        running -= 1
        return _outcome()

    sched = CycleScheduler(slow_cycle)
    first = asyncio.create_task(sched.trigger())
    await asyncio.sleep(0)

    assert sched.busy
    assert sched.state == SchedulerState.FIRING
    assert await sched.trigger() is None  # deferred, not started

    gate.set()
    outcome = await first

    assert outcome.status == CycleStatus.UNCHANGED
    assert calls == 1
    assert peak == 1
    assert not sched.busy


@pytest.mark.asyncio
async def test_loop_fires_on_grid_and_rearms_after_crash():
    sleeps = []
    fired = asyncio.Event()
    calls = 0

    async def flaky_cycle():
        nonlocal calls
        calls += 1
        if calls == 1:
            raise RuntimeError("boom")
        if calls >= 3:
            fired.set()
        return _outcome()

    async def fake_sleep(seconds):
        sleeps.append(seconds)
        await asyncio.sleep(0)

    sched = CycleScheduler(flaky_cycle, clock=lambda: _at(12, 3, 27, 500_000), sleep=fake_sleep)
    sched.start()
    await asyncio.wait_for(fired.wait(), timeout=2)
    await sched.stop()

    assert sleeps[0] == 92.5
    assert calls >= 3  # a crashed cycle did not stop the loop
    assert sched.state == SchedulerState.STOPPED
    assert sched.next_fire_at is None


@pytest.mark.asyncio
async def test_stop_cancels_a_waiting_scheduler():
    sched = CycleScheduler(_noop_cycle, clock=lambda: _at(12, 3))
    sched.start()
    await asyncio.sleep(0)

    assert sched.state == SchedulerState.WAITING
    assert sched.next_fire_at == _at(12, 5)

    await sched.stop()
    assert sched.state == SchedulerState.STOPPED
    assert sched.cycles_run == 0
