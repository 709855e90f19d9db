"""Tests for the periodic trigger."""

from crystal_ball.cycle import CycleReport, CycleStatus
from crystal_ball.scheduler import Scheduler


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


class CountingCycle:
    def __init__(self, error=None):
        self.runs = 0
        self.error = error

    def run_cycle(self):
        self.runs += 1
        if self.error:
            raise self.error
        return CycleReport(CycleStatus.PROGRESS)


class TestScheduler:
    def test_waits_one_interval_between_ticks(self):
        clock = FakeClock()
        cycle = CountingCycle()
        scheduler = Scheduler(cycle, interval_s=1800, clock=clock, sleep=clock.sleep)

        assert scheduler.run_forever(max_ticks=2) == 2
        assert cycle.runs == 2
        assert clock.sleeps == [1800, 1800]

    def test_seconds_until_next(self):
        clock = FakeClock()
        scheduler = Scheduler(CountingCycle(), interval_s=1800, clock=clock, sleep=clock.sleep)

        clock.now += 600
        assert scheduler.seconds_until_next() == 1200
        clock.now += 5000
        assert scheduler.seconds_until_next() == 0

    def test_unexpected_error_keeps_loop_alive(self):
        clock = FakeClock()
        cycle = CountingCycle(error=KeyError("boom"))
        scheduler = Scheduler(cycle, interval_s=60, clock=clock, sleep=clock.sleep)

        assert scheduler.tick() is None
        assert scheduler.run_forever(max_ticks=3) == 3
        assert cycle.runs == 4

    def test_keyboard_interrupt_stops(self):
        clock = FakeClock()
        scheduler = Scheduler(
            CountingCycle(error=KeyboardInterrupt()), interval_s=60, clock=clock, sleep=clock.sleep
        )
        assert scheduler.run_forever() == 0
