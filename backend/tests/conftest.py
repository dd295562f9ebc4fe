"""
Shared fixtures for backend tests
"""

import os
import sys

import pytest

# Add backend to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from shared.scheduler import Scheduler

MAX_PUMP_PASSES = 50


class FakeClock:
    """Monotonic clock the tests advance by hand"""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def scheduler(clock):
    return Scheduler(clock=clock)


@pytest.fixture
def pump(clock, scheduler):
    """Advance the clock, then run passes until nothing due is left"""

    def _pump(seconds: float = 0):
        clock.advance(seconds)
        executed = 0
        for _ in range(MAX_PUMP_PASSES):
            ran = scheduler.run_pending()
            if not ran:
                break
            executed += ran
        return executed

    return _pump
