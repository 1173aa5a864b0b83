"""Shared test fixtures for the quest board tests."""

import sys
from pathlib import Path

import pytest

# Ensure the repository root (pkg/, questboard_server.py) is importable
sys.path.insert(0, str(Path(__file__).parent.parent))

from pkg.questboard.store import QuestBoardStore


class FakeTimer:
    """Stands in for threading.Timer; fires only when a test says so."""

    def __init__(self, interval, function):
        self.interval = interval
        self.function = function
        self.daemon = False
        self.started = False
        self.cancelled = False
        self.fired = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        if self.started and not self.cancelled and not self.fired:
            self.fired = True
            self.function()


class FakeClock:
    """Timer factory that records every timer the store arms."""

    def __init__(self):
        self.timers = []

    def __call__(self, interval, function):
        timer = FakeTimer(interval, function)
        self.timers.append(timer)
        return timer

    def pending(self, interval=None):
        return [
            t for t in self.timers
            if t.started and not t.cancelled and not t.fired
            and (interval is None or t.interval == interval)
        ]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def data_path(tmp_path):
    return tmp_path / "data.json"


@pytest.fixture
def store(data_path, clock):
    s = QuestBoardStore(str(data_path), timer_factory=clock)
    yield s
    s.close()
