"""
Shared fixtures for the merge gate tests
"""

from typing import List

import pytest

from merge_gate.main import GateConfig
from merge_gate.reporting.base import GateReport, ResultReporter


class FakeClock:
    """Clock whose sleep advances time instantly"""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class RecordingReporter(ResultReporter):
    """Reporter that remembers every report it was asked to publish"""

    name = "recording"

    def __init__(self):
        self.reports: List[GateReport] = []

    async def publish(self, report: GateReport) -> None:
        self.reports.append(report)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def reporter():
    return RecordingReporter()


@pytest.fixture
def config():
    """Two required checks, 1s interval, 2s wait budget"""
    return GateConfig(
        required_checks=["build", "scan"],
        optional_checks=[],
        max_wait_ms=2000,
        poll_interval_ms=1000,
        fetch_timeout_ms=500,
        repository="acme/widgets",
        ref="0123456789abcdef",
        token="",
    )
