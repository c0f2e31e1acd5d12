"""
Shared fixtures for autopilot-agent tests.
"""
from datetime import datetime, timedelta

import pytest

from autopilot_agent.audit import AuditSystem, MemoryAuditBackend
from autopilot_agent.config import AgentConfig
from autopilot_agent.logging_context import clear_context
from autopilot_agent.metrics import metrics
from autopilot_agent.remediation import RemediationEngine


class FakeClock:
    """Deterministic clock that only moves when told to."""

    def __init__(self, start: datetime = datetime(2025, 1, 1, 12, 0, 0)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class ImmediateTimer:
    """Timer stand-in that runs its callback synchronously on start()."""

    def __init__(self, interval, function, args=None, kwargs=None):
        self.interval = interval
        self.function = function
        self.args = args or ()
        self.kwargs = kwargs or {}
        self.daemon = False
        self.started = False

    def start(self):
        self.started = True
        self.function(*self.args, **self.kwargs)

    def is_alive(self):
        return False

    def join(self, timeout=None):
        pass


class ManualTimer(ImmediateTimer):
    """Timer stand-in that fires only when the test calls fire()."""

    def start(self):
        self.started = True

    def fire(self):
        self.function(*self.args, **self.kwargs)


class StubRegistry:
    """Registry stand-in returning a fixed active target (or None)."""

    def __init__(self, target=None):
        self.target = target

    def get_active_service(self):
        return self.target


@pytest.fixture(autouse=True)
def reset_metrics_and_context():
    """Keep the metrics singleton and logging context isolated per test."""
    metrics.reset()
    clear_context()
    yield
    metrics.reset()
    clear_context()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def audit() -> AuditSystem:
    return AuditSystem([MemoryAuditBackend()])


@pytest.fixture
def config() -> AgentConfig:
    return AgentConfig(registry_path=None, autopilot_delay_seconds=0.0)


@pytest.fixture
def engine(config, audit, clock) -> RemediationEngine:
    """Simulation-only engine whose autopilot fires synchronously."""
    return RemediationEngine(config, audit=audit, clock=clock, timer_factory=ImmediateTimer)
