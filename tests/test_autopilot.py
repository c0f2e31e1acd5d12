"""
Tests for autopilot planning and scheduling.
"""
import threading
from unittest.mock import MagicMock

import pytest

from autopilot_agent.audit import EventType, Severity
from autopilot_agent.remediation.actions import ActionResult, ActionStatus
from autopilot_agent.remediation.autopilot import AutopilotPlanner, plan_target

from conftest import ImmediateTimer, ManualTimer


@pytest.mark.parametrize("demand,replicas,expected", [
    (1000, 3, (6, 6)),
    (1500, 6, (9, 9)),
    (100, 3, (1, 5)),
    (2000, 3, (12, 12)),
    (0, 1, (0, 3)),
])
def test_plan_target(demand, replicas, expected):
    assert plan_target(demand, replicas, 200, 1.2, 2) == expected


def test_plan_target_ignores_float_noise():
    """1000 * 1.2 / 200 is 6.000000000000001 in floating point."""
    needed, _ = plan_target(1000, 3, 200, 1.2, 2)
    assert needed == 6


def _ok(replicas):
    return ActionResult(status=ActionStatus.SUCCESS, message=f"Successfully scaled to {replicas} replicas.")


def test_on_critical_schedules_and_fires(audit, clock):
    execute = MagicMock(side_effect=lambda decision: _ok(decision.target_replicas))
    planner = AutopilotPlanner(execute, audit, timer_factory=ImmediateTimer, clock=clock)

    decision = planner.on_critical(demand=1000, replicas=3)

    assert decision.target_replicas == 6
    assert planner.last_decision is decision
    execute.assert_called_once_with(decision)
    assert planner.last_result.success


def test_decision_is_audited_before_firing(audit, clock):
    execute = MagicMock(side_effect=lambda decision: _ok(decision.target_replicas))
    planner = AutopilotPlanner(execute, audit, timer_factory=ManualTimer, clock=clock)

    planner.on_critical(demand=1000, replicas=3)

    events = audit.query_events(event_type=EventType.AUTOPILOT_DECISION)
    assert len(events) == 1
    assert events[0].message.startswith("AI_DECISION: scale to 6 replicas")
    execute.assert_not_called()


def test_delay_and_fire_time(audit, clock):
    timers = []

    def factory(interval, function, args=None, kwargs=None):
        timer = ManualTimer(interval, function, args, kwargs)
        timers.append(timer)
        return timer

    planner = AutopilotPlanner(MagicMock(), audit, delay_seconds=2.0, timer_factory=factory, clock=clock)
    decision = planner.on_critical(demand=1000, replicas=3)

    assert timers[0].interval == 2.0
    assert timers[0].daemon is True
    assert timers[0].started
    assert (decision.fire_at - decision.decided_at).total_seconds() == 2.0


def test_reason_mentions_minimum_step(audit, clock):
    planner = AutopilotPlanner(MagicMock(), audit, timer_factory=ManualTimer, clock=clock)

    decision = planner.plan(demand=100, replicas=3)

    assert decision.target_replicas == 5
    assert "minimum step" in decision.reason


def test_fire_error_is_audited_not_raised(audit, clock):
    execute = MagicMock(side_effect=RuntimeError("boom"))
    planner = AutopilotPlanner(execute, audit, timer_factory=ImmediateTimer, clock=clock)

    planner.on_critical(demand=1000, replicas=3)

    last = audit.query_events(event_type=EventType.AUTOPILOT_DECISION)[-1]
    assert last.level == Severity.ERROR
    assert planner.last_result is None


def test_real_timer_fires_and_can_be_awaited(audit):
    fired = threading.Event()

    def execute(decision):
        fired.set()
        return _ok(decision.target_replicas)

    planner = AutopilotPlanner(execute, audit, delay_seconds=0.01)
    planner.on_critical(demand=1000, replicas=3)
    planner.wait_for_pending(timeout=5)

    assert fired.is_set()
    assert planner.last_result.success
