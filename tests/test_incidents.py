"""
Tests for incident lifecycle tracking.
"""
from datetime import datetime, timedelta

import pytest

from autopilot_agent.remediation.incidents import IncidentTracker

START = datetime(2025, 1, 1, 12, 0, 0)


def test_open_and_close_computes_mttr():
    tracker = IncidentTracker()

    incident = tracker.on_critical_opened(START)
    assert incident.is_open
    assert tracker.open_incident is incident

    closed = tracker.on_healthy_restored(START + timedelta(seconds=45))

    assert closed is incident
    assert not closed.is_open
    assert closed.mttr_seconds == pytest.approx(45.0)
    assert tracker.open_incident is None
    assert tracker.list_history() == [closed]


def test_at_most_one_open_incident():
    """A second open signal while one is open is ignored."""
    tracker = IncidentTracker()
    first = tracker.on_critical_opened(START)

    assert tracker.on_critical_opened(START + timedelta(seconds=1)) is None
    assert tracker.open_incident is first


def test_recovery_without_open_incident_is_ignored():
    tracker = IncidentTracker()

    assert tracker.on_healthy_restored(START) is None
    assert tracker.list_history() == []


def test_second_recovery_signal_closes_nothing():
    tracker = IncidentTracker()
    tracker.on_critical_opened(START)
    closed = tracker.on_healthy_restored(START + timedelta(seconds=20))

    assert tracker.on_healthy_restored(START + timedelta(seconds=50)) is None

    assert tracker.list_history() == [closed]
    assert closed.ended_at == START + timedelta(seconds=20)
    assert closed.mttr_seconds == pytest.approx(20.0)


def test_record_action_requires_open_incident():
    tracker = IncidentTracker()
    assert tracker.record_action("Scale to 6 replicas") is False

    tracker.on_critical_opened(START)
    assert tracker.record_action("Scale to 6 replicas") is True

    closed = tracker.on_healthy_restored(START + timedelta(seconds=2), ["Monitor confirmed recovery"])
    assert closed.actions_taken == ["Scale to 6 replicas", "Monitor confirmed recovery"]


def test_history_is_append_only_copy():
    tracker = IncidentTracker()
    tracker.on_critical_opened(START)
    tracker.on_healthy_restored(START + timedelta(seconds=10))

    history = tracker.list_history()
    history.clear()

    assert len(tracker.list_history()) == 1


def test_statistics():
    tracker = IncidentTracker()
    for duration in (10, 30):
        tracker.on_critical_opened(START)
        tracker.on_healthy_restored(START + timedelta(seconds=duration))

    stats = tracker.get_statistics()

    assert stats["total_incidents"] == 2
    assert stats["mean_mttr_seconds"] == pytest.approx(20.0)
    assert stats["min_mttr_seconds"] == pytest.approx(10.0)
    assert stats["max_mttr_seconds"] == pytest.approx(30.0)
    assert stats["open_incident"] is None


def test_statistics_empty():
    stats = IncidentTracker().get_statistics()

    assert stats["total_incidents"] == 0
    assert stats["min_mttr_seconds"] is None


def test_incident_to_dict():
    tracker = IncidentTracker()
    incident = tracker.on_critical_opened(START)

    data = incident.to_dict()

    assert data["id"].startswith("inc-20250101120000-")
    assert data["started_at"] == START.isoformat()
    assert data["ended_at"] is None
