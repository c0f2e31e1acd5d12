"""
Tests for metrics collection.
"""
from autopilot_agent.metrics import (
    MetricsCollector,
    get_metrics_text,
    metrics,
    track_action_total,
    track_incident_opened,
    track_mttr,
    track_replicas,
)


def test_collector_is_singleton():
    assert MetricsCollector() is metrics


def test_counters_by_label():
    track_action_total("scale", "success")
    track_action_total("scale", "success")
    track_action_total("scale", "denied")

    assert metrics.get_counter("autopilot_actions_total", {"action": "scale", "status": "success"}) == 2
    assert metrics.get_counter("autopilot_actions_total", {"action": "scale", "status": "denied"}) == 1
    assert metrics.get_counter("autopilot_actions_total", {"action": "rollback", "status": "success"}) == 0


def test_prometheus_text():
    track_incident_opened()
    track_mttr(12.5)
    track_mttr(7.5)
    track_replicas(6, 83, "simulation")

    text = get_metrics_text()

    assert "# TYPE autopilot_incidents_total counter" in text
    assert "autopilot_mttr_seconds_count{} 2" in text
    assert "autopilot_mttr_seconds_sum{} 20.0" in text
    assert 'autopilot_replicas{source="simulation"} 6' in text
    assert 'autopilot_cpu_load_percent{source="simulation"} 83' in text


def test_reset():
    track_incident_opened()
    metrics.reset()

    assert get_metrics_text() == ""
