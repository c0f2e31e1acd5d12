"""
Prometheus metrics for autopilot-agent observability.

This module collects counters, gauges and histograms for the remediation
loop (actions, policy verdicts, incidents, MTTR) and renders them in the
Prometheus text exposition format for the /metrics endpoint.
"""

from typing import Dict, Optional
import threading


class MetricsCollector:
    """
    Singleton metrics collector for autopilot-agent.

    Collects and exposes metrics in Prometheus-compatible format.
    """

    _instance = None
    _lock = threading.Lock()

    def __new__(cls):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._initialize()
        return cls._instance

    def _initialize(self):
        """Initialize metrics storage."""
        self._gauges: Dict[str, Dict[str, float]] = {}
        self._counters: Dict[str, Dict[str, int]] = {}
        self._histograms: Dict[str, Dict[str, list]] = {}
        self._data_lock = threading.Lock()

    def set_gauge(self, name: str, value: float, labels: Optional[Dict[str, str]] = None):
        """
        Set a gauge metric value.

        Args:
            name: Metric name
            value: Metric value
            labels: Label dictionary (e.g., {'source': 'simulation'})
        """
        label_key = self._make_label_key(labels or {})
        with self._data_lock:
            self._gauges.setdefault(name, {})[label_key] = value

    def increment_counter(self, name: str, value: int = 1, labels: Optional[Dict[str, str]] = None):
        """
        Increment a counter metric.

        Args:
            name: Metric name
            value: Increment amount (default 1)
            labels: Label dictionary
        """
        label_key = self._make_label_key(labels or {})
        with self._data_lock:
            series = self._counters.setdefault(name, {})
            series[label_key] = series.get(label_key, 0) + value

    def record_histogram(self, name: str, value: float, labels: Optional[Dict[str, str]] = None):
        """
        Record a histogram observation.

        Args:
            name: Metric name
            value: Observed value
            labels: Label dictionary
        """
        label_key = self._make_label_key(labels or {})
        with self._data_lock:
            self._histograms.setdefault(name, {}).setdefault(label_key, []).append(value)

    def get_counter(self, name: str, labels: Optional[Dict[str, str]] = None) -> int:
        """Return the current value of a counter series (0 if unset)."""
        label_key = self._make_label_key(labels or {})
        with self._data_lock:
            return self._counters.get(name, {}).get(label_key, 0)

    def get_metrics(self) -> str:
        """
        Get all metrics in Prometheus text format.

        Returns:
            Prometheus-formatted metrics string
        """
        lines = []

        with self._data_lock:
            for name, labels_dict in self._gauges.items():
                lines.append(f"# TYPE {name} gauge")
                for label_key, value in labels_dict.items():
                    lines.append(f"{name}{{{label_key}}} {value}")

            for name, labels_dict in self._counters.items():
                lines.append(f"# TYPE {name} counter")
                for label_key, value in labels_dict.items():
                    lines.append(f"{name}{{{label_key}}} {value}")

            # Histograms (simplified - just count and sum)
            for name, labels_dict in self._histograms.items():
                lines.append(f"# TYPE {name} histogram")
                for label_key, values in labels_dict.items():
                    lines.append(f"{name}_count{{{label_key}}} {len(values)}")
                    lines.append(f"{name}_sum{{{label_key}}} {sum(values)}")

        return "\n".join(lines)

    def reset(self) -> None:
        """Drop all recorded series. Intended for tests."""
        with self._data_lock:
            self._gauges.clear()
            self._counters.clear()
            self._histograms.clear()

    def _make_label_key(self, labels: Dict[str, str]) -> str:
        """Convert label dict to string key."""
        if not labels:
            return ""
        return ",".join(f'{k}="{v}"' for k, v in sorted(labels.items()))


# Singleton instance
metrics = MetricsCollector()


def track_action_total(action: str, status: str):
    """Increment executed-action counter."""
    metrics.increment_counter(
        "autopilot_actions_total",
        1,
        {"action": action, "status": status}
    )


def track_policy_verdict(action: str, verdict: str):
    """Increment policy verdict counter."""
    metrics.increment_counter(
        "autopilot_policy_verdicts_total",
        1,
        {"action": action, "verdict": verdict}
    )


def track_incident_opened():
    """Increment opened-incident counter."""
    metrics.increment_counter("autopilot_incidents_total", 1)


def track_mttr(seconds: float):
    """Record time to recovery of a closed incident."""
    metrics.record_histogram("autopilot_mttr_seconds", seconds)


def track_replicas(replicas: int, cpu_load: int, source: str):
    """Track the last observed replica count and CPU load."""
    metrics.set_gauge("autopilot_replicas", replicas, {"source": source})
    metrics.set_gauge("autopilot_cpu_load_percent", cpu_load, {"source": source})


def get_metrics_text() -> str:
    """
    Get all metrics in Prometheus text format.

    This is exposed via the /metrics HTTP endpoint.
    """
    return metrics.get_metrics()
