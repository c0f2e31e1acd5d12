"""
Health classification.

The classifier is a two-state machine (HEALTHY, CRITICAL) fed by a health
reading. Readings come from one of two sources chosen per call: the remote
target, whose reported status is trusted verbatim, or the local capacity
model, which is CRITICAL when CPU load exceeds the threshold.
"""

import logging
from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional

from ..constants import CRITICAL_CPU_THRESHOLD, DEFAULT_CAPACITY_PER_REPLICA
from ..models import HealthStatus
from .capacity import snapshot
from .delegate import RemoteTarget

logger = logging.getLogger(__name__)

SOURCE_SIMULATION = "simulation"
SOURCE_REMOTE = "remote"


def classify_cpu(cpu_load: float, threshold: int = CRITICAL_CPU_THRESHOLD) -> HealthStatus:
    """CRITICAL when CPU load is strictly above the threshold."""
    if cpu_load > threshold:
        return HealthStatus.CRITICAL
    return HealthStatus.HEALTHY


@dataclass
class MonitorReading:
    """One health observation, from either source."""

    status: HealthStatus
    replicas: int
    cpu_load: Optional[float]
    memory_usage: Optional[float]
    source: str
    demand: Optional[float] = None
    service_name: Optional[str] = None

    @property
    def alert_active(self) -> bool:
        return self.status == HealthStatus.CRITICAL

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        data = asdict(self)
        data["status"] = self.status.value
        data["alert_active"] = self.alert_active
        return data


@dataclass(frozen=True)
class Transition:
    """A change of health state."""

    previous: HealthStatus
    current: HealthStatus

    @property
    def opened_incident(self) -> bool:
        return self.current == HealthStatus.CRITICAL

    @property
    def recovered(self) -> bool:
        return self.current == HealthStatus.HEALTHY


class HealthClassifier:
    """
    Two-state health machine, initially HEALTHY.

    ``observe`` returns a Transition only when the state changes; observing
    the current state again is a no-op.

    Example:
        >>> classifier = HealthClassifier()
        >>> classifier.observe(HealthStatus.CRITICAL)
        Transition(previous=<HealthStatus.HEALTHY: 'HEALTHY'>, current=<HealthStatus.CRITICAL: 'CRITICAL'>)
        >>> classifier.observe(HealthStatus.CRITICAL) is None
        True
    """

    def __init__(self, initial: HealthStatus = HealthStatus.HEALTHY):
        self._state = initial

    @property
    def state(self) -> HealthStatus:
        return self._state

    def observe(self, status: HealthStatus) -> Optional[Transition]:
        if status == self._state:
            return None

        transition = Transition(previous=self._state, current=status)
        self._state = status
        logger.info(f"Health transition: {transition.previous.value} -> {transition.current.value}")
        return transition


class SimulatedHealthSource:
    """Health reading computed from the local capacity model."""

    def __init__(
        self,
        capacity_per_replica: float = DEFAULT_CAPACITY_PER_REPLICA,
        critical_cpu_threshold: int = CRITICAL_CPU_THRESHOLD
    ):
        self.capacity_per_replica = capacity_per_replica
        self.critical_cpu_threshold = critical_cpu_threshold

    def read(self, demand: float, replicas: int) -> MonitorReading:
        load = snapshot(demand, replicas, self.capacity_per_replica)
        return MonitorReading(
            status=classify_cpu(load.cpu_load, self.critical_cpu_threshold),
            replicas=replicas,
            cpu_load=load.cpu_load,
            memory_usage=load.memory_usage,
            source=SOURCE_SIMULATION,
            demand=demand,
        )


class RemoteHealthSource:
    """
    Health reading reported by the remote target.

    Raises DelegateUnavailableError when the target cannot be read; the
    caller decides whether to fall back to simulation.
    """

    def __init__(self, delegate: RemoteTarget):
        self.delegate = delegate

    def read(self) -> MonitorReading:
        payload = self.delegate.monitor()
        return MonitorReading(
            status=payload.status,
            replicas=payload.replicas,
            cpu_load=payload.cpu,
            memory_usage=payload.memory,
            source=SOURCE_REMOTE,
            service_name=self.delegate.service_name,
        )
