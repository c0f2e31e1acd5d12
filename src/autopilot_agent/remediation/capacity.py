"""
Load/capacity model.

Utilization is demand divided by the capacity of the running replicas.
CPU load and memory usage are derived from it so that the simulated
workload reports the same shape of metrics a real target would.
"""

import math
from dataclasses import dataclass, asdict
from typing import Any, Dict

from ..constants import (
    DEFAULT_CAPACITY_PER_REPLICA,
    MAX_CPU_LOAD,
    MEMORY_BASELINE,
    MEMORY_CPU_FACTOR,
)


def utilization(
    demand: float,
    replicas: int,
    capacity_per_replica: float = DEFAULT_CAPACITY_PER_REPLICA
) -> float:
    """
    Ratio of demand to total capacity, in ``[0, inf)``.

    Example:
        >>> round(utilization(100, 3, 200), 3)
        0.167
    """
    if replicas <= 0:
        raise ValueError(f"replicas must be positive, got {replicas}")
    if capacity_per_replica <= 0:
        raise ValueError(f"capacity_per_replica must be positive, got {capacity_per_replica}")
    try:
        return demand / (replicas * capacity_per_replica)
    except OverflowError:
        # Capacity beyond the float range; any finite demand is negligible
        return 0.0


def cpu_load(ratio: float) -> int:
    """
    CPU load percentage for a utilization ratio, capped at 100.

    Halves round up (16.5 -> 17).
    """
    return min(MAX_CPU_LOAD, int(math.floor(ratio * 100 + 0.5)))


def memory_usage(cpu: float) -> float:
    """Memory usage percentage derived from CPU load, clamped to [0, 100]."""
    return min(100.0, max(0.0, cpu * MEMORY_CPU_FACTOR + MEMORY_BASELINE))


@dataclass(frozen=True)
class LoadSnapshot:
    """Point-in-time view of the capacity model."""

    demand: float
    replicas: int
    capacity_per_replica: float
    utilization: float
    cpu_load: int
    memory_usage: float

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)


def snapshot(
    demand: float,
    replicas: int,
    capacity_per_replica: float = DEFAULT_CAPACITY_PER_REPLICA
) -> LoadSnapshot:
    """Compute utilization, CPU load and memory usage in one pass."""
    ratio = utilization(demand, replicas, capacity_per_replica)
    cpu = cpu_load(ratio)
    return LoadSnapshot(
        demand=demand,
        replicas=replicas,
        capacity_per_replica=capacity_per_replica,
        utilization=ratio,
        cpu_load=cpu,
        memory_usage=memory_usage(cpu),
    )
