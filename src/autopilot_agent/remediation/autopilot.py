"""
Autopilot planning.

On every HEALTHY -> CRITICAL transition (while autopilot is enabled) the
planner sizes the deployment for current demand plus headroom and schedules
a scale action after a fixed delay. The delay stands in for propagation
latency. A scheduled scale always fires once queued: it is not cancelled by
manual actions taken in the meantime, and it goes through the full policy
path, so a target above the approval ceiling is deferred like any other
request.
"""

import logging
import math
import threading
from dataclasses import dataclass, asdict
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..audit import AuditSystem, EventType, Severity
from ..constants import (
    DEFAULT_AUTOPILOT_DELAY_SECONDS,
    DEFAULT_AUTOPILOT_HEADROOM,
    DEFAULT_AUTOPILOT_MIN_STEP,
    DEFAULT_CAPACITY_PER_REPLICA,
)
from ..logging_context import LoggingContext
from .actions import ActionResult

logger = logging.getLogger(__name__)


def plan_target(
    demand: float,
    current_replicas: int,
    capacity_per_replica: float = DEFAULT_CAPACITY_PER_REPLICA,
    headroom: float = DEFAULT_AUTOPILOT_HEADROOM,
    min_step: int = DEFAULT_AUTOPILOT_MIN_STEP
) -> Tuple[int, int]:
    """
    Compute the replicas needed for demand and the autopilot target.

    ``needed = ceil(demand * headroom / capacity_per_replica)`` and
    ``target = max(needed, current_replicas + min_step)``.

    Example:
        >>> plan_target(1000, 3)
        (6, 6)
        >>> plan_target(100, 3)
        (1, 5)
    """
    # round() strips float noise such as 6.000000000000001 before ceil
    needed = math.ceil(round(demand * headroom / capacity_per_replica, 9))
    target = max(needed, current_replicas + min_step)
    return needed, target


@dataclass
class AutopilotDecision:
    """Why autopilot chose a replica count."""

    demand: float
    current_replicas: int
    needed_replicas: int
    target_replicas: int
    reason: str
    decided_at: datetime
    fire_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        data = asdict(self)
        data["decided_at"] = self.decided_at.isoformat()
        data["fire_at"] = self.fire_at.isoformat()
        return data


class AutopilotPlanner:
    """
    Plans and schedules autopilot scale actions.

    Args:
        execute_scale: Callback that runs a policy-checked scale to the
            decision's target and returns its ActionResult
        audit: Audit system receiving autopilot decisions
        capacity_per_replica: Requests/s one replica absorbs
        headroom: Demand multiplier
        min_step: Minimum replicas added per decision
        delay_seconds: Delay before the scheduled scale fires
        timer_factory: Builds the timer; defaults to ``threading.Timer``

    Example:
        >>> planner = AutopilotPlanner(run_scale, audit)
        >>> decision = planner.on_critical(demand=1000, replicas=3)
        >>> decision.target_replicas
        6
    """

    def __init__(
        self,
        execute_scale: Callable[[AutopilotDecision], ActionResult],
        audit: AuditSystem,
        capacity_per_replica: float = DEFAULT_CAPACITY_PER_REPLICA,
        headroom: float = DEFAULT_AUTOPILOT_HEADROOM,
        min_step: int = DEFAULT_AUTOPILOT_MIN_STEP,
        delay_seconds: float = DEFAULT_AUTOPILOT_DELAY_SECONDS,
        timer_factory: Callable[..., threading.Timer] = threading.Timer,
        clock: Callable[[], datetime] = datetime.now
    ):
        self.execute_scale = execute_scale
        self.audit = audit
        self.capacity_per_replica = capacity_per_replica
        self.headroom = headroom
        self.min_step = min_step
        self.delay_seconds = delay_seconds
        self._timer_factory = timer_factory
        self._clock = clock

        self.last_decision: Optional[AutopilotDecision] = None
        self.last_result: Optional[ActionResult] = None
        self._timers: List[threading.Timer] = []
        self._lock = threading.Lock()

    def plan(self, demand: float, replicas: int) -> AutopilotDecision:
        """Size the deployment for current demand without scheduling anything."""
        needed, target = plan_target(
            demand,
            replicas,
            self.capacity_per_replica,
            self.headroom,
            self.min_step,
        )
        now = self._clock()
        reason = (
            f"Demand {demand:g} req/s needs {needed} replicas at "
            f"{self.capacity_per_replica:g} req/s each with "
            f"{self.headroom - 1:.0%} headroom; scaling {replicas} -> {target}"
        )
        if target > needed:
            reason += f" (minimum step of +{self.min_step})"

        return AutopilotDecision(
            demand=demand,
            current_replicas=replicas,
            needed_replicas=needed,
            target_replicas=target,
            reason=reason,
            decided_at=now,
            fire_at=now + timedelta(seconds=self.delay_seconds),
        )

    def on_critical(self, demand: float, replicas: int) -> AutopilotDecision:
        """
        Plan a scale for a new CRITICAL episode and schedule it.

        Returns:
            The decision; the scale fires after ``delay_seconds``
        """
        decision = self.plan(demand, replicas)
        self.last_decision = decision

        self.audit.record(
            EventType.AUTOPILOT_DECISION,
            f"AI_DECISION: scale to {decision.target_replicas} replicas "
            f"in {self.delay_seconds:g}s",
            details=decision.to_dict(),
        )

        timer = self._timer_factory(self.delay_seconds, self._fire, args=(decision,))
        timer.daemon = True
        with self._lock:
            self._timers = [t for t in self._timers if t.is_alive()]
            self._timers.append(timer)
        timer.start()

        logger.info(
            f"Autopilot scheduled scale to {decision.target_replicas} "
            f"in {self.delay_seconds:g}s"
        )
        return decision

    def wait_for_pending(self, timeout: Optional[float] = None) -> None:
        """Block until every scheduled scale has fired."""
        with self._lock:
            timers = list(self._timers)
        for timer in timers:
            timer.join(timeout)

    def _fire(self, decision: AutopilotDecision) -> None:
        with LoggingContext(trigger="autopilot", action="scale"):
            logger.info(f"Autopilot firing scale to {decision.target_replicas}")
            try:
                result = self.execute_scale(decision)
            except Exception as e:
                logger.error(f"Autopilot scale raised: {e}", exc_info=True)
                self.audit.record(
                    EventType.AUTOPILOT_DECISION,
                    f"Autopilot scale to {decision.target_replicas} raised an error",
                    level=Severity.ERROR,
                    details={"error": str(e), "decision": decision.to_dict()},
                )
                return

            self.last_result = result
            self.audit.record(
                EventType.AUTOPILOT_DECISION,
                f"Autopilot scale to {decision.target_replicas}: {result.status.value}",
                level=Severity.INFO if result.success else Severity.WARN,
                details={"result": result.to_dict(), "decision": decision.to_dict()},
            )
