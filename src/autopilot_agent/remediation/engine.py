"""
Remediation engine for autopilot-agent.

Owns the controller's state and is the single place that executes actions:
- Policy check before any mutation or delegate call
- Proxying to the active remote target, or simulating locally
- Health classification and incident open/close on transitions
- Autopilot planning on new CRITICAL episodes
- Pending approvals for deferred scale requests

Classes:
    RemediationEngine: The controller aggregate and its command surface
    SystemState: Mutable controller state

Example:
    >>> from autopilot_agent.remediation import RemediationEngine
    >>> engine = RemediationEngine()
    >>> engine.set_autopilot(True)
    True
    >>> alert = engine.trigger_alert()
    >>> alert["health"]
    'CRITICAL'
"""

import logging
import threading
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from ..audit import AuditSystem, EventType, MemoryAuditBackend, Severity
from ..config import AgentConfig
from ..constants import ALERT_BASE_DEMAND, ALERT_DEMAND_STEP
from ..exceptions import ApprovalNotFoundError, ConflictError, DelegateUnavailableError, ValidationError
from ..logging_context import LoggingContext, get_context
from ..metrics import track_action_total, track_incident_opened, track_mttr, track_replicas
from ..models import HealthStatus
from .actions import (
    Action,
    ActionResult,
    ActionStatus,
    MonitorAction,
    RollbackAction,
    ScaleAction,
)
from .autopilot import AutopilotDecision, AutopilotPlanner
from .capacity import snapshot
from .delegate import RemoteTarget
from .health import (
    SOURCE_REMOTE,
    SOURCE_SIMULATION,
    HealthClassifier,
    MonitorReading,
    RemoteHealthSource,
    SimulatedHealthSource,
)
from .incidents import Incident, IncidentTracker
from .policy import ApprovalQueue, Defer, Deny, PendingApproval, PolicyEngine

logger = logging.getLogger(__name__)

DELEGATE_FAILURE_MESSAGE = "Failed to call external service"


@dataclass
class SystemState:
    """Mutable controller state. Only the engine writes to it."""

    replicas: int
    demand: float
    autopilot_enabled: bool = False
    health: HealthStatus = HealthStatus.HEALTHY
    incident_level: int = 0
    last_alert_at: Optional[datetime] = None


class RemediationEngine:
    """
    Policy-gated remediation controller.

    All operations run under one re-entrant lock, so a manual scale, an
    autopilot scale and an approval-triggered scale never interleave. When
    two of them race, the last one to acquire the lock wins.

    Args:
        config: Controller configuration (defaults to AgentConfig())
        registry: Object exposing ``get_active_service()`` that returns the
            active ActiveTarget or None. Without one the engine only simulates.
        audit: Audit system (defaults to an in-memory buffer)
        clock: Returns the current time
        timer_factory: Builds autopilot timers (``threading.Timer``)
    """

    def __init__(
        self,
        config: Optional[AgentConfig] = None,
        registry: Optional[Any] = None,
        audit: Optional[AuditSystem] = None,
        clock: Callable[[], datetime] = datetime.now,
        timer_factory: Callable[..., threading.Timer] = threading.Timer
    ):
        self.config = config or AgentConfig()
        self.registry = registry
        self.audit = audit or AuditSystem([MemoryAuditBackend(self.config.audit_buffer_size)])
        self._clock = clock
        self._lock = threading.RLock()

        self._state = SystemState(
            replicas=self.config.baseline_replicas,
            demand=self.config.initial_demand,
            autopilot_enabled=self.config.autopilot_enabled,
        )
        self.classifier = HealthClassifier()
        self.incidents = IncidentTracker()
        self.approvals = ApprovalQueue(clock=clock)
        self.policy = PolicyEngine(self.approvals, self.audit, self.config.max_replicas)
        self.simulator = SimulatedHealthSource(
            self.config.capacity_per_replica,
            self.config.critical_cpu_threshold,
        )
        self.autopilot = AutopilotPlanner(
            self._execute_autopilot_scale,
            self.audit,
            capacity_per_replica=self.config.capacity_per_replica,
            headroom=self.config.autopilot_headroom,
            min_step=self.config.autopilot_min_step,
            delay_seconds=self.config.autopilot_delay_seconds,
            timer_factory=timer_factory,
            clock=clock,
        )

        logger.info(
            f"Initialized RemediationEngine "
            f"(replicas={self._state.replicas}, demand={self._state.demand:g}, "
            f"autopilot={self._state.autopilot_enabled})"
        )

    @property
    def state(self) -> SystemState:
        """Copy of the current state."""
        with self._lock:
            return replace(self._state)

    # ------------------------------------------------------------------
    # Action execution
    # ------------------------------------------------------------------

    def execute(self, action: Action, bypass_policy: bool = False) -> ActionResult:
        """
        Execute an action.

        Mutating actions are checked by the policy engine first unless
        ``bypass_policy`` is set (operator-approved requests).

        Args:
            action: MonitorAction, ScaleAction or RollbackAction
            bypass_policy: Skip the policy check for scale

        Returns:
            ActionResult describing the outcome
        """
        with self._lock:
            open_incident = self.incidents.open_incident
            with LoggingContext(
                action=action.name,
                incident_id=open_incident.id if open_incident else None,
            ):
                if isinstance(action, MonitorAction):
                    result = self._monitor()
                elif isinstance(action, ScaleAction):
                    result = self._scale(action, bypass_policy)
                elif isinstance(action, RollbackAction):
                    result = self._rollback()
                else:
                    raise TypeError(f"Unknown action: {action!r}")

            result.timestamp = self._clock()

            track_action_total(action.name, result.status.value)
            return result

    def monitor(self) -> ActionResult:
        """Read health and feed it to the classifier."""
        return self.execute(MonitorAction())

    def scale(self, replicas: Any) -> ActionResult:
        """Policy-checked scale to ``replicas``."""
        return self.execute(ScaleAction(replicas))

    def rollback(self) -> ActionResult:
        """Roll back to the previous version and baseline replica count."""
        return self.execute(RollbackAction())

    def _monitor(self) -> ActionResult:
        reading = self._read_health()
        self._apply_reading(reading)

        return ActionResult(
            status=ActionStatus.SUCCESS,
            action=MonitorAction.name,
            message=(
                f"System {self._state.health.value} "
                f"({reading.source}, {reading.replicas} replicas)"
            ),
            details=reading.to_dict(),
        )

    def _scale(self, action: ScaleAction, bypass_policy: bool) -> ActionResult:
        if not bypass_policy:
            verdict = self.policy.validate_scale(action.replicas)
            if isinstance(verdict, Deny):
                return ActionResult(
                    status=ActionStatus.DENIED,
                    action=ScaleAction.name,
                    message=f"Action Blocked: {verdict.reason}",
                    details={"replicas": action.replicas, "reason": verdict.reason},
                )
            if isinstance(verdict, Defer):
                return ActionResult(
                    status=ActionStatus.PENDING_APPROVAL,
                    action=ScaleAction.name,
                    message=f"Approval required: {verdict.reason}",
                    approval_id=verdict.approval_id,
                    details={"replicas": action.replicas, "reason": verdict.reason},
                )
        else:
            self._validate_bypassed_scale(action.replicas)
            self.audit.record(
                EventType.POLICY_VERDICT,
                "Policy bypassed for approved scale",
                level=Severity.WARN,
                details={"replicas": action.replicas, "verdict": "bypass"},
            )

        replicas = int(action.replicas)
        previous = self._state.replicas
        delegate = self._delegate()
        reported_status: Optional[HealthStatus] = None

        if delegate is not None:
            try:
                payload = delegate.scale(replicas)
            except DelegateUnavailableError as e:
                return self._delegate_failure(ScaleAction.name, e, f"Scale to {replicas} replicas")

            self._state.replicas = payload.replicas or replicas
            reported_status = payload.status
            source = SOURCE_REMOTE
            message = payload.message or f"External service scaled to {replicas} replicas"
        else:
            self._state.replicas = replicas
            source = SOURCE_SIMULATION
            message = f"Successfully scaled to {replicas} replicas."

        description = f"Scaled from {previous} to {self._state.replicas} replicas"
        if bypass_policy:
            description += " (approved)"
        self._record_action(description, source)

        # The simulated path leaves reclassification to the next monitor call
        if reported_status is not None:
            self._observe(reported_status)

        return ActionResult(
            status=ActionStatus.SUCCESS,
            action=ScaleAction.name,
            message=message,
            details={
                "replicas": self._state.replicas,
                "previous_replicas": previous,
                "source": source,
                "health": self._state.health.value,
            },
        )

    def _rollback(self) -> ActionResult:
        self.policy.validate_rollback()

        previous = self._state.replicas
        baseline = self.config.baseline_replicas
        delegate = self._delegate()

        if delegate is not None:
            try:
                payload = delegate.rollback()
            except DelegateUnavailableError as e:
                return self._delegate_failure(RollbackAction.name, e, "Rollback")
            source = SOURCE_REMOTE
            message = payload.message or "External service rollback successful"
        else:
            source = SOURCE_SIMULATION
            message = "Rollback successful. Version restored."

        self._state.replicas = baseline
        self._record_action(
            f"Rolled back to previous version ({previous} -> {baseline} replicas)",
            source,
        )

        return ActionResult(
            status=ActionStatus.SUCCESS,
            action=RollbackAction.name,
            message=message,
            details={
                "replicas": baseline,
                "previous_replicas": previous,
                "source": source,
                "health": self._state.health.value,
            },
        )

    def _execute_autopilot_scale(self, decision: AutopilotDecision) -> ActionResult:
        result = self.execute(ScaleAction(decision.target_replicas))
        result.explanation = decision.reason
        return result

    # ------------------------------------------------------------------
    # Health and incidents
    # ------------------------------------------------------------------

    def _delegate(self) -> Optional[RemoteTarget]:
        if self.registry is None:
            return None
        target = self.registry.get_active_service()
        if target is None:
            return None
        return RemoteTarget(target, timeout=self.config.delegate_timeout)

    def _read_health(self) -> MonitorReading:
        delegate = self._delegate()
        if delegate is not None:
            try:
                return RemoteHealthSource(delegate).read()
            except DelegateUnavailableError as e:
                logger.error(f"Failed to call external monitor endpoint: {e}")
                self.audit.record(
                    EventType.DELEGATE_ERROR,
                    "Failed to call external monitor endpoint; using simulation",
                    level=Severity.ERROR,
                    details={"service": delegate.service_name, "error": str(e)},
                )

        return self.simulator.read(self._state.demand, self._state.replicas)

    def _apply_reading(self, reading: MonitorReading) -> None:
        if reading.source == SOURCE_REMOTE:
            self._state.replicas = reading.replicas

        track_replicas(reading.replicas, int(reading.cpu_load or 0), reading.source)
        logger.info(
            f"monitor_tool executed ({reading.source}): status={reading.status.value} "
            f"cpu={reading.cpu_load} replicas={reading.replicas}"
        )
        self._observe(reading.status)

    def _observe(self, status: HealthStatus) -> None:
        transition = self.classifier.observe(status)
        self._state.health = self.classifier.state
        if transition is None:
            return

        now = self._clock()
        self.audit.record(
            EventType.STATE_TRANSITION,
            f"Health changed {transition.previous.value} -> {transition.current.value}",
            level=Severity.ERROR if transition.opened_incident else Severity.INFO,
            details={
                "previous": transition.previous.value,
                "current": transition.current.value,
                "replicas": self._state.replicas,
                "demand": self._state.demand,
            },
        )

        if transition.opened_incident:
            self._on_critical(now)
        else:
            self._on_recovered(now)

    def _on_critical(self, now: datetime) -> None:
        self._state.last_alert_at = now
        self._state.incident_level += 1

        incident = self.incidents.on_critical_opened(now)
        if incident is not None:
            track_incident_opened()
            self.audit.record(
                EventType.INCIDENT_OPENED,
                f"Incident {incident.id} opened",
                level=Severity.ERROR,
                details={
                    "incident_id": incident.id,
                    "incident_level": self._state.incident_level,
                    "replicas": self._state.replicas,
                    "demand": self._state.demand,
                },
            )

        if self._state.autopilot_enabled:
            self.autopilot.on_critical(self._state.demand, self._state.replicas)

    def _on_recovered(self, now: datetime) -> None:
        alert_started = self._state.last_alert_at
        self._state.last_alert_at = None

        incident = self.incidents.on_healthy_restored(now)
        if incident is None:
            return

        track_mttr(incident.mttr_seconds)
        self.audit.record(
            EventType.INCIDENT_CLOSED,
            f"System stabilized; incident {incident.id} closed "
            f"after {incident.mttr_seconds:.1f}s",
            details={
                "incident_id": incident.id,
                "alert_started": alert_started.isoformat() if alert_started else None,
                "remediation_time": now.isoformat(),
                "mttr_seconds": incident.mttr_seconds,
                "actions_taken": list(incident.actions_taken),
            },
        )

    def _record_action(self, description: str, source: str) -> None:
        if get_context().get("trigger") == "autopilot":
            description = f"[autopilot] {description}"
        self.incidents.record_action(description)
        self.audit.record(
            EventType.ACTION_EXECUTED,
            f"{description} ({source})",
            details={
                "replicas": self._state.replicas,
                "source": source,
                "health": self._state.health.value,
            },
        )

    def _delegate_failure(self, action: str, error: Exception, attempted: str) -> ActionResult:
        logger.error(f"Failed to call external {action} endpoint: {error}")
        self.audit.record(
            EventType.DELEGATE_ERROR,
            f"Failed to call external {action} endpoint",
            level=Severity.ERROR,
            details={"action": action, "error": str(error)},
        )
        self.incidents.record_action(f"{attempted} failed: external service unavailable")
        return ActionResult(
            status=ActionStatus.FAILED,
            action=action,
            message=DELEGATE_FAILURE_MESSAGE,
            details={"error": str(error)},
        )

    def _validate_bypassed_scale(self, replicas: Any) -> None:
        if isinstance(replicas, bool) or not isinstance(replicas, int) or replicas < 1:
            raise ValidationError(f"Approved scale needs a positive whole number, got {replicas!r}")

    # ------------------------------------------------------------------
    # Command surface
    # ------------------------------------------------------------------

    def get_status(self) -> Dict[str, Any]:
        """
        Current controller status.

        CPU and memory figures come from the capacity model and are only
        reported in simulation mode.
        """
        with self._lock:
            state = self._state
            target = self.registry.get_active_service() if self.registry else None
            incident = self.incidents.open_incident
            decision = self.autopilot.last_decision

            status = {
                "health": state.health.value,
                "replicas": state.replicas,
                "demand": state.demand,
                "last_alert_at": state.last_alert_at.isoformat() if state.last_alert_at else None,
                "autopilot_enabled": state.autopilot_enabled,
                "incident_level": state.incident_level,
                "mode": "proxy" if target else "simulation",
                "service_name": target.service_name if target else None,
                "open_incident": incident.to_dict() if incident else None,
                "pending_approvals": len(self.approvals),
                "last_decision": decision.to_dict() if decision else None,
                "cpu_load": None,
                "memory_usage": None,
            }
            if target is None:
                load = snapshot(state.demand, state.replicas, self.config.capacity_per_replica)
                status["cpu_load"] = load.cpu_load
                status["memory_usage"] = load.memory_usage
            return status

    def trigger_alert(self) -> Dict[str, Any]:
        """
        Inject a simulated demand spike and reclassify health.

        Each new episode escalates: level ``n`` sets demand to
        ``500 + n * 500``.

        Raises:
            ConflictError: If the system is already CRITICAL
        """
        with self._lock:
            if self._state.health == HealthStatus.CRITICAL:
                raise ConflictError("Alert already active")

            level = self._state.incident_level + 1
            demand = ALERT_BASE_DEMAND + level * ALERT_DEMAND_STEP
            self._state.demand = demand

            self.audit.record(
                EventType.ALERT_TRIGGERED,
                f"CRITICAL INFRA ALERT: demand spike to {demand} req/s",
                level=Severity.ERROR,
                details={"source": "Simulated Infra", "level": level, "demand": demand},
            )

            self._apply_reading(self.simulator.read(demand, self._state.replicas))

            incident = self.incidents.open_incident
            return {
                "level": level,
                "demand": demand,
                "health": self._state.health.value,
                "incident_id": incident.id if incident else None,
                "last_alert_at": (
                    self._state.last_alert_at.isoformat() if self._state.last_alert_at else None
                ),
            }

    def set_autopilot(self, enabled: bool) -> bool:
        """Turn autopilot on or off. Takes effect at the next CRITICAL transition."""
        with self._lock:
            previous = self._state.autopilot_enabled
            self._state.autopilot_enabled = bool(enabled)
            if previous != self._state.autopilot_enabled:
                self.audit.record(
                    EventType.CONFIG_CHANGED,
                    f"AutoPilot {'enabled' if enabled else 'disabled'}",
                    details={"autopilot_enabled": self._state.autopilot_enabled},
                )
            return self._state.autopilot_enabled

    def list_pending_approvals(self) -> List[PendingApproval]:
        """Deferred actions awaiting sign-off, oldest first."""
        return self.approvals.list()

    def approve_pending(self, approval_id: str) -> ActionResult:
        """
        Approve a deferred scale and execute it with the policy bypassed.

        Raises:
            ApprovalNotFoundError: If no pending approval has this id
        """
        with self._lock:
            approval = self.approvals.pop(approval_id)
            if approval is None:
                raise ApprovalNotFoundError(f"No pending approval for {approval_id}")

            self.audit.record(
                EventType.APPROVAL_RESOLVED,
                f"Pending approval {approval_id} approved",
                details={**approval.to_dict(), "decision": "approved"},
            )
            logger.info(f"Executing approved action {approval_id}")
            return self.execute(approval.action, bypass_policy=True)

    def reject_pending(self, approval_id: str) -> PendingApproval:
        """
        Decline a deferred scale; nothing is executed.

        Raises:
            ApprovalNotFoundError: If no pending approval has this id
        """
        with self._lock:
            approval = self.approvals.pop(approval_id)
            if approval is None:
                raise ApprovalNotFoundError(f"No pending approval for {approval_id}")

            self.audit.record(
                EventType.APPROVAL_RESOLVED,
                f"Pending approval {approval_id} rejected",
                details={**approval.to_dict(), "decision": "rejected"},
            )
            return approval

    def list_incident_history(self) -> List[Incident]:
        """Closed incidents, oldest first."""
        with self._lock:
            return self.incidents.list_history()

    def get_incident_statistics(self) -> Dict[str, Any]:
        """Recovery-time statistics across closed incidents."""
        with self._lock:
            return self.incidents.get_statistics()

    def get_logs(self, limit: int = 100) -> List[Dict[str, Any]]:
        """Most recent audit records, oldest first."""
        return [event.to_dict() for event in self.audit.query_events(limit=limit)]

    def wait_for_autopilot(self, timeout: Optional[float] = None) -> None:
        """Block until scheduled autopilot actions have fired."""
        self.autopilot.wait_for_pending(timeout)
