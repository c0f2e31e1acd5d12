"""
Policy-gated remediation for autopilot-agent.

This module provides the controller's remediation capabilities including:
- Capacity model and health classification
- Governance policy with pending approvals
- Incident tracking with time-to-recovery
- Autopilot scale planning
- Proxying to a registered remote target

Classes:
    RemediationEngine: Controller aggregate and command surface
    PolicyEngine: Validates proposed actions
    IncidentTracker: Incident lifecycle and history
    AutopilotPlanner: Plans and schedules autopilot scale actions
"""

from .actions import (
    Action,
    ActionResult,
    ActionStatus,
    MonitorAction,
    RollbackAction,
    ScaleAction,
)
from .autopilot import AutopilotDecision, AutopilotPlanner, plan_target
from .capacity import LoadSnapshot, cpu_load, memory_usage, snapshot, utilization
from .delegate import ActiveTarget, RemoteTarget
from .engine import RemediationEngine, SystemState
from .health import (
    HealthClassifier,
    MonitorReading,
    RemoteHealthSource,
    SimulatedHealthSource,
    Transition,
    classify_cpu,
)
from .incidents import Incident, IncidentTracker
from .policy import Admit, ApprovalQueue, Defer, Deny, PendingApproval, PolicyEngine, PolicyVerdict

__all__ = [
    "Action",
    "ActionResult",
    "ActionStatus",
    "MonitorAction",
    "RollbackAction",
    "ScaleAction",
    "AutopilotDecision",
    "AutopilotPlanner",
    "plan_target",
    "LoadSnapshot",
    "cpu_load",
    "memory_usage",
    "snapshot",
    "utilization",
    "ActiveTarget",
    "RemoteTarget",
    "RemediationEngine",
    "SystemState",
    "HealthClassifier",
    "MonitorReading",
    "RemoteHealthSource",
    "SimulatedHealthSource",
    "Transition",
    "classify_cpu",
    "Incident",
    "IncidentTracker",
    "Admit",
    "ApprovalQueue",
    "Defer",
    "Deny",
    "PendingApproval",
    "PolicyEngine",
    "PolicyVerdict",
]
