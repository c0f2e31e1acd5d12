"""
Governance policy for mutating actions.

Every scale or rollback passes through the policy engine before it can touch
state. A verdict is one of:

- Admit: the action may proceed.
- Deny(reason): the action violates a hard rule and is dropped.
- Defer(reason, approval_id): the action is parked as a pending approval
  until an operator signs off.

Classes:
    PolicyEngine: Validates proposed actions
    ApprovalQueue: Holds deferred actions awaiting sign-off
    PendingApproval: One deferred action
"""

import logging
import math
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from numbers import Integral, Real
from typing import Any, Callable, Dict, List, Optional, Union

from ..audit import AuditSystem, EventType, Severity
from ..constants import MAX_REPLICAS_WITHOUT_APPROVAL
from ..metrics import track_policy_verdict
from .actions import ScaleAction

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Admit:
    """Action may proceed."""


@dataclass(frozen=True)
class Deny:
    """Action violates a governance rule."""
    reason: str


@dataclass(frozen=True)
class Defer:
    """Action requires operator approval."""
    reason: str
    approval_id: str


PolicyVerdict = Union[Admit, Deny, Defer]


@dataclass
class PendingApproval:
    """A deferred mutating action awaiting operator sign-off."""

    id: str
    action: ScaleAction
    created_at: datetime
    reason: str
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "action": self.action.name,
            "details": dict(self.details),
            "reason": self.reason,
            "created_at": self.created_at.isoformat(),
        }


class ApprovalQueue:
    """
    Pending approvals, in creation order.

    Entries never expire; they leave the queue only when an operator
    approves or rejects them.
    """

    def __init__(self, clock: Callable[[], datetime] = datetime.now):
        self._clock = clock
        self._pending: Dict[str, PendingApproval] = {}
        self._lock = threading.Lock()

    def create(self, action: ScaleAction, reason: str) -> PendingApproval:
        approval = PendingApproval(
            id=self._generate_approval_id(),
            action=action,
            created_at=self._clock(),
            reason=reason,
            details={"replicas": action.replicas},
        )
        with self._lock:
            self._pending[approval.id] = approval
        return approval

    def get(self, approval_id: str) -> Optional[PendingApproval]:
        with self._lock:
            return self._pending.get(approval_id)

    def pop(self, approval_id: str) -> Optional[PendingApproval]:
        with self._lock:
            return self._pending.pop(approval_id, None)

    def list(self) -> List[PendingApproval]:
        with self._lock:
            return list(self._pending.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._pending)

    def _generate_approval_id(self) -> str:
        return f"apr-{self._clock().strftime('%Y%m%d%H%M%S')}-{uuid.uuid4().hex[:8]}"


class PolicyEngine:
    """
    Validates proposed actions against static governance rules.

    Scale requests are checked in order, stopping at the first failure:
    finite number, whole number, not negative, not zero, and at most
    ``max_replicas`` (above that the request is deferred for approval).
    Rollback is always admitted but still audited.

    Example:
        >>> engine = PolicyEngine(ApprovalQueue(), AuditSystem())
        >>> engine.validate_scale(5)
        Admit()
        >>> engine.validate_scale(0)
        Deny(reason='Cannot scale to zero replicas (would cause downtime)')
    """

    def __init__(
        self,
        approvals: ApprovalQueue,
        audit: AuditSystem,
        max_replicas: int = MAX_REPLICAS_WITHOUT_APPROVAL
    ):
        self.approvals = approvals
        self.audit = audit
        self.max_replicas = max_replicas

    def validate_scale(self, replicas: Any) -> PolicyVerdict:
        """
        Validate a scale request.

        Args:
            replicas: Requested replica count, unvalidated

        Returns:
            Admit, Deny or Defer. A Defer has already been added to the
            approval queue.
        """
        args = {"replicas": replicas}

        reason = self._scale_violation(replicas)
        if reason is not None:
            self._report_violation("Scale tool validation failed", reason, args)
            track_policy_verdict("scale", "deny")
            return Deny(reason)

        if replicas > self.max_replicas:
            reason = (
                f"Cannot scale above {self.max_replicas} replicas without manual approval"
            )
            approval = self.approvals.create(ScaleAction(int(replicas)), reason)
            self._report_violation(
                "Scale tool blocked",
                reason,
                {**args, "approval_id": approval.id},
            )
            self.audit.record(
                EventType.APPROVAL_CREATED,
                f"Pending approval {approval.id} created for scale to {int(replicas)}",
                details=approval.to_dict(),
            )
            track_policy_verdict("scale", "defer")
            return Defer(reason=reason, approval_id=approval.id)

        self.audit.record(
            EventType.POLICY_VERDICT,
            "Policy passed for scale_tool",
            details={**args, "verdict": "admit"},
        )
        track_policy_verdict("scale", "admit")
        return Admit()

    def validate_rollback(self) -> PolicyVerdict:
        """Rollback is always admitted; the check exists for the audit trail."""
        self.audit.record(
            EventType.POLICY_VERDICT,
            "Policy passed for rollback_tool",
            details={"verdict": "admit"},
        )
        track_policy_verdict("rollback", "admit")
        return Admit()

    def _scale_violation(self, replicas: Any) -> Optional[str]:
        if isinstance(replicas, bool) or not isinstance(replicas, Real):
            return "Replicas must be a finite number"
        # Integers are always finite and may exceed the float range
        if not isinstance(replicas, Integral) and not math.isfinite(replicas):
            return "Replicas must be a finite number"
        if replicas != int(replicas):
            return "Replicas must be a whole number"
        if replicas < 0:
            return "Replicas cannot be negative"
        if replicas == 0:
            return "Cannot scale to zero replicas (would cause downtime)"
        return None

    def _report_violation(self, message: str, reason: str, args: Dict[str, Any]) -> None:
        self.audit.record(
            EventType.POLICY_VERDICT,
            message,
            level=Severity.POLICY_VIOLATION,
            details={"reason": reason, "args": args},
        )
