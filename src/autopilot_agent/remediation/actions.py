"""
Remediation actions and their results.

Actions form a closed set: MonitorAction (read-only), ScaleAction and
RollbackAction (mutating, policy-gated). Code that dispatches on an action
handles each of the three explicitly.

Example:
    >>> from autopilot_agent.remediation.actions import ScaleAction
    >>> ScaleAction(replicas=6).name
    'scale'
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, ClassVar, Dict, Optional, Union

from ..exceptions import DelegateUnavailableError, PolicyDeniedError


@dataclass(frozen=True)
class MonitorAction:
    """Read current health; never policy-checked."""
    name: ClassVar[str] = "monitor"


@dataclass(frozen=True)
class ScaleAction:
    """Set the replica count."""
    replicas: Any
    name: ClassVar[str] = "scale"


@dataclass(frozen=True)
class RollbackAction:
    """Restore the previous stable version and baseline replica count."""
    name: ClassVar[str] = "rollback"


Action = Union[MonitorAction, ScaleAction, RollbackAction]


class ActionStatus(Enum):
    """Outcome of executing an action."""
    SUCCESS = "success"
    FAILED = "failed"
    DENIED = "denied"
    PENDING_APPROVAL = "pending_approval"


@dataclass
class ActionResult:
    """Result of action execution."""

    status: ActionStatus
    message: str
    action: str = ""
    explanation: Optional[str] = None
    approval_id: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)
    timestamp: Optional[datetime] = None

    def __post_init__(self):
        if self.timestamp is None:
            self.timestamp = datetime.now()

    @property
    def success(self) -> bool:
        return self.status == ActionStatus.SUCCESS

    @property
    def approval_required(self) -> bool:
        return self.status == ActionStatus.PENDING_APPROVAL

    def raise_for_status(self) -> None:
        """
        Raise if the action was denied or failed.

        Raises:
            PolicyDeniedError: If the policy engine denied the action
            DelegateUnavailableError: If the action failed to execute
        """
        if self.status == ActionStatus.DENIED:
            raise PolicyDeniedError(self.message)
        if self.status == ActionStatus.FAILED:
            raise DelegateUnavailableError(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "action": self.action,
            "status": self.status.value,
            "success": self.success,
            "approval_required": self.approval_required,
            "approval_id": self.approval_id,
            "message": self.message,
            "explanation": self.explanation,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
        }
