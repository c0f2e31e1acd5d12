"""
Incident lifecycle tracking.

An incident is one HEALTHY -> CRITICAL -> HEALTHY episode. At most one
incident is open at a time; closing it computes the time to recovery and
appends it to an append-only history.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class Incident:
    """One HEALTHY -> CRITICAL -> HEALTHY episode."""

    id: str
    started_at: datetime
    ended_at: Optional[datetime] = None
    actions_taken: List[str] = field(default_factory=list)
    mttr_seconds: Optional[float] = None

    @property
    def is_open(self) -> bool:
        return self.ended_at is None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "started_at": self.started_at.isoformat(),
            "ended_at": self.ended_at.isoformat() if self.ended_at else None,
            "actions_taken": list(self.actions_taken),
            "mttr_seconds": self.mttr_seconds,
        }


class IncidentTracker:
    """
    Owns the open incident and the closed-incident history.

    Example:
        >>> tracker = IncidentTracker()
        >>> incident = tracker.on_critical_opened(datetime(2025, 1, 1, 12, 0, 0))
        >>> tracker.record_action("Scale to 6 replicas")
        True
        >>> closed = tracker.on_healthy_restored(datetime(2025, 1, 1, 12, 0, 45))
        >>> closed.mttr_seconds
        45.0
    """

    def __init__(self):
        self._open: Optional[Incident] = None
        self._history: List[Incident] = []

    @property
    def open_incident(self) -> Optional[Incident]:
        return self._open

    def on_critical_opened(self, timestamp: datetime) -> Optional[Incident]:
        """
        Open a new incident.

        Returns:
            The new incident, or None if one is already open
        """
        if self._open is not None:
            logger.warning(
                f"Incident {self._open.id} already open; ignoring duplicate open signal"
            )
            return None

        self._open = Incident(id=self._generate_incident_id(timestamp), started_at=timestamp)
        logger.info(f"Incident {self._open.id} opened at {timestamp.isoformat()}")
        return self._open

    def record_action(self, description: str) -> bool:
        """
        Append an action description to the open incident.

        Returns:
            True if an incident was open to receive it
        """
        if self._open is None:
            return False
        self._open.actions_taken.append(description)
        return True

    def on_healthy_restored(
        self,
        timestamp: datetime,
        actions_taken: Optional[Iterable[str]] = None
    ) -> Optional[Incident]:
        """
        Close the open incident.

        A recovery signal with no open incident is ignored, so duplicate
        signals from the proxy and simulation paths close at most one.

        Args:
            timestamp: Recovery time
            actions_taken: Extra action descriptions to append before closing

        Returns:
            The closed incident, or None if nothing was open
        """
        incident = self._open
        if incident is None:
            logger.debug("Recovery signal with no open incident; ignoring")
            return None

        if actions_taken:
            incident.actions_taken.extend(actions_taken)

        incident.ended_at = timestamp
        incident.mttr_seconds = (timestamp - incident.started_at).total_seconds()
        self._history.append(incident)
        self._open = None

        logger.info(f"Incident {incident.id} closed; MTTR {incident.mttr_seconds:.1f}s")
        return incident

    def list_history(self) -> List[Incident]:
        """Closed incidents, oldest first."""
        return list(self._history)

    def get_statistics(self) -> Dict[str, Any]:
        """
        Summarize recovery times across closed incidents.

        Returns:
            Statistics dictionary with the mean, min and max time to recovery
        """
        if not self._history:
            return {
                "total_incidents": 0,
                "open_incident": self._open.id if self._open else None,
                "mean_mttr_seconds": 0.0,
                "min_mttr_seconds": None,
                "max_mttr_seconds": None,
            }

        durations = [i.mttr_seconds for i in self._history]
        return {
            "total_incidents": len(self._history),
            "open_incident": self._open.id if self._open else None,
            "mean_mttr_seconds": sum(durations) / len(durations),
            "min_mttr_seconds": min(durations),
            "max_mttr_seconds": max(durations),
        }

    def _generate_incident_id(self, timestamp: datetime) -> str:
        return f"inc-{timestamp.strftime('%Y%m%d%H%M%S')}-{uuid.uuid4().hex[:8]}"
