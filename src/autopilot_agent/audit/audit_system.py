"""
Audit system for autopilot-agent.

Provides pluggable audit backends for tracking policy verdicts, executed
actions, health transitions and incident lifecycle events. The controller
only ever writes to the audit trail; reading it back is left to the
transport layer (the /api/logs endpoint) and to operators.
"""

from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass, asdict, field
from datetime import datetime
from enum import Enum
from typing import Any, Deque, Dict, List, Optional
import json
import logging
import threading
import uuid
from pathlib import Path

from ..constants import DEFAULT_AUDIT_BUFFER_SIZE

logger = logging.getLogger(__name__)


class EventType(Enum):
    """Types of audit events."""
    POLICY_VERDICT = "policy_verdict"
    ACTION_EXECUTED = "action_executed"
    STATE_TRANSITION = "state_transition"
    INCIDENT_OPENED = "incident_opened"
    INCIDENT_CLOSED = "incident_closed"
    AUTOPILOT_DECISION = "autopilot_decision"
    ALERT_TRIGGERED = "alert_triggered"
    APPROVAL_CREATED = "approval_created"
    APPROVAL_RESOLVED = "approval_resolved"
    DELEGATE_ERROR = "delegate_error"
    CONFIG_CHANGED = "config_changed"


class Severity(Enum):
    """Severity/category tag of an audit event."""
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"
    POLICY_VIOLATION = "POLICY_VIOLATION"


_LOG_LEVELS = {
    Severity.INFO: logging.INFO,
    Severity.WARN: logging.WARNING,
    Severity.ERROR: logging.ERROR,
    Severity.POLICY_VIOLATION: logging.WARNING,
}


@dataclass
class AuditEvent:
    """
    Audit event data class.

    Attributes:
        id: Unique event identifier
        timestamp: Event timestamp (ISO 8601)
        event_type: Type of event
        level: Severity/category tag
        message: Human-readable summary
        details: Structured payload (inputs, reasons, metrics)
    """
    id: str
    timestamp: str
    event_type: EventType
    level: Severity
    message: str
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        data = asdict(self)
        data["event_type"] = self.event_type.value
        data["level"] = self.level.value
        return data

    def to_json(self) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), default=str)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AuditEvent":
        """Rebuild an event from its dictionary form."""
        return cls(
            id=data["id"],
            timestamp=data["timestamp"],
            event_type=EventType(data["event_type"]),
            level=Severity(data["level"]),
            message=data["message"],
            details=data.get("details") or {},
        )


class AuditBackend(ABC):
    """Abstract base class for audit backends."""

    @abstractmethod
    def write_event(self, event: AuditEvent) -> None:
        """Write an audit event."""
        pass

    @abstractmethod
    def query_events(
        self,
        event_type: Optional[EventType] = None,
        level: Optional[Severity] = None,
        limit: int = 100
    ) -> List[AuditEvent]:
        """Query audit events, oldest first."""
        pass

    def close(self) -> None:
        """Release backend resources."""
        pass


class MemoryAuditBackend(AuditBackend):
    """
    In-memory audit backend.

    Keeps the most recent ``max_events`` records in a bounded buffer; the
    oldest records are dropped first.
    """

    def __init__(self, max_events: int = DEFAULT_AUDIT_BUFFER_SIZE):
        self._events: Deque[AuditEvent] = deque(maxlen=max_events)
        self._lock = threading.Lock()

    def write_event(self, event: AuditEvent) -> None:
        with self._lock:
            self._events.append(event)

    def query_events(
        self,
        event_type: Optional[EventType] = None,
        level: Optional[Severity] = None,
        limit: int = 100
    ) -> List[AuditEvent]:
        with self._lock:
            events = [
                e for e in self._events
                if (event_type is None or e.event_type == event_type)
                and (level is None or e.level == level)
            ]
        return events[-limit:] if limit else events

    def clear(self) -> None:
        """Drop all buffered events."""
        with self._lock:
            self._events.clear()


class FileAuditBackend(AuditBackend):
    """
    File-based audit backend.

    Stores audit events in JSONL format.
    """

    def __init__(self, file_path: str = "audit.jsonl"):
        """
        Initialize file backend.

        Args:
            file_path: Path to audit log file
        """
        self.file_path = Path(file_path)
        self._lock = threading.Lock()

        self.file_path.parent.mkdir(parents=True, exist_ok=True)
        if not self.file_path.exists():
            self.file_path.touch()

        logger.info(f"File audit backend initialized: {self.file_path}")

    def write_event(self, event: AuditEvent) -> None:
        """
        Write an audit event to file.

        Args:
            event: Audit event to write
        """
        try:
            with self._lock, self.file_path.open("a") as f:
                f.write(event.to_json() + "\n")
        except IOError as e:
            logger.error(f"Failed to write audit event: {e}")
            raise

    def query_events(
        self,
        event_type: Optional[EventType] = None,
        level: Optional[Severity] = None,
        limit: int = 100
    ) -> List[AuditEvent]:
        """
        Query audit events from file.

        Args:
            event_type: Filter by event type
            level: Filter by severity
            limit: Maximum number of (most recent) events to return

        Returns:
            List of matching audit events
        """
        events = []

        with self._lock, self.file_path.open("r") as f:
            for line in f:
                if not line.strip():
                    continue

                try:
                    event = AuditEvent.from_dict(json.loads(line))
                except (json.JSONDecodeError, KeyError, ValueError) as e:
                    logger.warning(f"Skipping invalid audit event: {e}")
                    continue

                if event_type and event.event_type != event_type:
                    continue
                if level and event.level != level:
                    continue
                events.append(event)

        return events[-limit:] if limit else events


class AuditSystem:
    """
    Audit system managing event logging.

    Writes every event to all configured backends and mirrors it to the
    standard ``logging`` tree. A failing backend is logged and skipped so
    that auditing never aborts a remediation action.

    Example:
        >>> audit = AuditSystem([MemoryAuditBackend()])
        >>> audit.record(EventType.POLICY_VERDICT, "Scale blocked",
        ...              level=Severity.POLICY_VIOLATION,
        ...              details={"replicas": 15})
    """

    def __init__(self, backends: Optional[List[AuditBackend]] = None):
        """
        Initialize audit system.

        Args:
            backends: Audit backends to use (defaults to one in-memory buffer)
        """
        self.backends = backends if backends is not None else [MemoryAuditBackend()]

    def log_event(self, event: AuditEvent) -> None:
        """
        Log an audit event.

        Args:
            event: Event to log
        """
        logger.log(
            _LOG_LEVELS[event.level],
            f"[{event.level.value}] {event.message}",
            extra={"audit_event_type": event.event_type.value},
        )

        for backend in self.backends:
            try:
                backend.write_event(event)
            except Exception as e:
                logger.error(f"Audit backend {backend.__class__.__name__} failed: {e}")

    def record(
        self,
        event_type: EventType,
        message: str,
        level: Severity = Severity.INFO,
        details: Optional[Dict[str, Any]] = None
    ) -> AuditEvent:
        """Build, log and return an audit event."""
        event = AuditEvent(
            id=uuid.uuid4().hex,
            timestamp=datetime.now().isoformat(),
            event_type=event_type,
            level=level,
            message=message,
            details=details or {},
        )
        self.log_event(event)
        return event

    def query_events(self, **kwargs) -> List[AuditEvent]:
        """
        Query audit events from the first backend.

        Args:
            **kwargs: Query parameters (event_type, level, limit)
        """
        if not self.backends:
            return []
        return self.backends[0].query_events(**kwargs)

    def close(self) -> None:
        """Close the audit system."""
        for backend in self.backends:
            backend.close()
