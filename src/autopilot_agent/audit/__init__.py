"""
Audit trail for autopilot-agent.

Every policy verdict, executed action, health transition, incident
open/close and autopilot decision is recorded as one structured AuditEvent.
"""

from .audit_system import (
    AuditBackend,
    AuditEvent,
    AuditSystem,
    EventType,
    FileAuditBackend,
    MemoryAuditBackend,
    Severity,
)

__all__ = [
    "AuditBackend",
    "AuditEvent",
    "AuditSystem",
    "EventType",
    "FileAuditBackend",
    "MemoryAuditBackend",
    "Severity",
]
