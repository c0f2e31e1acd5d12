"""
autopilot-agent: policy-gated autonomic remediation controller.
"""
from .version import __version__, VERSION_INFO, get_version, get_version_info
from .logging_context import (
    ContextFilter,
    set_context,
    get_context,
    clear_context,
    LoggingContext,
)
from .metrics import (
    track_action_total,
    track_policy_verdict,
    track_incident_opened,
    track_mttr,
    track_replicas,
    get_metrics_text,
)

__all__ = [
    "__version__",
    "VERSION_INFO",
    "get_version",
    "get_version_info",
    "ContextFilter",
    "set_context",
    "get_context",
    "clear_context",
    "LoggingContext",
    "track_action_total",
    "track_policy_verdict",
    "track_incident_opened",
    "track_mttr",
    "track_replicas",
    "get_metrics_text",
]
