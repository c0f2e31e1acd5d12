"""
Structured logging with correlation IDs.

Remediation work hops between the request thread, the autopilot timer thread
and the delegate client. This module carries the correlation fields
(request_id, incident_id, action) through those hops with contextvars and
adds them to every log record.
"""

import contextvars
import logging
import json
from typing import Any, Optional
from datetime import datetime, timezone

CONTEXT_FIELDS = ('request_id', 'incident_id', 'action', 'trigger')

# Context variables for storing correlation context across threads and tasks
request_context: contextvars.ContextVar[dict] = contextvars.ContextVar(
    'request_context', default={}
)


class ContextFilter(logging.Filter):
    """
    Stamp the active correlation context onto every record.

    Installed on handlers rather than loggers so records from third-party
    libraries are stamped too. Sets ``record.context`` to a short
    ``" [incident_id=... action=...]"`` suffix for plain-text formats.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        ctx = request_context.get({})
        parts = []
        for key in CONTEXT_FIELDS:
            value = getattr(record, key, None)
            if value is None:
                value = ctx.get(key)
                setattr(record, key, value)
            if value is not None:
                parts.append(f"{key}={value}")

        record.context = f" [{' '.join(parts)}]" if parts else ""
        return True


class JSONFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    Outputs log records as JSON objects with consistent fields.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            'timestamp': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
        }

        # Plain module loggers carry no extras; fall back to the active context
        ctx = request_context.get({})
        for key in CONTEXT_FIELDS:
            value = getattr(record, key, None)
            if value is None:
                value = ctx.get(key)
            if value is not None:
                log_data[key] = value

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def set_context(**kwargs: Any) -> contextvars.Token:
    """
    Set correlation context.

    Args:
        **kwargs: Context values (request_id, incident_id, action, trigger)

    Returns:
        Token to reset context later
    """
    current = request_context.get({}).copy()
    current.update(kwargs)
    return request_context.set(current)


def get_context() -> dict:
    """Get current correlation context."""
    return request_context.get({}).copy()


def clear_context() -> None:
    """Clear correlation context."""
    request_context.set({})


class LoggingContext:
    """
    Context manager for setting logging context.

    Usage:
        with LoggingContext(action='rollback'):
            logger.info("Rolling back")  # Includes action
    """

    def __init__(self, **kwargs: Any):
        self.kwargs = kwargs
        self.token: Optional[contextvars.Token] = None

    def __enter__(self):
        self.token = set_context(**self.kwargs)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.token:
            request_context.reset(self.token)
        return False
