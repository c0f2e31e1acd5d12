"""
Custom exception types for autopilot-agent.

Provides specific exception classes for better error handling and debugging.
Policy denials and deferrals are reported as action results rather than
raised; the classes below cover the failures that cross call boundaries.
"""


class AutopilotError(Exception):
    """Base exception for all autopilot-agent errors."""
    pass


# Input errors
class ValidationError(AutopilotError):
    """Malformed input to an action or registration."""
    pass


class PolicyDeniedError(AutopilotError):
    """Action rejected by a governance rule."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


# Delegate (remote target) errors
class DelegateError(AutopilotError):
    """Base exception for remote target errors."""
    pass


class DelegateUnavailableError(DelegateError):
    """Remote target unreachable, timed out, or returned a bad response."""
    pass


# Configuration errors
class ConfigurationError(AutopilotError):
    """Base exception for configuration errors."""
    pass


class InvalidConfigError(ConfigurationError):
    """Invalid configuration."""
    pass


# API errors
class APIError(AutopilotError):
    """Base exception for API errors."""
    pass


class BadRequestError(APIError):
    """Invalid API request."""
    pass


class NotFoundError(APIError):
    """API resource not found."""
    pass


class ApprovalNotFoundError(NotFoundError):
    """Pending approval not found."""
    pass


class ServiceNotFoundError(NotFoundError):
    """Registered service not found."""
    pass


class ConflictError(APIError):
    """Request conflicts with current state."""
    pass


__all__ = [
    "AutopilotError",
    "ValidationError",
    "PolicyDeniedError",
    "DelegateError",
    "DelegateUnavailableError",
    "ConfigurationError",
    "InvalidConfigError",
    "APIError",
    "BadRequestError",
    "NotFoundError",
    "ApprovalNotFoundError",
    "ServiceNotFoundError",
    "ConflictError",
]
