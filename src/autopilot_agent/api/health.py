"""
Health check API endpoints.

Provides liveness and readiness checks for the controller process itself.
The managed workload's health is reported by /api/status, not here.
"""

import time
from typing import Any, Dict, Optional

from ..version import __version__, get_version_info as _version_info

# Track server start time
_start_time = time.time()


def get_health_status() -> Dict[str, Any]:
    """
    Get health check status.

    Returns:
        Health status dictionary
    """
    uptime = time.time() - _start_time

    return {
        "status": "healthy",
        "uptime_seconds": round(uptime, 2),
        "service": "autopilot-agent",
        "version": __version__,
    }


def get_readiness_status(engine: Optional[Any] = None, registry: Optional[Any] = None) -> Dict[str, Any]:
    """
    Get readiness check status.

    The controller is ready once its engine has at least one audit backend
    and a registry to resolve the active target from.

    Args:
        engine: RemediationEngine serving requests
        registry: ServiceRegistry backing proxy mode

    Returns:
        Readiness status dictionary
    """
    checks = {
        "engine": engine is not None,
        "audit": engine is not None and bool(engine.audit.backends),
        "registry": registry is not None,
    }

    is_ready = all(checks.values())

    return {
        "status": "ready" if is_ready else "not_ready",
        "checks": checks,
    }


def get_version_info() -> Dict[str, Any]:
    """
    Get version information.

    Returns:
        Version information dictionary
    """
    info = _version_info()
    return {
        "version": info["version"],
        "api_version": info["api_version"],
        "platform": info["name"],
    }
