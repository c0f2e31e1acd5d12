"""HTTP-independent API helpers."""

from .health import get_health_status, get_readiness_status, get_version_info

__all__ = ["get_health_status", "get_readiness_status", "get_version_info"]
