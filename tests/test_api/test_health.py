"""
Tests for health check API endpoints.

Verifies health, readiness, and version endpoints.
"""

from autopilot_agent.api.health import (
    get_health_status,
    get_readiness_status,
    get_version_info,
)
from autopilot_agent.registry import ServiceRegistry
from autopilot_agent.remediation import RemediationEngine
from autopilot_agent.version import __version__


def test_health_status_returns_healthy():
    """Test health endpoint returns healthy status."""
    health = get_health_status()

    assert health["status"] == "healthy"
    assert health["service"] == "autopilot-agent"
    assert health["version"] == __version__


def test_health_status_uptime_increases():
    """Uptime is non-negative and monotonic."""
    health1 = get_health_status()
    health2 = get_health_status()

    assert health1["uptime_seconds"] >= 0
    assert health2["uptime_seconds"] >= health1["uptime_seconds"]


def test_readiness_without_engine():
    """Not ready until an engine and registry are wired in."""
    readiness = get_readiness_status()

    assert readiness["status"] == "not_ready"
    assert readiness["checks"]["engine"] is False


def test_readiness_with_engine_and_registry(config):
    registry = ServiceRegistry()
    engine = RemediationEngine(config, registry=registry)

    readiness = get_readiness_status(engine, registry)

    assert readiness["status"] == "ready"
    assert all(readiness["checks"].values())


def test_version_info_matches_expected():
    """Test version info matches expected values."""
    version = get_version_info()

    assert version["version"] == __version__
    assert version["api_version"] == "v1"
    assert version["platform"] == "autopilot-agent"
