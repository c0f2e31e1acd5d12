"""
Tests for the HTTP control plane.
"""
from unittest.mock import MagicMock, patch

import pytest

from autopilot_agent.registry import ServiceRegistry
from autopilot_agent.remediation import RemediationEngine
from autopilot_agent.web import create_app

from conftest import ImmediateTimer

SERVICE = {
    "service_name": "checkout",
    "monitor_endpoint": "http://checkout.local/monitor",
    "scale_endpoint": "http://checkout.local/scale",
    "rollback_endpoint": "http://checkout.local/rollback",
    "api_key": "s3cret",
}


@pytest.fixture
def registry():
    return ServiceRegistry()


@pytest.fixture
def client(config, audit, clock, registry):
    engine = RemediationEngine(
        config, registry=registry, audit=audit, clock=clock, timer_factory=ImmediateTimer
    )
    app = create_app(engine, registry)
    app.config['TESTING'] = True
    return app.test_client()


def test_status(client):
    response = client.get('/api/status')

    assert response.status_code == 200
    assert response.get_json()["health"] == "HEALTHY"
    assert response.headers['X-Content-Type-Options'] == 'nosniff'
    assert response.headers['X-Request-ID']


def test_trigger_alert_and_conflict(client):
    response = client.post('/api/trigger-alert')
    assert response.status_code == 200
    assert response.get_json()["health"] == "CRITICAL"

    response = client.post('/api/trigger-alert')
    assert response.status_code == 409
    assert response.get_json()["error"] == "Alert already active"


def test_scale_success(client):
    response = client.post('/api/scale', json={"replicas": 6})

    body = response.get_json()
    assert response.status_code == 200
    assert body["replicas"] == 6
    assert body["status"] == "success"


@pytest.mark.parametrize("payload", [{}, {"replicas": "6"}, {"replicas": True}, None])
def test_scale_invalid_input(client, payload):
    response = client.post('/api/scale', json=payload)

    assert response.status_code == 400


def test_scale_denied(client):
    response = client.post('/api/scale', json={"replicas": 0})

    assert response.status_code == 403
    assert "zero replicas" in response.get_json()["error"]


def test_scale_pending_and_approve(client):
    response = client.post('/api/scale', json={"replicas": 15})
    assert response.status_code == 202
    approval_id = response.get_json()["approval_id"]

    approvals = client.get('/api/approvals').get_json()
    assert [a["id"] for a in approvals] == [approval_id]

    response = client.post(f'/api/approvals/{approval_id}/approve')
    assert response.status_code == 200
    assert response.get_json()["replicas"] == 15

    response = client.post(f'/api/approvals/{approval_id}/approve')
    assert response.status_code == 404


def test_scale_huge_integer_needs_approval(client):
    response = client.post('/api/scale', json={"replicas": 10 ** 400})

    assert response.status_code == 202
    assert response.get_json()["status"] == "pending_approval"


def test_reject_pending(client):
    approval_id = client.post('/api/scale', json={"replicas": 20}).get_json()["approval_id"]

    response = client.post(f'/api/approvals/{approval_id}/reject')

    assert response.status_code == 200
    assert client.get('/api/approvals').get_json() == []


def test_autopilot_toggle(client):
    response = client.post('/api/autopilot', json={"enabled": True})
    assert response.get_json() == {"autopilot_enabled": True}

    response = client.post('/api/autopilot', json={"enabled": "yes"})
    assert response.status_code == 400


def test_autopilot_end_to_end(client):
    client.post('/api/autopilot', json={"enabled": True})
    client.post('/api/trigger-alert')

    monitor = client.get('/api/monitor').get_json()
    incidents = client.get('/api/incidents').get_json()

    assert monitor["health"] == "HEALTHY"
    assert monitor["replicas"] == 6
    assert incidents["statistics"]["total_incidents"] == 1


def test_rollback(client):
    client.post('/api/scale', json={"replicas": 8})

    response = client.post('/api/rollback')

    assert response.status_code == 200
    assert response.get_json()["replicas"] == 3


def test_logs(client):
    client.post('/api/scale', json={"replicas": 0})

    logs = client.get('/api/logs?limit=2').get_json()

    assert len(logs) <= 2
    assert logs[-1]["level"] == "POLICY_VIOLATION"
    assert client.get('/api/logs?limit=0').status_code == 400


def test_registration_flow(client):
    response = client.post('/api/register', json=SERVICE)
    assert response.status_code == 200
    service = response.get_json()["service"]
    assert "api_key" not in service
    assert service["status"] == "pending"

    assert client.get('/api/service').get_json() == {"service": None}

    response = client.post(f'/api/services/{service["id"]}/approve')
    assert response.status_code == 200
    assert response.get_json()["service"]["is_active"] is True

    active = client.get('/api/service').get_json()["service"]
    assert active["service_name"] == "checkout"
    assert "api_key" not in active
    assert client.get('/api/status').get_json()["mode"] == "proxy"

    response = client.post(f'/api/services/{service["id"]}/reject')
    assert response.get_json()["service"]["is_active"] is False
    assert client.get('/api/status').get_json()["mode"] == "simulation"


def test_registration_invalid(client):
    response = client.post('/api/register', json={**SERVICE, "monitor_endpoint": "nope"})

    assert response.status_code == 400


def test_service_id_errors(client):
    response = client.post('/api/services/abc/approve')
    assert response.status_code == 400
    assert response.get_json()["error"] == "Invalid service ID"
    assert client.post('/api/services/999/approve').status_code == 404


def test_activate_pending_service_rejected(client):
    service = client.post('/api/register', json=SERVICE).get_json()["service"]

    response = client.post(f'/api/services/{service["id"]}/activate')

    assert response.status_code == 400


def test_scale_delegate_failure_is_502(client, registry):
    service = registry.register(SERVICE)
    registry.approve(service.id)

    with patch("autopilot_agent.remediation.delegate.requests.request") as mock_request:
        mock_request.return_value = MagicMock(status_code=503)
        response = client.post('/api/scale', json={"replicas": 4})

    assert response.status_code == 502
    assert response.get_json()["error"] == "Failed to call external service"


def test_health_ready_metrics(client):
    assert client.get('/health').get_json()["status"] == "healthy"
    assert client.get('/ready').get_json()["status"] == "ready"
    assert client.get('/version').get_json()["platform"] == "autopilot-agent"

    client.post('/api/scale', json={"replicas": 4})
    metrics_text = client.get('/metrics').get_data(as_text=True)
    assert "autopilot_actions_total" in metrics_text
