"""
HTTP control plane for autopilot-agent.

Exposes the controller's command surface and the service registry as a JSON
API. Handlers only translate between HTTP and the engine; all state changes
happen inside RemediationEngine.
"""
import logging
import os
import secrets
import uuid
from numbers import Real
from typing import Any, Dict, Optional, Tuple

from ..api.health import get_health_status, get_readiness_status, get_version_info
from ..config import AgentConfig
from ..constants import DEFAULT_HOST, DEFAULT_PORT
from ..exceptions import APIError, BadRequestError, ConflictError, NotFoundError, ValidationError
from ..logging_context import clear_context, set_context
from ..metrics import get_metrics_text
from ..registry import ServiceRegistry
from ..remediation import ActionResult, ActionStatus, RemediationEngine

logger = logging.getLogger(__name__)

ACTION_STATUS_CODES = {
    ActionStatus.SUCCESS: 200,
    ActionStatus.PENDING_APPROVAL: 202,
    ActionStatus.DENIED: 403,
    ActionStatus.FAILED: 502,
}


def _parse_service_id(raw: str) -> int:
    try:
        return int(raw)
    except ValueError:
        raise BadRequestError("Invalid service ID")


def _action_body(engine: RemediationEngine, result: ActionResult) -> Tuple[Dict[str, Any], int]:
    state = engine.state
    body = result.to_dict()
    body["replicas"] = state.replicas
    body["health"] = state.health.value
    if result.status in (ActionStatus.DENIED, ActionStatus.FAILED):
        body["error"] = result.message
    return body, ACTION_STATUS_CODES[result.status]


def create_app(
    engine: Optional[RemediationEngine] = None,
    registry: Optional[ServiceRegistry] = None,
    debug: bool = False
):
    """
    Create Flask application for the autopilot-agent control plane.

    Args:
        engine: Remediation engine to serve (built from ``registry`` if omitted)
        registry: Service registry (in-memory if omitted)
        debug: Enable debug mode

    Returns:
        Flask app instance

    Raises:
        ImportError: If Flask is not installed
    """
    try:
        from flask import Flask, Response, g, jsonify, request
    except ImportError:
        raise ImportError(
            "Flask not installed. Install with: pip install autopilot-agent"
        )

    registry = registry if registry is not None else ServiceRegistry()
    engine = engine if engine is not None else RemediationEngine(registry=registry)

    app = Flask(__name__)
    app.config['DEBUG'] = debug
    app.config['SECRET_KEY'] = os.getenv('FLASK_SECRET_KEY', secrets.token_hex(32))
    app.extensions['autopilot_engine'] = engine
    app.extensions['autopilot_registry'] = registry

    @app.before_request
    def bind_request_id():
        g.request_id = request.headers.get('X-Request-ID') or uuid.uuid4().hex[:12]
        set_context(request_id=g.request_id)

    @app.teardown_request
    def unbind_request_id(exc):
        clear_context()

    # Security headers
    @app.after_request
    def add_security_headers(response):
        """Add security headers to all responses."""
        response.headers['X-Content-Type-Options'] = 'nosniff'
        response.headers['X-Frame-Options'] = 'DENY'
        response.headers['Content-Security-Policy'] = "default-src 'none'"
        response.headers['Cache-Control'] = 'no-store'
        if 'request_id' in g:
            response.headers['X-Request-ID'] = g.request_id
        return response

    @app.errorhandler(ValidationError)
    def handle_validation_error(e):
        logger.warning(f"Client error: {e}")
        return jsonify({'error': str(e)}), 400

    @app.errorhandler(NotFoundError)
    def handle_not_found(e):
        return jsonify({'error': str(e)}), 404

    @app.errorhandler(ConflictError)
    def handle_conflict(e):
        return jsonify({'error': str(e)}), 409

    @app.errorhandler(APIError)
    def handle_api_error(e):
        logger.warning(f"Bad request: {e}")
        return jsonify({'error': str(e)}), 400

    def json_body() -> Dict[str, Any]:
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            raise BadRequestError("Request body must be a JSON object")
        return data

    # --- Controller ---

    @app.route('/api/status')
    def status():
        return jsonify(engine.get_status())

    @app.route('/api/logs')
    def logs():
        limit = request.args.get('limit', default=100, type=int)
        if limit is None or limit < 1:
            raise BadRequestError("limit must be a positive integer")
        return jsonify(engine.get_logs(limit=limit))

    @app.route('/api/trigger-alert', methods=['POST'])
    def trigger_alert():
        result = engine.trigger_alert()
        return jsonify({'message': 'Alert triggered', **result})

    @app.route('/api/autopilot', methods=['POST'])
    def set_autopilot():
        enabled = json_body().get('enabled')
        if not isinstance(enabled, bool):
            raise ValidationError("'enabled' must be a boolean")
        return jsonify({'autopilot_enabled': engine.set_autopilot(enabled)})

    @app.route('/api/monitor')
    def monitor():
        body, code = _action_body(engine, engine.monitor())
        return jsonify(body), code

    @app.route('/api/scale', methods=['POST'])
    def scale():
        replicas = json_body().get('replicas')
        if isinstance(replicas, bool) or not isinstance(replicas, Real):
            logger.error(f"Invalid arguments for scale API: replicas={replicas!r}")
            raise ValidationError("Invalid input: 'replicas' must be a number")
        body, code = _action_body(engine, engine.scale(replicas))
        return jsonify(body), code

    @app.route('/api/rollback', methods=['POST'])
    def rollback():
        body, code = _action_body(engine, engine.rollback())
        return jsonify(body), code

    @app.route('/api/approvals')
    def list_approvals():
        return jsonify([a.to_dict() for a in engine.list_pending_approvals()])

    @app.route('/api/approvals/<approval_id>/approve', methods=['POST'])
    def approve_pending(approval_id: str):
        body, code = _action_body(engine, engine.approve_pending(approval_id))
        return jsonify(body), code

    @app.route('/api/approvals/<approval_id>/reject', methods=['POST'])
    def reject_pending(approval_id: str):
        approval = engine.reject_pending(approval_id)
        return jsonify({'message': 'Approval rejected', 'approval': approval.to_dict()})

    @app.route('/api/incidents')
    def incidents():
        return jsonify({
            'history': [i.to_dict() for i in engine.list_incident_history()],
            'statistics': engine.get_incident_statistics(),
        })

    # --- Service registry ---

    @app.route('/api/register', methods=['POST'])
    def register():
        service = registry.register(json_body())
        return jsonify({
            'message': 'Service registered (pending approval)',
            'service': service.to_public(False),
        })

    @app.route('/api/services')
    def list_services():
        return jsonify(registry.list_services())

    @app.route('/api/service')
    def active_service():
        return jsonify({'service': registry.get_active_public()})

    @app.route('/api/services/<service_id>/approve', methods=['POST'])
    def approve_service(service_id: str):
        service = registry.approve(_parse_service_id(service_id))
        return jsonify({
            'message': 'Service approved',
            'service': registry.get_service_public(service.id),
        })

    @app.route('/api/services/<service_id>/reject', methods=['POST'])
    def reject_service(service_id: str):
        service = registry.reject(_parse_service_id(service_id))
        return jsonify({
            'message': 'Service rejected',
            'service': registry.get_service_public(service.id),
        })

    @app.route('/api/services/<service_id>/activate', methods=['POST'])
    def activate_service(service_id: str):
        service = registry.activate(_parse_service_id(service_id))
        return jsonify({
            'message': 'Service activated',
            'service': registry.get_service_public(service.id),
        })

    # --- Operations ---

    @app.route('/health')
    def health():
        """Health check endpoint."""
        return jsonify(get_health_status())

    @app.route('/ready')
    def ready():
        readiness = get_readiness_status(engine, registry)
        code = 200 if readiness['status'] == 'ready' else 503
        return jsonify(readiness), code

    @app.route('/version')
    def version():
        return jsonify(get_version_info())

    @app.route('/metrics')
    def metrics():
        return Response(get_metrics_text(), mimetype='text/plain; version=0.0.4')

    return app


def run_server(
    config: Optional[AgentConfig] = None,
    host: Optional[str] = None,
    port: Optional[int] = None,
    debug: bool = False
):
    """
    Build the controller from configuration and serve it.

    Args:
        config: Controller configuration (loaded from file/env if omitted)
        host: Host to bind to (overrides config)
        port: Port to listen on (overrides config)
        debug: Enable debug mode
    """
    from ..audit import AuditSystem, FileAuditBackend, MemoryAuditBackend

    config = config or AgentConfig.load()
    config.validate()

    backends = [MemoryAuditBackend(config.audit_buffer_size)]
    if config.audit_file:
        backends.append(FileAuditBackend(config.audit_file))

    registry = ServiceRegistry(config.registry_path)
    engine = RemediationEngine(config, registry=registry, audit=AuditSystem(backends))
    app = create_app(engine, registry, debug=debug)

    host = host or config.host or DEFAULT_HOST
    port = port or config.port or DEFAULT_PORT
    logger.info(f"Starting autopilot-agent control plane on {host}:{port}")
    app.run(host=host, port=port, debug=debug)
