"""
Client for an operator-registered remote target.

When a target is active the controller proxies monitor/scale/rollback to it
instead of simulating. Every call is bearer-authenticated, carries an
explicit timeout and is attempted exactly once; any network error, timeout,
non-2xx status, malformed JSON or payload that fails validation surfaces as
DelegateUnavailableError.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests
from pydantic import ValidationError as PydanticValidationError

from ..constants import DEFAULT_DELEGATE_TIMEOUT_SECONDS
from ..exceptions import DelegateUnavailableError
from ..models import MonitorPayload, RollbackPayload, ScalePayload

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ActiveTarget:
    """Endpoints and credentials of the currently active remote target."""

    service_name: str
    monitor_url: str
    scale_url: str
    rollback_url: str
    api_key: str

    def __repr__(self) -> str:
        return f"ActiveTarget(service_name={self.service_name!r}, api_key=***)"


class RemoteTarget:
    """
    HTTP delegate for one active target.

    Example:
        >>> target = RemoteTarget(active, timeout=5)
        >>> payload = target.monitor()
        >>> payload.status
        <HealthStatus.HEALTHY: 'HEALTHY'>
    """

    def __init__(
        self,
        target: ActiveTarget,
        timeout: float = DEFAULT_DELEGATE_TIMEOUT_SECONDS
    ):
        self.target = target
        self.timeout = timeout

    @property
    def service_name(self) -> str:
        return self.target.service_name

    def monitor(self) -> MonitorPayload:
        """GET the monitor endpoint."""
        data = self._request("GET", self.target.monitor_url)
        return self._parse(MonitorPayload, data, "monitor")

    def scale(self, replicas: int) -> ScalePayload:
        """POST ``{"replicas": n}`` to the scale endpoint."""
        data = self._request("POST", self.target.scale_url, payload={"replicas": replicas})
        return self._parse(ScalePayload, data, "scale")

    def rollback(self) -> RollbackPayload:
        """POST to the rollback endpoint."""
        data = self._request("POST", self.target.rollback_url)
        return self._parse(RollbackPayload, data, "rollback")

    def _request(
        self,
        method: str,
        url: str,
        payload: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        headers = {"Authorization": f"Bearer {self.target.api_key}"}

        logger.info(
            f"Calling external endpoint: {method} {url} "
            f"(service={self.target.service_name})"
        )
        try:
            response = requests.request(
                method=method,
                url=url,
                json=payload,
                headers=headers,
                timeout=self.timeout
            )
        except requests.Timeout as e:
            raise DelegateUnavailableError(
                f"{method} {url} timed out after {self.timeout}s"
            ) from e
        except requests.RequestException as e:
            raise DelegateUnavailableError(f"{method} {url} failed: {e}") from e

        logger.info(f"External response received: {response.status_code}")

        if not 200 <= response.status_code < 300:
            raise DelegateUnavailableError(
                f"{method} {url} returned HTTP {response.status_code}"
            )

        try:
            data = response.json()
        except ValueError as e:
            raise DelegateUnavailableError(f"{method} {url} returned malformed JSON") from e

        if not isinstance(data, dict):
            raise DelegateUnavailableError(f"{method} {url} returned a non-object JSON body")

        return data

    def _parse(self, model: type, data: Dict[str, Any], operation: str) -> Any:
        try:
            return model.model_validate(data)
        except PydanticValidationError as e:
            raise DelegateUnavailableError(
                f"Invalid {operation} response from {self.target.service_name}: "
                f"{e.error_count()} validation error(s)"
            ) from e


__all__ = ["ActiveTarget", "RemoteTarget"]
