"""
Registry of operator-registered remote targets.

A target registers its monitor/scale/rollback endpoints and an API key, then
waits for an operator to approve it. At most one approved target is active;
while one is, the controller proxies actions to it instead of simulating.
"""

import json
import logging
import threading
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional
from urllib.parse import urlparse

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from ..exceptions import ServiceNotFoundError, ValidationError
from ..remediation.delegate import ActiveTarget

logger = logging.getLogger(__name__)

ServiceStatus = Literal["pending", "approved", "rejected"]


class ServiceRegistration(BaseModel):
    """
    Registration request submitted by a remote target.

    Accepts snake_case or camelCase keys.
    """
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    service_name: str = Field(
        min_length=1,
        validation_alias=AliasChoices("service_name", "serviceName"),
    )
    monitor_endpoint: str = Field(
        validation_alias=AliasChoices("monitor_endpoint", "monitorEndpoint"),
    )
    scale_endpoint: str = Field(
        validation_alias=AliasChoices("scale_endpoint", "scaleEndpoint"),
    )
    rollback_endpoint: str = Field(
        validation_alias=AliasChoices("rollback_endpoint", "rollbackEndpoint"),
    )
    api_key: str = Field(
        min_length=1,
        validation_alias=AliasChoices("api_key", "apiKey"),
    )

    @field_validator('monitor_endpoint', 'scale_endpoint', 'rollback_endpoint')
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Endpoints must be absolute http or https URLs."""
        parsed = urlparse(v)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(f"Endpoint must be an http(s) URL, got {v!r}")
        return v


class ServiceConfig(ServiceRegistration):
    """A registered target as stored by the registry."""

    id: int
    status: ServiceStatus = "pending"
    registered_at: datetime

    def to_public(self, is_active: bool) -> Dict[str, Any]:
        """Public view; never includes the API key."""
        data = self.model_dump(mode="json", exclude={"api_key"})
        data["is_active"] = is_active
        return data

    def to_target(self) -> ActiveTarget:
        return ActiveTarget(
            service_name=self.service_name,
            monitor_url=self.monitor_endpoint,
            scale_url=self.scale_endpoint,
            rollback_url=self.rollback_endpoint,
            api_key=self.api_key,
        )


class ServiceRegistry:
    """
    Thread-safe registry with optional JSON persistence.

    Load and save failures are logged, never raised, so a corrupt or
    read-only registry file leaves the controller usable in simulation mode.

    Example:
        >>> registry = ServiceRegistry()
        >>> service = registry.register({
        ...     "service_name": "checkout",
        ...     "monitor_endpoint": "http://checkout:8080/monitor",
        ...     "scale_endpoint": "http://checkout:8080/scale",
        ...     "rollback_endpoint": "http://checkout:8080/rollback",
        ...     "api_key": "secret",
        ... })
        >>> registry.approve(service.id).status
        'approved'
        >>> registry.get_active_service().service_name
        'checkout'
    """

    def __init__(self, path: Optional[str | Path] = None):
        self.path = Path(path) if path else None
        self._services: List[ServiceConfig] = []
        self._active_id: Optional[int] = None
        self._lock = threading.RLock()
        self._load()

    def register(self, data: Dict[str, Any]) -> ServiceConfig:
        """
        Register a new target; it starts out pending.

        Raises:
            ValidationError: If the registration data is malformed
        """
        try:
            registration = ServiceRegistration.model_validate(data)
        except PydanticValidationError as e:
            logger.error(f"Invalid service registration: {e.error_count()} error(s)")
            raise ValidationError(f"Invalid service registration: {e}") from e

        with self._lock:
            service = ServiceConfig(
                **registration.model_dump(),
                id=self._next_id(),
                status="pending",
                registered_at=datetime.now(),
            )
            self._services.append(service)
            self._save()

        logger.info(f"Service registered: {service.service_name} (id={service.id})")
        return service

    def list_services(self) -> List[Dict[str, Any]]:
        with self._lock:
            return [s.to_public(s.id == self._active_id) for s in self._services]

    def get_service_public(self, service_id: int) -> Dict[str, Any]:
        with self._lock:
            service = self._get(service_id)
            return service.to_public(service.id == self._active_id)

    def get_active_public(self) -> Optional[Dict[str, Any]]:
        """Public view of the active target, or None in simulation mode."""
        with self._lock:
            service = self._active()
            return service.to_public(True) if service else None

    def get_active_service(self) -> Optional[ActiveTarget]:
        """Endpoints and credentials of the active target, if any."""
        with self._lock:
            service = self._active()
            return service.to_target() if service else None

    def approve(self, service_id: int) -> ServiceConfig:
        """
        Approve a target. It becomes active if it is the only approved one.

        Raises:
            ServiceNotFoundError: If no service has this id
        """
        with self._lock:
            service = self._get(service_id)
            service.status = "approved"

            approved = [s for s in self._services if s.status == "approved"]
            if len(approved) == 1:
                self._active_id = service.id
                logger.info(f"Auto-activated service {service.service_name}")

            self._save()

        logger.info(f"Service approved: {service.service_name} (id={service.id})")
        return service

    def reject(self, service_id: int) -> ServiceConfig:
        """
        Reject a target, deactivating it if it was active.

        Raises:
            ServiceNotFoundError: If no service has this id
        """
        with self._lock:
            service = self._get(service_id)
            service.status = "rejected"
            if self._active_id == service.id:
                self._active_id = None
                logger.info("Active service rejected, system now simulation-only")
            self._save()

        logger.info(f"Service rejected: {service.service_name} (id={service.id})")
        return service

    def activate(self, service_id: int) -> ServiceConfig:
        """
        Make an approved target the active one.

        Raises:
            ServiceNotFoundError: If no service has this id
            ValidationError: If the service is not approved
        """
        with self._lock:
            service = self._get(service_id)
            if service.status != "approved":
                raise ValidationError(
                    f"Service {service_id} is {service.status}; only approved services can be activated"
                )
            self._active_id = service.id
            self._save()

        logger.info(f"Service activated: {service.service_name} (id={service.id})")
        return service

    def _get(self, service_id: int) -> ServiceConfig:
        for service in self._services:
            if service.id == service_id:
                return service
        raise ServiceNotFoundError(f"Service not found: {service_id}")

    def _active(self) -> Optional[ServiceConfig]:
        if self._active_id is None:
            return None
        for service in self._services:
            if service.id == self._active_id:
                return service
        return None

    def _next_id(self) -> int:
        candidate = int(time.time() * 1000)
        if self._services:
            candidate = max(candidate, max(s.id for s in self._services) + 1)
        return candidate

    def _load(self) -> None:
        if self.path is None or not self.path.exists():
            return

        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"Failed to load services from {self.path}: {e}")
            return

        services = []
        for raw in data.get("services", []):
            try:
                services.append(ServiceConfig.model_validate(raw))
            except PydanticValidationError as e:
                logger.warning(f"Skipping invalid service record in {self.path}: {e}")

        self._services = services
        self._active_id = data.get("active_service_id")
        if self._active() is None:
            self._active_id = None
        logger.info(f"Loaded {len(self._services)} services from {self.path}")

    def _save(self) -> None:
        if self.path is None:
            return

        data = {
            "services": [s.model_dump(mode="json") for s in self._services],
            "active_service_id": self._active_id,
        }
        try:
            with open(self.path, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2)
        except OSError as e:
            logger.error(f"Failed to save services to {self.path}: {e}")
