"""Remote target registry."""

from .service_registry import ServiceConfig, ServiceRegistration, ServiceRegistry

__all__ = ["ServiceConfig", "ServiceRegistration", "ServiceRegistry"]
