"""
Data models for autopilot-agent using Pydantic for validation.

These models describe data crossing the process boundary: payloads returned
by a remote target's monitor/scale/rollback endpoints. Anything that fails
validation here is treated as a bad response from the target.
"""
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class HealthStatus(str, Enum):
    """Health states of the managed workload."""
    HEALTHY = "HEALTHY"
    CRITICAL = "CRITICAL"


def _normalize_status(v: Any) -> Any:
    if isinstance(v, str):
        return v.strip().upper()
    return v


class MonitorPayload(BaseModel):
    """
    Response of a remote target's monitor endpoint.

    Attributes:
        status: Reported health, trusted verbatim
        replicas: Replica count the target is running
        cpu: Optional CPU load percentage
        memory: Optional memory usage percentage
    """
    model_config = ConfigDict(extra="ignore")

    status: HealthStatus
    replicas: int = Field(ge=1)
    cpu: Optional[float] = Field(default=None, ge=0)
    memory: Optional[float] = Field(default=None, ge=0)

    @field_validator('status', mode='before')
    @classmethod
    def normalize_status(cls, v: Any) -> Any:
        """Accept lower- or mixed-case status strings.

        Example:
            >>> MonitorPayload(status="healthy", replicas=3).status
            <HealthStatus.HEALTHY: 'HEALTHY'>
        """
        return _normalize_status(v)


class ScalePayload(BaseModel):
    """Response of a remote target's scale endpoint."""
    model_config = ConfigDict(extra="ignore")

    status: Optional[HealthStatus] = None
    replicas: Optional[int] = Field(default=None, ge=1)
    message: Optional[str] = None

    @field_validator('status', mode='before')
    @classmethod
    def normalize_status(cls, v: Any) -> Any:
        return _normalize_status(v)


class RollbackPayload(BaseModel):
    """Response of a remote target's rollback endpoint."""
    model_config = ConfigDict(extra="ignore")

    message: Optional[str] = None
