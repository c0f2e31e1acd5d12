"""Configuration management for autopilot-agent.

This module provides configuration loading and validation for the controller.
Configuration can be loaded from environment variables, YAML/TOML files, or
direct instantiation.

Classes:
    AgentConfig: Main configuration dataclass with validation.

Functions:
    _get_int_env: Safely extract integer values from environment variables.
    _get_float_env: Safely extract float values from environment variables.

Example:
    >>> from autopilot_agent.config import AgentConfig
    >>>
    >>> # Load from environment variables
    >>> config = AgentConfig.from_env()
    >>>
    >>> # Recommended: automatic loading with fallback
    >>> config = AgentConfig.load()
    >>> config.validate()
"""
import os
import logging
from dataclasses import dataclass
from typing import Optional

from .constants import (
    BASELINE_REPLICAS,
    CRITICAL_CPU_THRESHOLD,
    DEFAULT_AUDIT_BUFFER_SIZE,
    DEFAULT_AUTOPILOT_DELAY_SECONDS,
    DEFAULT_AUTOPILOT_HEADROOM,
    DEFAULT_AUTOPILOT_MIN_STEP,
    DEFAULT_CAPACITY_PER_REPLICA,
    DEFAULT_DELEGATE_TIMEOUT_SECONDS,
    DEFAULT_HOST,
    DEFAULT_INITIAL_DEMAND,
    DEFAULT_PORT,
    DEFAULT_REGISTRY_PATH,
    MAX_REPLICAS_WITHOUT_APPROVAL,
    VALID_LOG_LEVELS,
)
from .exceptions import InvalidConfigError

logger = logging.getLogger(__name__)

ENV_PREFIX = "AUTOPILOT_"


def _get_int_env(key: str, default: int) -> int:
    """Safely get a positive integer from an environment variable.

    Returns the default value if the variable is not set, cannot be parsed,
    or is not a positive integer.

    Example:
        >>> import os
        >>> os.environ['TEST_VAR'] = '100'
        >>> _get_int_env('TEST_VAR', 50)
        100
        >>> _get_int_env('MISSING_VAR', 50)
        50
    """
    value = os.getenv(key)
    if value is None:
        return default

    try:
        result = int(value)
        if result <= 0:
            logger.warning(
                f"Environment variable {key}={value} must be positive. Using default: {default}"
            )
            return default
        return result
    except ValueError:
        logger.warning(
            f"Environment variable {key}={value} is not a valid integer. Using default: {default}"
        )
        return default


def _get_float_env(key: str, default: float) -> float:
    """Safely get a non-negative float from an environment variable."""
    value = os.getenv(key)
    if value is None:
        return default

    try:
        result = float(value)
        if result < 0:
            logger.warning(
                f"Environment variable {key}={value} cannot be negative. Using default: {default}"
            )
            return default
        return result
    except ValueError:
        logger.warning(
            f"Environment variable {key}={value} is not a valid number. Using default: {default}"
        )
        return default


def _get_bool_env(key: str, default: bool) -> bool:
    value = os.getenv(key)
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes")


@dataclass
class AgentConfig:
    """
    Configuration for autopilot-agent.

    Configuration can be loaded from:
    1. Configuration files (YAML or TOML)
    2. Environment variables (override file settings)
    3. Direct instantiation with parameters

    Environment variables:
        AUTOPILOT_CAPACITY_PER_REPLICA: Requests/s one replica absorbs (default: 200)
        AUTOPILOT_BASELINE_REPLICAS: Replica count restored by rollback (default: 3)
        AUTOPILOT_INITIAL_DEMAND: Simulated demand at startup (default: 100)
        AUTOPILOT_CRITICAL_CPU: CPU load above which health is CRITICAL (default: 90)
        AUTOPILOT_MAX_REPLICAS: Largest scale admitted without approval (default: 10)
        AUTOPILOT_ENABLED: Start with autopilot on (default: false)
        AUTOPILOT_DELAY_SECONDS: Delay before an autopilot scale fires (default: 2.0)
        AUTOPILOT_HEADROOM: Demand multiplier used when planning (default: 1.2)
        AUTOPILOT_MIN_STEP: Minimum replicas added by autopilot (default: 2)
        AUTOPILOT_DELEGATE_TIMEOUT: Remote target timeout in seconds (default: 5)
        AUTOPILOT_REGISTRY_PATH: Service registry JSON file (default: services.json)
        AUTOPILOT_AUDIT_FILE: Optional JSONL audit trail path
        AUTOPILOT_AUDIT_BUFFER: In-memory audit records kept (default: 1000)
        AUTOPILOT_HOST / AUTOPILOT_PORT: HTTP bind address (default: 127.0.0.1:3001)
        AUTOPILOT_LOG_LEVEL: Logging level (default: "INFO")
        AUTOPILOT_LOG_FILE: Log file path (optional)
        AUTOPILOT_LOG_JSON: Emit JSON log records (default: false)

    Config file locations (searched in order):
        ./autopilot-agent.yaml, ./autopilot-agent.toml
        ~/.autopilot-agent.yaml, ~/.autopilot-agent.toml
        /etc/autopilot-agent.yaml, /etc/autopilot-agent.toml
    """
    # Capacity model
    capacity_per_replica: int = DEFAULT_CAPACITY_PER_REPLICA
    baseline_replicas: int = BASELINE_REPLICAS
    initial_demand: float = DEFAULT_INITIAL_DEMAND
    critical_cpu_threshold: int = CRITICAL_CPU_THRESHOLD

    # Policy
    max_replicas: int = MAX_REPLICAS_WITHOUT_APPROVAL

    # Autopilot
    autopilot_enabled: bool = False
    autopilot_delay_seconds: float = DEFAULT_AUTOPILOT_DELAY_SECONDS
    autopilot_headroom: float = DEFAULT_AUTOPILOT_HEADROOM
    autopilot_min_step: int = DEFAULT_AUTOPILOT_MIN_STEP

    # Remote target
    delegate_timeout: float = DEFAULT_DELEGATE_TIMEOUT_SECONDS

    # Storage and audit
    registry_path: Optional[str] = DEFAULT_REGISTRY_PATH
    audit_file: Optional[str] = None
    audit_buffer_size: int = DEFAULT_AUDIT_BUFFER_SIZE

    # HTTP server
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT

    # Logging configuration
    log_level: str = "INFO"
    log_file: Optional[str] = None
    log_json: bool = False

    def validate(self) -> None:
        """
        Validate configuration values.

        Raises:
            InvalidConfigError: If any configuration value is invalid
        """
        errors = []

        for name in (
            "capacity_per_replica",
            "baseline_replicas",
            "critical_cpu_threshold",
            "max_replicas",
            "audit_buffer_size",
        ):
            value = getattr(self, name)
            if value <= 0:
                errors.append(f"{name} must be positive, got {value}")

        if self.initial_demand < 0:
            errors.append(f"initial_demand cannot be negative, got {self.initial_demand}")
        if self.baseline_replicas > self.max_replicas:
            errors.append(
                f"baseline_replicas ({self.baseline_replicas}) cannot exceed "
                f"max_replicas ({self.max_replicas})"
            )
        if self.autopilot_delay_seconds < 0:
            errors.append(
                f"autopilot_delay_seconds cannot be negative, got {self.autopilot_delay_seconds}"
            )
        if self.autopilot_headroom < 1.0:
            errors.append(f"autopilot_headroom must be >= 1.0, got {self.autopilot_headroom}")
        if self.autopilot_min_step < 0:
            errors.append(f"autopilot_min_step cannot be negative, got {self.autopilot_min_step}")
        if self.delegate_timeout <= 0:
            errors.append(f"delegate_timeout must be positive, got {self.delegate_timeout}")
        if not (0 < self.port < 65536):
            errors.append(f"port must be between 1 and 65535, got {self.port}")

        if self.log_level.upper() not in VALID_LOG_LEVELS:
            errors.append(
                f"log_level must be one of {VALID_LOG_LEVELS}, got '{self.log_level}'"
            )

        if errors:
            raise InvalidConfigError(
                "Configuration validation failed:\n  - " + "\n  - ".join(errors)
            )

    @classmethod
    def from_env(cls) -> 'AgentConfig':
        """
        Create configuration from environment variables only.

        Returns:
            AgentConfig instance populated from environment variables
        """
        return cls(
            capacity_per_replica=_get_int_env(
                f"{ENV_PREFIX}CAPACITY_PER_REPLICA", DEFAULT_CAPACITY_PER_REPLICA
            ),
            baseline_replicas=_get_int_env(f"{ENV_PREFIX}BASELINE_REPLICAS", BASELINE_REPLICAS),
            initial_demand=_get_float_env(f"{ENV_PREFIX}INITIAL_DEMAND", DEFAULT_INITIAL_DEMAND),
            critical_cpu_threshold=_get_int_env(f"{ENV_PREFIX}CRITICAL_CPU", CRITICAL_CPU_THRESHOLD),
            max_replicas=_get_int_env(f"{ENV_PREFIX}MAX_REPLICAS", MAX_REPLICAS_WITHOUT_APPROVAL),
            autopilot_enabled=_get_bool_env(f"{ENV_PREFIX}ENABLED", False),
            autopilot_delay_seconds=_get_float_env(
                f"{ENV_PREFIX}DELAY_SECONDS", DEFAULT_AUTOPILOT_DELAY_SECONDS
            ),
            autopilot_headroom=_get_float_env(f"{ENV_PREFIX}HEADROOM", DEFAULT_AUTOPILOT_HEADROOM),
            autopilot_min_step=_get_int_env(f"{ENV_PREFIX}MIN_STEP", DEFAULT_AUTOPILOT_MIN_STEP),
            delegate_timeout=_get_float_env(
                f"{ENV_PREFIX}DELEGATE_TIMEOUT", DEFAULT_DELEGATE_TIMEOUT_SECONDS
            ),
            registry_path=os.getenv(f"{ENV_PREFIX}REGISTRY_PATH", DEFAULT_REGISTRY_PATH),
            audit_file=os.getenv(f"{ENV_PREFIX}AUDIT_FILE"),
            audit_buffer_size=_get_int_env(f"{ENV_PREFIX}AUDIT_BUFFER", DEFAULT_AUDIT_BUFFER_SIZE),
            host=os.getenv(f"{ENV_PREFIX}HOST", DEFAULT_HOST),
            port=_get_int_env(f"{ENV_PREFIX}PORT", DEFAULT_PORT),
            log_level=os.getenv(f"{ENV_PREFIX}LOG_LEVEL", "INFO"),
            log_file=os.getenv(f"{ENV_PREFIX}LOG_FILE"),
            log_json=_get_bool_env(f"{ENV_PREFIX}LOG_JSON", False),
        )

    @classmethod
    def from_file(cls, config_path: Optional[str] = None) -> 'AgentConfig':
        """
        Create configuration from file with environment variable overrides.

        Loads configuration from YAML or TOML file and applies environment
        variable overrides. If no path is provided, searches standard locations.
        Falls back to environment-only configuration when the file cannot be
        parsed.

        Args:
            config_path: Optional explicit path to config file.

        Returns:
            AgentConfig instance with merged configuration
        """
        from .config_loader import load_config_with_overrides

        try:
            config_dict = load_config_with_overrides(config_path)
            return cls(**config_dict)
        except Exception as e:
            logger.error(f"Failed to load configuration from file: {e}")
            logger.warning("Falling back to environment variable configuration")
            return cls.from_env()

    @classmethod
    def load(cls, config_path: Optional[str] = None, use_file: bool = True) -> 'AgentConfig':
        """
        Load configuration with automatic fallback.

        This is the recommended method for loading configuration.

        Example:
            >>> config = AgentConfig.load()               # file, then env
            >>> config = AgentConfig.load("agent.yaml")   # specific file
            >>> config = AgentConfig.load(use_file=False)  # env only
        """
        if use_file:
            return cls.from_file(config_path)
        else:
            return cls.from_env()
