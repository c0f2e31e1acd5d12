"""
Configuration file loader for autopilot-agent.

Supports loading configuration from YAML and TOML files with environment variable
overrides and a standard search path.

File layout (YAML shown, TOML uses the same tables):

    capacity:
      per_replica: 200
      baseline_replicas: 3
      initial_demand: 100
      critical_cpu: 90
    policy:
      max_replicas: 10
    autopilot:
      enabled: false
      delay_seconds: 2.0
      headroom: 1.2
      min_step: 2
    delegate:
      timeout: 5
    server:
      host: 127.0.0.1
      port: 3001
      registry_path: services.json
    audit:
      file: audit.jsonl
      buffer_size: 1000
    logging:
      level: INFO
      file: autopilot.log
"""

import os
import logging
from pathlib import Path
from typing import Optional

import yaml

logger = logging.getLogger(__name__)

CONFIG_BASENAME = "autopilot-agent"

# (section, key) -> AgentConfig field
FIELD_MAP = {
    ("capacity", "per_replica"): "capacity_per_replica",
    ("capacity", "baseline_replicas"): "baseline_replicas",
    ("capacity", "initial_demand"): "initial_demand",
    ("capacity", "critical_cpu"): "critical_cpu_threshold",
    ("policy", "max_replicas"): "max_replicas",
    ("autopilot", "enabled"): "autopilot_enabled",
    ("autopilot", "delay_seconds"): "autopilot_delay_seconds",
    ("autopilot", "headroom"): "autopilot_headroom",
    ("autopilot", "min_step"): "autopilot_min_step",
    ("delegate", "timeout"): "delegate_timeout",
    ("server", "host"): "host",
    ("server", "port"): "port",
    ("server", "registry_path"): "registry_path",
    ("audit", "file"): "audit_file",
    ("audit", "buffer_size"): "audit_buffer_size",
    ("logging", "level"): "log_level",
    ("logging", "file"): "log_file",
    ("logging", "json"): "log_json",
}

# env var -> (section, key, parser)
ENV_MAP = {
    "AUTOPILOT_CAPACITY_PER_REPLICA": ("capacity", "per_replica", int),
    "AUTOPILOT_BASELINE_REPLICAS": ("capacity", "baseline_replicas", int),
    "AUTOPILOT_INITIAL_DEMAND": ("capacity", "initial_demand", float),
    "AUTOPILOT_CRITICAL_CPU": ("capacity", "critical_cpu", int),
    "AUTOPILOT_MAX_REPLICAS": ("policy", "max_replicas", int),
    "AUTOPILOT_ENABLED": ("autopilot", "enabled", lambda v: v.lower() in ("true", "1", "yes")),
    "AUTOPILOT_DELAY_SECONDS": ("autopilot", "delay_seconds", float),
    "AUTOPILOT_HEADROOM": ("autopilot", "headroom", float),
    "AUTOPILOT_MIN_STEP": ("autopilot", "min_step", int),
    "AUTOPILOT_DELEGATE_TIMEOUT": ("delegate", "timeout", float),
    "AUTOPILOT_HOST": ("server", "host", str),
    "AUTOPILOT_PORT": ("server", "port", int),
    "AUTOPILOT_REGISTRY_PATH": ("server", "registry_path", str),
    "AUTOPILOT_AUDIT_FILE": ("audit", "file", str),
    "AUTOPILOT_AUDIT_BUFFER": ("audit", "buffer_size", int),
    "AUTOPILOT_LOG_LEVEL": ("logging", "level", str),
    "AUTOPILOT_LOG_FILE": ("logging", "file", str),
    "AUTOPILOT_LOG_JSON": ("logging", "json", lambda v: v.lower() in ("true", "1", "yes")),
}


def load_yaml_file(path: Path) -> dict:
    """
    Load configuration from a YAML file.

    Raises:
        FileNotFoundError: If file doesn't exist
        ValueError: If YAML parsing fails or the top level is not a mapping
    """
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    try:
        with open(path, 'r') as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValueError(f"Failed to parse YAML config file {path}: {e}") from e

    if config is None:
        return {}
    if not isinstance(config, dict):
        raise ValueError(f"Config file {path} must contain a mapping at the top level")
    return config


def load_toml_file(path: Path) -> dict:
    """
    Load configuration from a TOML file.

    Raises:
        FileNotFoundError: If file doesn't exist
        ValueError: If TOML parsing fails
    """
    try:
        # Python 3.11+ has tomllib built-in
        import tomllib
    except ImportError:
        import tomli as tomllib

    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    try:
        with open(path, 'rb') as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ValueError(f"Failed to parse TOML config file {path}: {e}") from e


def load_config_file(path: str) -> dict:
    """
    Load configuration from a YAML or TOML file.

    The file format is determined by the file extension (.yaml, .yml, or .toml).

    Raises:
        ValueError: If file extension is not supported or parsing fails
        FileNotFoundError: If file doesn't exist
    """
    file_path = Path(path)
    suffix = file_path.suffix.lower()

    if suffix in ['.yaml', '.yml']:
        return load_yaml_file(file_path)
    elif suffix == '.toml':
        return load_toml_file(file_path)
    else:
        raise ValueError(
            f"Unsupported config file format: {suffix}. "
            "Supported formats: .yaml, .yml, .toml"
        )


def find_config_file() -> Optional[Path]:
    """
    Search for a configuration file in standard locations.

    Search order:
    1. ./autopilot-agent.yaml
    2. ./autopilot-agent.toml
    3. ~/.autopilot-agent.yaml
    4. ~/.autopilot-agent.toml
    5. /etc/autopilot-agent.yaml
    6. /etc/autopilot-agent.toml

    Returns:
        Path to the first configuration file found, or None
    """
    search_paths = [
        Path.cwd() / f"{CONFIG_BASENAME}.yaml",
        Path.cwd() / f"{CONFIG_BASENAME}.toml",
        Path.home() / f".{CONFIG_BASENAME}.yaml",
        Path.home() / f".{CONFIG_BASENAME}.toml",
        Path(f"/etc/{CONFIG_BASENAME}.yaml"),
        Path(f"/etc/{CONFIG_BASENAME}.toml"),
    ]

    for path in search_paths:
        if path.exists() and path.is_file():
            logger.info(f"Found configuration file: {path}")
            return path

    logger.debug("No configuration file found in standard locations")
    return None


def get_env_config() -> dict:
    """
    Extract configuration from environment variables as nested sections.

    Unparseable values are logged and ignored.
    """
    config: dict = {}

    for env_name, (section, key, parse) in ENV_MAP.items():
        raw = os.getenv(env_name)
        if raw is None or raw == "":
            continue
        try:
            value = parse(raw)
        except ValueError:
            logger.warning(f"Invalid {env_name}, ignoring")
            continue
        config.setdefault(section, {})[key] = value

    return config


def deep_merge(base: dict, override: dict) -> dict:
    """
    Deep merge two dictionaries, with override values taking precedence.
    """
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def flatten_config(config: dict) -> dict:
    """
    Flatten nested configuration sections to AgentConfig field names.

    Unknown sections and keys are ignored with a debug message.
    """
    flat = {}

    for section, values in config.items():
        if not isinstance(values, dict):
            logger.debug(f"Ignoring non-table config entry: {section}")
            continue
        for key, value in values.items():
            field_name = FIELD_MAP.get((section, key))
            if field_name is None:
                logger.debug(f"Ignoring unknown config key: {section}.{key}")
                continue
            flat[field_name] = value

    return flat


def merge_config(file_config: dict, env_config: dict) -> dict:
    """
    Merge file-based and environment-based configuration.

    Environment variables take precedence over file-based configuration.

    Returns:
        Merged configuration dictionary (flattened)
    """
    merged = deep_merge(file_config, env_config)
    return flatten_config(merged)


def load_config_with_overrides(config_path: Optional[str] = None) -> dict:
    """
    Load configuration from file with environment variable overrides.

    Args:
        config_path: Optional explicit path to config file.
                    If None, searches standard locations.

    Returns:
        Dictionary containing merged configuration

    Raises:
        FileNotFoundError: If explicit config_path is provided but doesn't exist
        ValueError: If config parsing fails
    """
    file_config = {}

    if config_path:
        file_config = load_config_file(config_path)
        logger.info(f"Loaded configuration from: {config_path}")
    else:
        found_path = find_config_file()
        if found_path:
            file_config = load_config_file(str(found_path))
            logger.info(f"Loaded configuration from: {found_path}")

    env_config = get_env_config()
    if env_config:
        logger.info("Applying environment variable overrides")

    return merge_config(file_config, env_config)
