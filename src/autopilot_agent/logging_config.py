"""
Logging setup for autopilot-agent.

One place installs the root handlers, so the CLI, the HTTP server and the
tests never stack duplicate handlers. Logs go to stderr so stdout stays free
for command output such as the ``simulate`` report.

Functions:
    setup_logging: Install console and optional rotating file handlers
    configure_from_config: Apply the logging section of an AgentConfig
    reset_logging_config: Drop installed handlers (tests)

Example:
    >>> from autopilot_agent.logging_config import setup_logging
    >>> setup_logging(level='DEBUG', log_file='autopilot.log', json_format=True)
"""
import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Optional

from .logging_context import ContextFilter, JSONFormatter

PLAIN_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s%(context)s'
SHORT_FORMAT = '%(name)s - %(levelname)s - %(message)s%(context)s'

# Chatty libraries that log every request at INFO
NOISY_LOGGERS = ('werkzeug', 'urllib3')

_LOGGING_CONFIGURED = False


def setup_logging(
    level: str = 'INFO',
    log_file: Optional[str | Path] = None,
    include_timestamp: bool = True,
    json_format: bool = False,
    force: bool = False,
    max_bytes: int = 10 * 1024 * 1024,  # 10MB
    backup_count: int = 5
) -> None:
    """
    Configure root logging.

    A second call only adjusts the level unless ``force`` is set, in which
    case handlers are rebuilt (used when the config file names a log file
    the command line did not).

    Args:
        level: Log level name
        log_file: Also write to this file, rotated at ``max_bytes``
        include_timestamp: Prefix plain-text records with a timestamp
        json_format: One JSON object per record, carrying request and
            incident correlation fields
        force: Rebuild handlers even if logging is already configured
        max_bytes: Rotation size for the log file
        backup_count: Rotated files to keep
    """
    global _LOGGING_CONFIGURED

    root_logger = logging.getLogger()
    numeric_level = getattr(logging, level.upper())

    if _LOGGING_CONFIGURED and not force:
        root_logger.setLevel(numeric_level)
        return

    formatter: logging.Formatter
    if json_format:
        formatter = JSONFormatter()
    else:
        formatter = logging.Formatter(PLAIN_FORMAT if include_timestamp else SHORT_FORMAT)

    root_logger.setLevel(numeric_level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(ContextFilter())
    root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            log_path,
            maxBytes=max_bytes,
            backupCount=backup_count
        )
        file_handler.setFormatter(formatter)
        file_handler.addFilter(ContextFilter())
        root_logger.addHandler(file_handler)

    if numeric_level > logging.DEBUG:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    _LOGGING_CONFIGURED = True
    root_logger.debug(f"Logging configured at {level} level (file={log_file}, json={json_format})")


def configure_from_config(config, log_file: Optional[str] = None) -> None:
    """
    Rebuild logging from an AgentConfig.

    An explicit ``log_file`` (from the command line) wins over the
    configured one.
    """
    setup_logging(
        level=config.log_level,
        log_file=log_file or config.log_file,
        json_format=config.log_json,
        force=True,
    )


def reset_logging_config() -> None:
    """Remove installed handlers so the next setup starts clean."""
    global _LOGGING_CONFIGURED

    logging.getLogger().handlers.clear()
    _LOGGING_CONFIGURED = False
