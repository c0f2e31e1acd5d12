"""
Tests for logging configuration and correlation context.
"""
import json
import logging

import pytest

from autopilot_agent.logging_config import reset_logging_config, setup_logging
from autopilot_agent.logging_context import (
    ContextFilter,
    JSONFormatter,
    LoggingContext,
    get_context,
    set_context,
)


@pytest.fixture(autouse=True)
def reset_logging():
    reset_logging_config()
    yield
    reset_logging_config()


def test_logging_context_nests_and_restores():
    with LoggingContext(incident_id="inc-1"):
        with LoggingContext(action="scale"):
            assert get_context() == {"incident_id": "inc-1", "action": "scale"}
        assert get_context() == {"incident_id": "inc-1"}

    assert get_context() == {}


def test_set_context_merges():
    set_context(request_id="abc")
    set_context(trigger="autopilot")

    assert get_context() == {"request_id": "abc", "trigger": "autopilot"}


def test_json_formatter_includes_context():
    record = logging.LogRecord("autopilot_agent.test", logging.INFO, __file__, 1, "Scaled", None, None)

    with LoggingContext(incident_id="inc-7", action="scale"):
        data = json.loads(JSONFormatter().format(record))

    assert data["message"] == "Scaled"
    assert data["level"] == "INFO"
    assert data["incident_id"] == "inc-7"
    assert data["action"] == "scale"


def test_context_filter_stamps_records():
    record = logging.LogRecord("autopilot_agent.test", logging.INFO, __file__, 1, "Rolling back", None, None)

    with LoggingContext(incident_id="inc-9"):
        assert ContextFilter().filter(record) is True

    assert record.incident_id == "inc-9"
    assert record.action is None
    assert record.context == " [incident_id=inc-9]"


def test_context_filter_keeps_explicit_extras():
    record = logging.LogRecord("autopilot_agent.test", logging.INFO, __file__, 1, "x", None, None)
    record.action = "scale"

    with LoggingContext(action="rollback"):
        ContextFilter().filter(record)

    assert record.action == "scale"
    assert record.context == " [action=scale]"


def test_setup_logging_writes_file(tmp_path):
    log_file = tmp_path / "logs" / "agent.log"

    setup_logging(level="DEBUG", log_file=log_file)
    logging.getLogger("autopilot_agent.test").info("hello file")
    for handler in logging.getLogger().handlers:
        handler.flush()

    assert "hello file" in log_file.read_text()


def test_json_format_and_config(tmp_path):
    from autopilot_agent.config import AgentConfig
    from autopilot_agent.logging_config import configure_from_config

    log_file = tmp_path / "agent.log"
    config = AgentConfig(registry_path=None, log_level="DEBUG", log_file=str(log_file), log_json=True)

    setup_logging(level="WARNING")
    configure_from_config(config)
    with LoggingContext(incident_id="inc-3"):
        logging.getLogger("autopilot_agent.test").info("opened")
    for handler in logging.getLogger().handlers:
        handler.flush()

    record = json.loads(log_file.read_text().strip().splitlines()[-1])
    assert record["message"] == "opened"
    assert record["incident_id"] == "inc-3"


def test_second_setup_only_changes_level():
    setup_logging(level="INFO")
    handlers = list(logging.getLogger().handlers)

    setup_logging(level="ERROR")

    assert logging.getLogger().handlers == handlers
    assert logging.getLogger().level == logging.ERROR
