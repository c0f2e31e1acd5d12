"""
Tests for the command-line interface.
"""
import json
import os
import sys

import pytest

from autopilot_agent import __version__
from autopilot_agent.cli import create_parser, handle_config, handle_simulate, handle_version, main


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Run from an empty directory so no stray config file is picked up."""
    for name in list(os.environ):
        if name.startswith("AUTOPILOT_"):
            monkeypatch.delenv(name)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))


def run(argv):
    return create_parser().parse_args(argv)


def test_version(capsys):
    assert handle_version(run(["version"])) == 0
    assert __version__ in capsys.readouterr().out


def test_simulate_with_autopilot(capsys):
    exit_code = handle_simulate(run(["simulate", "--autopilot", "--delay", "0"]))

    report = json.loads(capsys.readouterr().out)
    assert exit_code == 0
    assert report["status"]["health"] == "HEALTHY"
    assert report["status"]["replicas"] == 6
    assert report["steps"][0]["alert"]["demand"] == 1000
    assert report["steps"][0]["autopilot"]["status"] == "success"
    assert report["statistics"]["total_incidents"] == 1


def test_simulate_manual_scale_needs_approval(capsys):
    handle_simulate(run(["simulate", "--scale", "15"]))

    report = json.loads(capsys.readouterr().out)
    assert report["steps"][0]["scale"]["status"] == "pending_approval"
    assert report["status"]["health"] == "CRITICAL"
    assert len(report["pending_approvals"]) == 1


def test_simulate_escalating_episodes(capsys):
    handle_simulate(run(["simulate", "--autopilot", "--delay", "0", "--alerts", "2"]))

    report = json.loads(capsys.readouterr().out)
    assert [s["alert"]["demand"] for s in report["steps"]] == [1000, 1500]
    assert report["status"]["replicas"] == 9
    assert report["statistics"]["total_incidents"] == 2


def test_simulate_rejects_negative_delay(capsys):
    assert handle_simulate(run(["simulate", "--delay", "-1"])) == 1
    assert "autopilot_delay_seconds" in capsys.readouterr().err


def test_config_show_and_validate(capsys, tmp_path):
    config_file = tmp_path / "agent.yaml"
    config_file.write_text("policy:\n  max_replicas: 12\n")

    assert handle_config(run(["--config-file", str(config_file), "config", "show"])) == 0
    assert json.loads(capsys.readouterr().out)["max_replicas"] == 12

    config_file.write_text("policy:\n  max_replicas: 1\n")
    assert handle_config(run(["--config-file", str(config_file), "config", "validate"])) == 1


def test_main_without_subcommand_exits(monkeypatch):
    monkeypatch.setattr(sys, "argv", ["autopilot-agent"])
    monkeypatch.setattr("autopilot_agent.cli.setup_logging", lambda **kwargs: None)

    with pytest.raises(SystemExit) as exc_info:
        main()

    assert exc_info.value.code == 1
