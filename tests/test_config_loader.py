"""
Tests for configuration file loader.
"""

import os

import pytest

from autopilot_agent.config_loader import (
    load_yaml_file,
    load_toml_file,
    load_config_file,
    find_config_file,
    get_env_config,
    deep_merge,
    flatten_config,
    merge_config,
    load_config_with_overrides,
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep AUTOPILOT_* variables from the outer environment out of these tests."""
    for name in list(os.environ):
        if name.startswith("AUTOPILOT_"):
            monkeypatch.delenv(name)


class TestLoadYAMLFile:
    """Tests for YAML file loading."""

    def test_load_valid_yaml(self, tmp_path):
        """Test loading a valid YAML file."""
        config_file = tmp_path / "config.yaml"
        config_file.write_text("""
policy:
  max_replicas: 12
autopilot:
  enabled: true
  delay_seconds: 0.5
""")

        config = load_yaml_file(config_file)

        assert config["policy"]["max_replicas"] == 12
        assert config["autopilot"]["enabled"] is True
        assert config["autopilot"]["delay_seconds"] == 0.5

    def test_load_empty_yaml(self, tmp_path):
        """Test loading an empty YAML file."""
        config_file = tmp_path / "config.yaml"
        config_file.write_text("")

        assert load_yaml_file(config_file) == {}

    def test_load_invalid_yaml(self, tmp_path):
        """Test loading invalid YAML raises ValueError."""
        config_file = tmp_path / "config.yaml"
        config_file.write_text("policy: [unclosed")

        with pytest.raises(ValueError, match="Failed to parse YAML"):
            load_yaml_file(config_file)

    def test_non_mapping_yaml(self, tmp_path):
        """A top-level list is not a configuration."""
        config_file = tmp_path / "config.yaml"
        config_file.write_text("- a\n- b\n")

        with pytest.raises(ValueError, match="mapping"):
            load_yaml_file(config_file)

    def test_missing_yaml(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_yaml_file(tmp_path / "missing.yaml")


class TestLoadTOMLFile:
    """Tests for TOML file loading."""

    def test_load_valid_toml(self, tmp_path):
        config_file = tmp_path / "config.toml"
        config_file.write_text("""
[capacity]
per_replica = 250

[server]
port = 8080
""")

        config = load_toml_file(config_file)

        assert config["capacity"]["per_replica"] == 250
        assert config["server"]["port"] == 8080

    def test_load_invalid_toml(self, tmp_path):
        config_file = tmp_path / "config.toml"
        config_file.write_text("[capacity\nper_replica = ")

        with pytest.raises(ValueError, match="Failed to parse TOML"):
            load_toml_file(config_file)


class TestLoadConfigFile:
    """Tests for extension dispatch."""

    def test_yml_extension(self, tmp_path):
        config_file = tmp_path / "config.yml"
        config_file.write_text("policy:\n  max_replicas: 7\n")

        assert load_config_file(str(config_file))["policy"]["max_replicas"] == 7

    def test_unsupported_extension(self, tmp_path):
        config_file = tmp_path / "config.json"
        config_file.write_text("{}")

        with pytest.raises(ValueError, match="Unsupported config file format"):
            load_config_file(str(config_file))


class TestFindConfigFile:
    """Tests for the search path."""

    def test_finds_file_in_cwd(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("HOME", str(tmp_path / "home"))
        (tmp_path / "autopilot-agent.yaml").write_text("policy: {}\n")

        assert find_config_file() == tmp_path / "autopilot-agent.yaml"

    def test_finds_dotfile_in_home(self, tmp_path, monkeypatch):
        home = tmp_path / "home"
        home.mkdir()
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("HOME", str(home))
        (home / ".autopilot-agent.toml").write_text("[policy]\n")

        assert find_config_file() == home / ".autopilot-agent.toml"


class TestEnvConfig:
    """Tests for environment overrides."""

    def test_env_values_are_parsed(self, monkeypatch):
        monkeypatch.setenv("AUTOPILOT_MAX_REPLICAS", "20")
        monkeypatch.setenv("AUTOPILOT_ENABLED", "yes")
        monkeypatch.setenv("AUTOPILOT_HEADROOM", "1.5")

        config = get_env_config()

        assert config["policy"]["max_replicas"] == 20
        assert config["autopilot"]["enabled"] is True
        assert config["autopilot"]["headroom"] == 1.5

    def test_invalid_env_value_is_ignored(self, monkeypatch):
        monkeypatch.setenv("AUTOPILOT_PORT", "not-a-port")

        assert "server" not in get_env_config()


class TestMerging:
    """Tests for merge and flatten helpers."""

    def test_deep_merge(self):
        base = {"policy": {"max_replicas": 10}, "autopilot": {"enabled": False}}
        override = {"autopilot": {"enabled": True}}

        merged = deep_merge(base, override)

        assert merged == {"policy": {"max_replicas": 10}, "autopilot": {"enabled": True}}
        assert base["autopilot"]["enabled"] is False

    def test_flatten_ignores_unknown_keys(self):
        flat = flatten_config({
            "capacity": {"per_replica": 300, "mystery": 1},
            "unknown": {"x": 1},
            "loose": 5,
        })

        assert flat == {"capacity_per_replica": 300}

    def test_merge_config_env_wins(self):
        merged = merge_config(
            {"server": {"port": 4000, "host": "0.0.0.0"}},
            {"server": {"port": 5000}},
        )

        assert merged == {"port": 5000, "host": "0.0.0.0"}


def test_load_config_with_overrides(tmp_path, monkeypatch):
    """File values are overridden by environment variables."""
    config_file = tmp_path / "agent.yaml"
    config_file.write_text("""
policy:
  max_replicas: 12
logging:
  level: DEBUG
""")
    monkeypatch.setenv("AUTOPILOT_MAX_REPLICAS", "15")
    monkeypatch.setenv("AUTOPILOT_LOG_JSON", "true")

    config = load_config_with_overrides(str(config_file))

    assert config["max_replicas"] == 15
    assert config["log_level"] == "DEBUG"
    assert config["log_json"] is True


def test_load_config_with_missing_explicit_path(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config_with_overrides(str(tmp_path / "missing.yaml"))
