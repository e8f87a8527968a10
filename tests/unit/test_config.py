"""
Unit tests for the symbridge configuration system.
"""

from pathlib import Path

import pytest
import yaml

from symbridge.config import (
    REQUIRED_SETTINGS,
    Config,
    ConfigurationError,
    SymphonyConfig,
    deep_merge,
    load_config,
    load_yaml_file,
    set_nested_value,
    validate_symphony_config,
)
from symbridge.storage.paths import get_global_config_path, get_symbridge_home

# =============================================================================
# Schema Tests
# =============================================================================


class TestConfigSchema:
    """Tests for the Config Pydantic schema."""

    def test_default_config_is_valid(self):
        config = Config()
        assert config.symphony.host is None
        assert config.adapter.fail_connect_after == 23
        assert config.adapter.dm_prefix_robot_name is True
        assert config.logging.level == "INFO"

    def test_split_hosts_default_to_host(self):
        config = SymphonyConfig(host="pod.example.com")
        assert config.resolved_agent_host == "pod.example.com"
        assert config.resolved_key_manager_host == "pod.example.com"
        assert config.resolved_session_auth_host == "pod.example.com"

    def test_split_hosts_override(self):
        config = SymphonyConfig(host="pod.example.com", agent_host="agent.example.com")
        assert config.resolved_agent_host == "agent.example.com"
        assert config.resolved_key_manager_host == "pod.example.com"

    def test_fail_connect_after_must_be_positive(self):
        with pytest.raises(Exception):  # Pydantic ValidationError
            Config.model_validate({"adapter": {"fail_connect_after": 0}})

    def test_missing_settings_in_order(self):
        config = SymphonyConfig(host="pod.example.com", passphrase="x")
        assert config.missing_settings() == [
            "HUBOT_SYMPHONY_PUBLIC_KEY",
            "HUBOT_SYMPHONY_PRIVATE_KEY",
        ]


# =============================================================================
# Required Settings
# =============================================================================


class TestRequiredSettings:
    """Each required setting is reported by its variable name."""

    @pytest.mark.parametrize("env_name", list(REQUIRED_SETTINGS.values()))
    def test_missing_setting_is_named(self, env_name, symphony_env, monkeypatch):
        monkeypatch.delenv(env_name)
        config = load_config()

        with pytest.raises(ConfigurationError, match=f"{env_name} undefined"):
            validate_symphony_config(config.symphony)

        monkeypatch.setenv(env_name, symphony_env[env_name])
        config = load_config()
        assert validate_symphony_config(config.symphony) is config.symphony

    def test_empty_value_counts_as_missing(self, symphony_env, monkeypatch):
        monkeypatch.setenv("HUBOT_SYMPHONY_PASSPHRASE", "")
        with pytest.raises(ConfigurationError, match="HUBOT_SYMPHONY_PASSPHRASE undefined"):
            validate_symphony_config(load_config().symphony)


# =============================================================================
# Loader Tests
# =============================================================================


class TestLoader:
    """Tests for load_config and helpers."""

    def test_env_values_are_strings(self, symphony_env, monkeypatch):
        monkeypatch.setenv("HUBOT_SYMPHONY_PASSPHRASE", "12345")
        config = load_config()
        assert config.symphony.passphrase == "12345"
        assert config.symphony.host == "foundation.symphony.com"

    def test_optional_hosts_from_env(self, symphony_env, monkeypatch):
        monkeypatch.setenv("HUBOT_SYMPHONY_AGENT_HOST", "agent.symphony.com")
        monkeypatch.setenv("HUBOT_SYMPHONY_KM_HOST", "km.symphony.com")
        config = load_config()
        assert config.symphony.resolved_agent_host == "agent.symphony.com"
        assert config.symphony.resolved_key_manager_host == "km.symphony.com"

    def test_symbridge_overrides(self, monkeypatch):
        monkeypatch.setenv("SYMBRIDGE_ADAPTER_FAIL_CONNECT_AFTER", "5")
        monkeypatch.setenv("SYMBRIDGE_ADAPTER_DM_PREFIX_ROBOT_NAME", "false")
        monkeypatch.setenv("SYMBRIDGE_LOGGING_LEVEL", "DEBUG")
        config = load_config()
        assert config.adapter.fail_connect_after == 5
        assert config.adapter.dm_prefix_robot_name is False
        assert config.logging.level == "DEBUG"

    def test_yaml_file(self, isolated_env: Path):
        path = get_global_config_path()
        path.parent.mkdir(parents=True)
        path.write_text(
            yaml.dump(
                {
                    "symphony": {"host": "yaml.symphony.com", "passphrase": "secret"},
                    "adapter": {"fail_connect_after": 3},
                }
            )
        )

        config = load_config()
        assert config.symphony.host == "yaml.symphony.com"
        assert config.adapter.fail_connect_after == 3

    def test_env_overrides_yaml(self, isolated_env: Path, symphony_env):
        path = get_global_config_path()
        path.parent.mkdir(parents=True)
        path.write_text(yaml.dump({"symphony": {"host": "yaml.symphony.com"}}))

        assert load_config().symphony.host == "foundation.symphony.com"

    def test_explicit_missing_file(self, temp_dir: Path):
        with pytest.raises(ConfigurationError, match="not found"):
            load_config(config_path=temp_dir / "nope.yaml")

    def test_invalid_yaml(self, temp_dir: Path):
        path = temp_dir / "bad.yaml"
        path.write_text("symphony: [unclosed")
        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            load_yaml_file(path)

    def test_yaml_must_be_mapping(self, temp_dir: Path):
        path = temp_dir / "list.yaml"
        path.write_text("- host\n- passphrase\n")
        with pytest.raises(ConfigurationError, match="must contain a mapping"):
            load_yaml_file(path)

    def test_empty_yaml(self, temp_dir: Path):
        path = temp_dir / "empty.yaml"
        path.write_text("")
        assert load_yaml_file(path) == {}

    def test_invalid_values(self, monkeypatch):
        monkeypatch.setenv("SYMBRIDGE_ADAPTER_FAIL_CONNECT_AFTER", "0")
        with pytest.raises(ConfigurationError, match="Invalid configuration"):
            load_config()

    def test_home_from_env(self, isolated_env: Path):
        assert get_symbridge_home() == isolated_env.resolve()


class TestMerger:
    """Tests for dictionary merge helpers."""

    def test_deep_merge(self):
        base = {"symphony": {"host": "a", "timeout": 60}}
        override = {"symphony": {"host": "b"}}
        assert deep_merge(base, override) == {"symphony": {"host": "b", "timeout": 60}}

    def test_deep_merge_none_removes(self):
        assert deep_merge({"a": 1, "b": 2}, {"a": None}) == {"b": 2}

    def test_deep_merge_does_not_mutate(self):
        base = {"symphony": {"host": "a"}}
        deep_merge(base, {"symphony": {"host": "b"}})
        assert base == {"symphony": {"host": "a"}}

    def test_set_nested_value(self):
        config: dict = {"adapter": "not-a-section"}
        set_nested_value(config, "adapter.fail_connect_after", 4)
        set_nested_value(config, "symphony.host", "pod")
        assert config == {"adapter": {"fail_connect_after": 4}, "symphony": {"host": "pod"}}
