"""Configuration system for symbridge."""

from symbridge.config.loader import (
    ConfigurationError,
    apply_env_overrides,
    load_config,
    load_yaml_file,
    validate_symphony_config,
)
from symbridge.config.merger import deep_merge, set_nested_value
from symbridge.config.schema import (
    REQUIRED_SETTINGS,
    AdapterConfig,
    Config,
    LoggingConfig,
    SymphonyConfig,
)

__all__ = [
    "REQUIRED_SETTINGS",
    "AdapterConfig",
    "Config",
    "ConfigurationError",
    "LoggingConfig",
    "SymphonyConfig",
    "apply_env_overrides",
    "deep_merge",
    "load_config",
    "load_yaml_file",
    "set_nested_value",
    "validate_symphony_config",
]
