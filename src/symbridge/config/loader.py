"""
Configuration loading for symbridge.

Sources, later ones winning:
1. Schema defaults
2. YAML file (``$SYMBRIDGE_HOME/config.yaml`` or an explicit ``--config``)
3. Environment: the ``HUBOT_SYMPHONY_*`` connection variables, then
   ``SYMBRIDGE_<SECTION>_<KEY>`` overrides
"""

import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from symbridge.config.merger import deep_merge, set_nested_value
from symbridge.config.schema import Config, SymphonyConfig
from symbridge.storage.paths import get_global_config_path


class ConfigurationError(Exception):
    """Configuration is unreadable, invalid, or missing a required setting."""

    pass


# Connection variables understood by existing hubot-symphony deployments
SYMPHONY_ENV_VARS: dict[str, str] = {
    "HUBOT_SYMPHONY_HOST": "symphony.host",
    "HUBOT_SYMPHONY_PUBLIC_KEY": "symphony.public_key",
    "HUBOT_SYMPHONY_PRIVATE_KEY": "symphony.private_key",
    "HUBOT_SYMPHONY_PASSPHRASE": "symphony.passphrase",
    "HUBOT_SYMPHONY_KM_HOST": "symphony.key_manager_host",
    "HUBOT_SYMPHONY_AGENT_HOST": "symphony.agent_host",
    "HUBOT_SYMPHONY_SESSIONAUTH_HOST": "symphony.session_auth_host",
}

ENV_PREFIX = "SYMBRIDGE_"

# Not configuration keys
_RESERVED_ENV = {"SYMBRIDGE_HOME"}

_INT_RE = re.compile(r"^-?\d+$")
_FLOAT_RE = re.compile(r"^-?\d+\.\d+$")
_BOOL_WORDS = {"true": True, "yes": True, "on": True, "false": False, "no": False, "off": False}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Read one YAML layer.

    A missing or empty file is an empty layer.

    Raises:
        ConfigurationError: If the file is unreadable, is not valid YAML,
            or its top level is not a mapping.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}
    except OSError as e:
        raise ConfigurationError(f"Cannot read {path}: {e}") from e

    try:
        content = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e

    if content is None:
        return {}
    if not isinstance(content, dict):
        raise ConfigurationError(f"{path} must contain a mapping, not {type(content).__name__}")
    return content


def apply_env_overrides(config: dict[str, Any]) -> dict[str, Any]:
    """
    Layer environment variables onto ``config``.

    ``HUBOT_SYMPHONY_*`` values are taken verbatim as strings; empty values
    are ignored. ``SYMBRIDGE_<SECTION>_<KEY>=<value>`` sets
    ``<section>.<key>`` with the value coerced by :func:`_parse_env_value`.
    """
    for env_name, key_path in SYMPHONY_ENV_VARS.items():
        value = os.environ.get(env_name)
        if value:
            set_nested_value(config, key_path, value)

    for env_name, value in os.environ.items():
        if not env_name.startswith(ENV_PREFIX) or env_name in _RESERVED_ENV:
            continue
        # SYMBRIDGE_ADAPTER_FAIL_CONNECT_AFTER -> adapter.fail_connect_after
        section, _, key = env_name[len(ENV_PREFIX) :].lower().partition("_")
        if section and key:
            set_nested_value(config, f"{section}.{key}", _parse_env_value(value))

    return config


def _parse_env_value(value: str) -> Any:
    """Coerce an override to int, float or bool when it reads as one."""
    if _INT_RE.match(value):
        return int(value)
    if _FLOAT_RE.match(value):
        return float(value)
    return _BOOL_WORDS.get(value.lower(), value)


def load_config(
    config_path: Path | None = None,
    skip_file: bool = False,
    skip_env: bool = False,
) -> Config:
    """
    Build the merged configuration.

    Args:
        config_path: YAML file to use instead of the global one. Unlike
            the global file it must exist.
        skip_file: Ignore YAML files entirely.
        skip_env: Ignore environment variables.

    Returns:
        The validated configuration. Connection settings are not checked
        for completeness here; see :func:`validate_symphony_config`.

    Raises:
        ConfigurationError: If a source is unreadable or a value invalid.
    """
    config_dict = Config().model_dump()

    if not skip_file:
        if config_path is not None and not config_path.exists():
            raise ConfigurationError(f"Config file not found: {config_path}")
        config_dict = deep_merge(
            config_dict, load_yaml_file(config_path or get_global_config_path())
        )

    if not skip_env:
        config_dict = apply_env_overrides(config_dict)

    try:
        return Config.model_validate(config_dict)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e


def validate_symphony_config(config: SymphonyConfig) -> SymphonyConfig:
    """
    Check that every required connection setting is present.

    Returns:
        ``config`` unchanged.

    Raises:
        ConfigurationError: ``"<NAME> undefined"`` for the first missing
            setting, where ``<NAME>`` is its environment variable, for
            example ``"HUBOT_SYMPHONY_HOST undefined"``.
    """
    missing = config.missing_settings()
    if missing:
        raise ConfigurationError(f"{missing[0]} undefined")
    return config

