"""
Pydantic configuration schema for symbridge.

This module defines all configuration models with validation.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

# =============================================================================
# Platform Connection Configuration
# =============================================================================

# Required connection settings and the environment variable each comes from.
REQUIRED_SETTINGS: dict[str, str] = {
    "host": "HUBOT_SYMPHONY_HOST",
    "public_key": "HUBOT_SYMPHONY_PUBLIC_KEY",
    "private_key": "HUBOT_SYMPHONY_PRIVATE_KEY",
    "passphrase": "HUBOT_SYMPHONY_PASSPHRASE",
}


class SymphonyConfig(BaseModel):
    """Connection settings for the Symphony pod, agent and key manager."""

    model_config = ConfigDict(extra="allow")

    host: str | None = None
    public_key: str | None = None
    private_key: str | None = None
    passphrase: str | None = None

    # Optional split deployments; each defaults to ``host``
    key_manager_host: str | None = None
    agent_host: str | None = None
    session_auth_host: str | None = None

    # Datafeed reads block server-side for up to ~30s
    timeout: float = Field(default=60.0, gt=0.0)

    @property
    def resolved_key_manager_host(self) -> str | None:
        return self.key_manager_host or self.host

    @property
    def resolved_agent_host(self) -> str | None:
        return self.agent_host or self.host

    @property
    def resolved_session_auth_host(self) -> str | None:
        return self.session_auth_host or self.host

    def missing_settings(self) -> list[str]:
        """Environment variable names of required settings that are unset."""
        return [
            env_name
            for field_name, env_name in REQUIRED_SETTINGS.items()
            if not getattr(self, field_name)
        ]


# =============================================================================
# Adapter Behaviour Configuration
# =============================================================================


class AdapterConfig(BaseModel):
    """Datafeed polling and retry behaviour."""

    model_config = ConfigDict(extra="allow")

    fail_connect_after: int = Field(default=23, ge=1)
    backoff_initial: float = Field(default=0.01, ge=0.0)
    backoff_max: float = Field(default=60.0, ge=0.0)
    dm_prefix_robot_name: bool = True


# =============================================================================
# General Configuration
# =============================================================================


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    rich: bool = True


class Config(BaseModel):
    """Root configuration model for symbridge."""

    model_config = ConfigDict(extra="allow")

    symphony: SymphonyConfig = Field(default_factory=SymphonyConfig)
    adapter: AdapterConfig = Field(default_factory=AdapterConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
