"""
Configuration management for the Direct Line client.

This module implements hierarchical configuration loading with validation,
following the pattern: CLI args > env vars > user config > defaults.
"""

from contextvars import ContextVar
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import (
    BaseSettings,
    InitSettingsSource,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from ..clients.directline import DEFAULT_BASE_URL
from ..core.models import Auth

# YAML user configuration consulted below every other settings source
_user_config: ContextVar[dict[str, Any]] = ContextVar("user_config", default={})


class APIConfig(BaseModel):
    """Direct Line API configuration."""

    base_url: str = Field(
        default=DEFAULT_BASE_URL, description="Direct Line v3 endpoint"
    )
    timeout: float = Field(
        default=30.0, gt=0, le=300, description="Request timeout in seconds"
    )
    max_connections: int = Field(
        default=10, ge=1, le=100, description="HTTP connection pool size"
    )

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v):
        if not v.startswith(("https://", "http://")):
            raise ValueError("Base URL must be an http(s) URL")
        return v.rstrip("/")


class StreamConfig(BaseModel):
    """Inbound activity stream configuration."""

    poll_interval: float = Field(
        default=1.0, ge=0.1, le=60.0, description="Activity polling interval in seconds"
    )


class ClientConfig(BaseModel):
    """Identity the client uses in the conversation."""

    user_id: str = Field(default="user", description="Sender id of posted activities")
    user_name: str | None = Field(default=None, description="Sender display name")
    locale: str | None = Field(default=None, description="Locale of posted messages")

    @field_validator("user_id")
    @classmethod
    def validate_user_id(cls, v):
        if not v or len(v.strip()) == 0:
            raise ValueError("User id cannot be empty")
        return v.strip()


class AppSettings(BaseSettings):
    """Main application settings using environment variables."""

    # Application info
    app_name: str = Field(default="directline", description="Application name")
    environment: str = Field(
        default="development",
        description="Environment (development/staging/production)",
    )

    # Credentials
    directline_secret: str | None = Field(
        default=None, description="Direct Line secret", repr=False
    )
    directline_token: str | None = Field(
        default=None, description="Direct Line token", repr=False
    )

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")

    # Configuration sections
    api: APIConfig = Field(default_factory=APIConfig)
    stream: StreamConfig = Field(default_factory=StreamConfig)
    client: ClientConfig = Field(default_factory=ClientConfig)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="forbid",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Priority: init kwargs > env vars > .env > secrets > user config."""
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            file_secret_settings,
            InitSettingsSource(settings_cls, init_kwargs=_user_config.get()),
        )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v):
        valid_environments = {"development", "staging", "production"}
        if v not in valid_environments:
            raise ValueError(f"Environment must be one of {valid_environments}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of {valid_levels}")
        return v.upper()

    @model_validator(mode="after")
    def validate_credentials(self):
        """Validate that a Direct Line credential is configured."""
        if (
            not self.directline_secret
            and not self.directline_token
            and self.environment != "development"
        ):
            raise ValueError(
                "A Direct Line secret or token must be configured in non-development environments"
            )

        return self

    def has_credentials(self) -> bool:
        return bool(self.directline_secret or self.directline_token)

    def get_auth(self) -> Auth:
        """Build the credential for starting conversations (token preferred)."""
        if self.directline_token:
            return Auth.token(self.directline_token)
        if self.directline_secret:
            return Auth.secret(self.directline_secret)
        raise ValueError(
            "No Direct Line credential configured (set DIRECTLINE_SECRET or DIRECTLINE_TOKEN)"
        )


class ConfigurationManager:
    """Manages hierarchical configuration loading and validation."""

    def __init__(self):
        self._settings: AppSettings | None = None
        self._user_config: dict[str, Any] = {}

    def load_configuration(
        self,
        config_path: Path | None = None,
        **overrides: Any,
    ) -> AppSettings:
        """
        Load configuration with hierarchy: overrides > env vars > user config > defaults.

        Args:
            config_path: Path to user configuration file
            **overrides: Field values taking precedence over every source

        Returns:
            Validated AppSettings instance
        """
        if config_path and config_path.exists():
            self._user_config = self._load_yaml_config(config_path)

        token = _user_config.set(self._user_config)
        try:
            self._settings = AppSettings(**overrides)
        finally:
            _user_config.reset(token)
        return self._settings

    def _load_yaml_config(self, config_path: Path) -> dict[str, Any]:
        """Load configuration from YAML file."""
        try:
            with open(config_path, encoding="utf-8") as f:
                config = yaml.safe_load(f)
                return config or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML configuration: {e}") from e
        except FileNotFoundError:
            return {}

    @property
    def settings(self) -> AppSettings:
        """Get current settings (load default if not loaded)."""
        if self._settings is None:
            self._settings = self.load_configuration()
        return self._settings

    def reset(self):
        """Reset the configuration manager (useful for testing)."""
        self._settings = None
        self._user_config = {}

    def export_config_template(self, output_path: Path):
        """Export a configuration template file."""
        template = {
            "environment": "development",
            "log_level": "INFO",
            "api": {
                "base_url": DEFAULT_BASE_URL,
                "timeout": 30.0,
                "max_connections": 10,
            },
            "stream": {"poll_interval": 1.0},
            "client": {"user_id": "user", "user_name": None, "locale": "en-US"},
        }

        with open(output_path, "w", encoding="utf-8") as f:
            yaml.dump(template, f, default_flow_style=False, indent=2)


# Global configuration manager instance
config_manager = ConfigurationManager()


def get_settings() -> AppSettings:
    """Get the current application settings."""
    return config_manager.settings


def load_config(config_path: Path | None = None) -> AppSettings:
    """Load configuration from file and environment."""
    return config_manager.load_configuration(config_path)
