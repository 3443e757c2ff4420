"""Configuration system for pkceauth using pydantic-settings.

Supports layered configuration:
1. Built-in defaults (lowest priority)
2. pyproject.toml [tool.pkceauth] section (project-level)
3. ./pkceauth.toml (project-level, explicit)
4. File named by PKCEAUTH_CONFIG_FILE
5. Environment variables
6. Explicit keyword arguments (highest priority)

Environment variables use the PKCEAUTH__ prefix with nested delimiter __.
Example: PKCEAUTH__OAUTH2__CLIENT_ID, PKCEAUTH__LOG__LEVEL
"""

from __future__ import annotations

import os
import tomllib

from pathlib import Path
from typing import Any, Literal

from pydantic import Field
from pydantic.fields import FieldInfo
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from . import log


def _find_config_files() -> list[Path]:
    """Find all configuration files in order of precedence (lowest first)."""
    files = []

    pyproject = Path("pyproject.toml")
    if pyproject.exists():
        files.append(pyproject)

    explicit = Path("pkceauth.toml")
    if explicit.exists():
        files.append(explicit)

    env_config = os.environ.get("PKCEAUTH_CONFIG_FILE")
    if env_config:
        env_path = Path(env_config)
        if env_path.exists():
            files.append(env_path)

    return files


def _load_toml_config() -> dict[str, Any]:
    """Load and merge all TOML configuration files.

    Unreadable or invalid files are skipped with a warning.
    """
    merged: dict[str, Any] = {}

    for config_file in _find_config_files():
        try:
            data = tomllib.loads(config_file.read_text(encoding="utf-8"))
        except (OSError, tomllib.TOMLDecodeError) as exc:
            log.warn(f"Ignoring config file {config_file}: {exc}")
            continue

        if config_file.name == "pyproject.toml":
            data = data.get("tool", {}).get("pkceauth", {})

        merged = _deep_merge(merged, data)

    return merged


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep merge two dictionaries."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


class _TomlFilesSource(PydanticBaseSettingsSource):
    """Settings source backed by the merged TOML configuration files."""

    def get_field_value(self, field: FieldInfo, field_name: str) -> tuple[Any, str, bool]:
        return None, field_name, False

    def __call__(self) -> dict[str, Any]:
        return _load_toml_config()


# Field names that contain sensitive data and must be redacted in output.
_SENSITIVE_FIELDS: set[str] = {
    "client_secret",
    "redis_url",
}

_REDACTED = "********"


class LogSettings(BaseSettings):
    """Logging settings.

    Environment prefix: PKCEAUTH_LOG__
    Example: PKCEAUTH_LOG__LEVEL=DEBUG
    """

    model_config = SettingsConfigDict(
        env_prefix="PKCEAUTH_LOG__",
        extra="ignore",
    )

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "WARNING"
    format: str = log.DEFAULT_FORMAT


class OAuth2Settings(BaseSettings):
    """Provider and flow configuration.

    Environment prefix: PKCEAUTH_OAUTH2__
    Example: PKCEAUTH_OAUTH2__CLIENT_ID=your-client-id
    Example: PKCEAUTH_OAUTH2__VARIANT=oidc

    TOML section: [tool.pkceauth.oauth2]
    """

    model_config = SettingsConfigDict(
        env_prefix="PKCEAUTH_OAUTH2__",
        extra="ignore",
    )

    variant: Literal["oauth2", "oidc"] = Field(
        default="oauth2",
        description="Flow variant: plain OAuth2 or OpenID Connect with ID token verification",
    )

    client_id: str = Field(
        default="",
        description="Client ID registered at the provider",
    )
    client_secret: str = Field(
        default="",
        description="Client secret (empty for public clients with PKCE)",
    )
    redirect_uri: str = Field(
        default="",
        description="Redirect URI registered at the provider",
    )

    authorization_endpoint: str = Field(
        default="",
        description="Authorization endpoint URL (required for oauth2, discovered for oidc)",
    )
    token_endpoint: str = Field(
        default="",
        description="Token endpoint URL (required for oauth2, discovered for oidc)",
    )
    issuer: str = Field(
        default="",
        description="OIDC issuer URL used for discovery",
    )
    scopes: str = Field(
        default="",
        description="Space-separated scopes to request (openid is added for oidc)",
    )

    http_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Timeout for discovery and token endpoint requests",
    )

    state_store_backend: Literal["memory", "redis"] = Field(
        default="memory",
        description="Where in-flight challenge material is kept: memory or redis",
    )
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL for the redis backend",
    )
    state_prefix: str = Field(
        default="pkceauth",
        description="Key prefix for the redis backend",
    )
    state_ttl_seconds: int = Field(
        default=600,
        ge=0,
        description="Lifetime of persisted challenge material in redis (0 disables expiry)",
    )


class PkceAuthSettings(BaseSettings):
    """Main settings aggregating all configuration sections.

    Environment prefix: PKCEAUTH__
    """

    model_config = SettingsConfigDict(
        env_prefix="PKCEAUTH__",
        env_nested_delimiter="__",
        extra="ignore",
    )

    log: LogSettings = Field(default_factory=LogSettings)
    oauth2: OAuth2Settings = Field(default_factory=OAuth2Settings)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Place TOML files below environment variables and init values."""
        return (init_settings, env_settings, _TomlFilesSource(settings_cls))

    def to_dict(self, redact: bool = True) -> dict[str, Any]:
        """Export settings as a nested dictionary.

        Parameters
        ----------
        redact : bool
            Replace sensitive values with a placeholder (default True).
        """
        data = self.model_dump()
        if redact:
            for section in data.values():
                if not isinstance(section, dict):
                    continue
                for name in _SENSITIVE_FIELDS & section.keys():
                    if section[name]:
                        section[name] = _REDACTED
        return data


def configure_logging(settings: LogSettings) -> None:
    """Apply log settings to the pkceauth logger."""
    log.set_level(settings.level)
    log.set_format(settings.format)


def get_settings(**overrides: Any) -> PkceAuthSettings:
    """Load settings and apply the logging section.

    Parameters
    ----------
    **overrides : Any
        Explicit values, taking precedence over configuration files.
    """
    settings = PkceAuthSettings(**overrides)
    configure_logging(settings.log)
    return settings
