"""Signaling server configuration.

Loads settings from a single YAML file:
  * signaling.settings.yaml  — non-secret configuration

The file location can be overridden with ``SIGNALING_SETTINGS``.  A handful of
environment variables (``PORT``, ``ENVIRONMENT``, ``LOG_LEVEL``) take precedence
over the file so container deployments can stay file-less.
"""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

SETTINGS_FILE = Path("signaling.settings.yaml")
SETTINGS_ENV_VAR = "SIGNALING_SETTINGS"

# environment variable -> (section, field)
ENV_OVERRIDES = {
    "PORT":        ("server", "port"),
    "ENVIRONMENT": ("server", "environment"),
    "LOG_LEVEL":   ("logging", "level"),
}


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        logger.warning("Config file not found: %s", path)
        return {}
    with path.open(encoding="utf-8") as fh:
        return yaml.safe_load(fh) or {}


def _apply_env_overrides(data: Dict[str, Any]) -> Dict[str, Any]:
    for env_name, (section, key) in ENV_OVERRIDES.items():
        value = os.environ.get(env_name)
        if value:
            data.setdefault(section, {})
            data[section][key] = value
            logger.debug("Config override from env: %s -> %s.%s", env_name, section, key)
    return data


# ---------------------------------------------------------------------------
# Settings models
# ---------------------------------------------------------------------------


class ServerSettings(BaseModel):
    host:        str = "0.0.0.0"
    port:        int = Field(default=8081, ge=1, le=65535)
    environment: str = "development"


class LoggingSettings(BaseModel):
    level: str = "info"

    @field_validator("level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        if not isinstance(logging.getLevelName(value.upper()), int):
            raise ValueError(f"Unknown log level: {value}")
        return value.lower()


class IdentitySettings(BaseModel):
    """Soft identity cookie used to resume a peer id across reconnects."""
    cookie_name:    str           = "uid"
    cookie_path:    str           = "/"
    # None issues a session cookie
    cookie_max_age: Optional[int] = Field(default=365 * 24 * 60 * 60, ge=0)


class PairingSettings(BaseModel):
    """Numeric pairing codes are drawn from ``[0, code_space)``."""
    code_space:   int = Field(default=9999, ge=1)
    max_attempts: int = Field(default=64, ge=1)


class AppSettings(BaseModel):
    server:   ServerSettings   = Field(default_factory=ServerSettings)
    logging:  LoggingSettings  = Field(default_factory=LoggingSettings)
    identity: IdentitySettings = Field(default_factory=IdentitySettings)
    pairing:  PairingSettings  = Field(default_factory=PairingSettings)


# ---------------------------------------------------------------------------
# Public loader
# ---------------------------------------------------------------------------


def load_config(settings_path: Optional[Path] = None) -> AppSettings:
    """Load the settings file, apply env overrides and validate."""
    if settings_path is None:
        settings_path = Path(os.environ.get(SETTINGS_ENV_VAR) or SETTINGS_FILE)

    settings_data = _apply_env_overrides(_load_yaml(Path(settings_path)))
    app_settings = AppSettings(**settings_data)
    logger.info(
        "Settings loaded (server=%s:%s, environment=%s)",
        app_settings.server.host,
        app_settings.server.port,
        app_settings.server.environment,
    )
    return app_settings


_config: Optional[AppSettings] = None


def get_config() -> AppSettings:
    """Return the process-wide settings, loading them on first use."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reset_config() -> None:
    """Drop the cached settings (for testing)."""
    global _config
    _config = None
