"""Configuration loader -- reads config.yaml + .env, validates with Pydantic.

Resolves ${ENV_VAR} references in YAML values from environment variables.
Fails fast with clear errors if the config is malformed.

Example config.yaml:

    scheduler:
      utc_offset: "+02:00"
      resolution: second
      max_catchup: 1m
    tasks:
      - name: heartbeat
        schedule: "*/30 * * * * *"
        handler: myapp.jobs:heartbeat
        args: ["primary"]
    server:
      enabled: true
      port: 8321
"""

from __future__ import annotations

import logging
import os
import re
from datetime import timedelta, timezone
from pathlib import Path
from typing import Any, Literal

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

from core.duration import parse_duration, parse_utc_offset

logger = logging.getLogger(__name__)

# Default home directory for config, .env and event audit files
DEFAULT_HOME = Path.home() / ".skedula"


def _resolve_env_vars(value: Any) -> Any:
    """Recursively resolve ${ENV_VAR} references in config values."""
    if isinstance(value, str):
        pattern = re.compile(r"\$\{(\w+)\}")
        def replacer(match: re.Match) -> str:
            var_name = match.group(1)
            env_value = os.environ.get(var_name)
            if env_value is None:
                logger.warning("Environment variable %s not set", var_name)
                return match.group(0)  # leave unresolved
            return env_value
        return pattern.sub(replacer, value)
    elif isinstance(value, dict):
        return {k: _resolve_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [_resolve_env_vars(item) for item in value]
    return value


# ---------------------------------------------------------------------------
# Config models (Pydantic)
# ---------------------------------------------------------------------------

class ServerConfig(BaseModel):
    enabled: bool = False
    host: str = "127.0.0.1"
    port: int = 8321


class SchedulerConfig(BaseModel):
    utc_offset: str = "+00:00"
    resolution: Literal["second", "minute"] = "second"
    max_catchup: str = "1m"

    @field_validator("utc_offset")
    @classmethod
    def _check_offset(cls, value: str) -> str:
        parse_utc_offset(value)
        return value

    @field_validator("max_catchup")
    @classmethod
    def _check_catchup(cls, value: str) -> str:
        parse_duration(value)
        return value

    @property
    def tz(self) -> timezone:
        return parse_utc_offset(self.utc_offset)

    @property
    def catchup(self) -> timedelta:
        return parse_duration(self.max_catchup)


class TaskConfig(BaseModel):
    """A task registered at startup. ``handler`` is "package.module:callable"."""

    name: str
    schedule: str
    handler: str
    args: list[Any] = Field(default_factory=list)
    kwargs: dict[str, Any] = Field(default_factory=dict)
    paused: bool = False

    @field_validator("handler")
    @classmethod
    def _check_handler(cls, value: str) -> str:
        module, _, attr = value.partition(":")
        if not module or not attr:
            raise ValueError(f"handler must look like 'package.module:callable', got {value!r}")
        return value


class LoggingConfig(BaseModel):
    level: str = "INFO"
    audit_events: bool = False


class AppConfig(BaseModel):
    """Top-level application configuration."""

    home_dir: str = str(DEFAULT_HOME)
    server: ServerConfig = Field(default_factory=ServerConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    tasks: list[TaskConfig] = Field(default_factory=list)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @property
    def home_path(self) -> Path:
        """Resolved home directory as a Path."""
        return Path(self.home_dir).expanduser()


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

def load_config(
    config_path: str | Path | None = None,
    env_path: str | Path | None = None,
) -> AppConfig:
    """Load configuration from YAML + .env files.

    1. Load .env into environment variables
    2. Load config.yaml and resolve ${ENV_VAR} references
    3. Validate against Pydantic models
    4. Create the home directory structure if needed
    """
    home = Path(os.environ.get("SKEDULA_HOME", str(DEFAULT_HOME))).expanduser()

    if env_path is None:
        env_path = home / ".env"
    if config_path is None:
        config_path = home / "config.yaml"

    env_path = Path(env_path)
    config_path = Path(config_path)

    if env_path.exists():
        load_dotenv(env_path)
        logger.info("Loaded environment from %s", env_path)
    else:
        logger.debug("No .env file at %s", env_path)

    raw_config: dict = {}
    if config_path.exists():
        with open(config_path) as f:
            raw_config = yaml.safe_load(f) or {}
        logger.info("Loaded config from %s", config_path)
    else:
        logger.warning("No config file at %s, using defaults", config_path)

    resolved = _resolve_env_vars(raw_config)

    if "SKEDULA_HOME" in os.environ:
        resolved["home_dir"] = os.environ["SKEDULA_HOME"]

    config = AppConfig(**resolved)

    _ensure_directories(config)

    return config


def _ensure_directories(config: AppConfig) -> None:
    """Create the state directory structure if it doesn't exist."""
    home = config.home_path
    home.mkdir(parents=True, exist_ok=True)
    if config.logging.audit_events:
        (home / "events").mkdir(exist_ok=True)
