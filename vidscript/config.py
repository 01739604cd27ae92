"""
vidscript.config - YAML config loading, merging, validation.

Handles loading vidscript.yaml, applying built-in defaults for the
recognition service, and validating all parameters.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from vidscript.exceptions import ConfigError

CONFIG_FILENAME = "vidscript.yaml"

DEFAULT_API_BASE = "https://member.bilibili.com/x/bcut/rubick-interface"
DEFAULT_USER_AGENT = "Bilibili/1.0.0 (https://www.bilibili.com)"


class ServiceConfig(BaseModel):
    """Remote speech-recognition service settings."""

    api_base: str = DEFAULT_API_BASE
    user_agent: str = DEFAULT_USER_AGENT
    model_id: str = "7"

    request_timeout: float = Field(default=30.0, gt=0.0)
    upload_timeout: float = Field(default=300.0, gt=0.0)

    poll_attempts: int = Field(default=500, gt=0)
    poll_interval: float = Field(default=3.0, ge=0.0)

    @field_validator("api_base")
    @classmethod
    def validate_api_base(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("api_base must be an http(s) URL")
        return v.rstrip("/")

    @field_validator("model_id")
    @classmethod
    def validate_model_id(cls, v: str) -> str:
        if not v.isdigit():
            raise ValueError("model_id must be numeric")
        return v

    @property
    def request_upload_url(self) -> str:
        return f"{self.api_base}/resource/create"

    @property
    def commit_upload_url(self) -> str:
        return f"{self.api_base}/resource/create/complete"

    @property
    def create_task_url(self) -> str:
        return f"{self.api_base}/task"

    @property
    def query_result_url(self) -> str:
        return f"{self.api_base}/task/result"


class VidscriptConfig(BaseModel):
    """Resolved configuration for Vidscript."""

    service: ServiceConfig = Field(default_factory=ServiceConfig)

    fallback: str = "auto"
    ffmpeg_path: str = "ffmpeg"
    keep_audio: bool = False

    config_path: Path | None = None

    @field_validator("fallback")
    @classmethod
    def validate_fallback(cls, v: str) -> str:
        valid = {"auto", "never"}
        if v not in valid:
            raise ValueError(f"fallback must be one of: {valid}")
        return v

    @property
    def fallback_enabled(self) -> bool:
        return self.fallback == "auto"


def merge_config(overrides: dict[str, Any], base: dict[str, Any]) -> dict[str, Any]:
    """Merge overrides onto base config. Overrides take precedence."""
    merged = base.copy()
    for key, value in overrides.items():
        if key == "service" and isinstance(value, dict):
            merged["service"] = {**merged.get("service", {}), **value}
        elif value is not None:
            merged[key] = value
    return merged


def load_config(path: Path | None = None) -> VidscriptConfig:
    """Load and validate configuration.

    With no explicit path, ``vidscript.yaml`` in the working directory is
    used if present, otherwise built-in defaults apply.

    Raises:
        FileNotFoundError: If an explicit config path does not exist
        ConfigError: If the file is not valid YAML or fails validation
    """
    if path is None:
        candidate = Path.cwd() / CONFIG_FILENAME
        if not candidate.exists():
            return VidscriptConfig()
        path = candidate
    elif not path.exists():
        raise FileNotFoundError(f"No config file found at {path}")

    try:
        with open(path) as f:
            raw_config = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(raw_config, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")

    merged = merge_config(raw_config, create_default_config())
    merged["config_path"] = path

    try:
        return VidscriptConfig(**merged)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {path}: {e}") from e


def create_default_config() -> dict[str, Any]:
    """Create a default config dict suitable for writing to YAML."""
    return VidscriptConfig().model_dump(exclude={"config_path"})


def write_config(config: dict[str, Any], path: Path) -> None:
    """Write configuration to a YAML file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        yaml.dump(config, f, default_flow_style=False, sort_keys=False)
