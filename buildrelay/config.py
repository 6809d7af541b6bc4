"""Configuration management with Pydantic Settings + optional YAML."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from buildrelay.utils.platform import get_config_dir, get_data_dir


class ServerConfig(BaseModel):
    bind: str = "127.0.0.1"
    port: int = 8430
    # Prefix for the "created" URL returned when a build is queued
    root_url: str = "http://localhost:8430/"
    principal_header: str = "X-Forwarded-User"


class DispatchConfig(BaseModel):
    api_version: str = "5.0-preview"
    signature_header: str = "X-BuildRelay-Signature"
    signature_algorithm: str = "sha1"
    timeout_seconds: float = 30.0
    # Honor HTTP(S)_PROXY / NO_PROXY from the environment
    trust_env: bool = True


class TriggerConfig(BaseModel):
    parameter_prefix: str = "_team-build_"
    provider: str = "TfGit"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="BUILDRELAY_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    server: ServerConfig = Field(default_factory=ServerConfig)
    dispatch: DispatchConfig = Field(default_factory=DispatchConfig)
    triggers: TriggerConfig = Field(default_factory=TriggerConfig)
    jobs: list[str] = Field(default_factory=list)
    data_dir: str = ""
    log_level: str = "INFO"
    log_json: bool = False

    def get_data_dir(self) -> Path:
        if self.data_dir:
            return Path(self.data_dir)
        return get_data_dir()


def load_settings(config_path: str | Path | None = None) -> Settings:
    """Load settings from env vars, optionally overlaying a YAML config."""
    yaml_data: dict[str, Any] = {}

    if config_path is None:
        config_path = os.environ.get("BUILDRELAY_CONFIG")
    if config_path is None:
        default = get_config_dir() / "config.yaml"
        if default.exists():
            config_path = default

    if config_path is not None:
        path = Path(config_path)
        if path.exists():
            with open(path) as f:
                yaml_data = yaml.safe_load(f) or {}

    # Keys present in the YAML win; env vars fill in the rest
    return Settings(**yaml_data)
