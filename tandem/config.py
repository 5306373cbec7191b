from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class RuntimeConfig(BaseModel):
    run_timeout_s: float = Field(default=300.0, gt=0)
    """Seconds after which a running turn is reported with RUN_TIMEOUT."""


class MemoryConfig(BaseModel):
    cache_levenshtein_threshold: int = Field(default=2, ge=0)
    cache_match_count: int = Field(default=10, ge=1)
    match_threshold: float = Field(default=0.1, ge=-1.0, le=1.0)


class TasksConfig(BaseModel):
    enabled: bool = True
    tick_interval_s: float = Field(default=1.0, gt=0)


class LoggingConfig(BaseModel):
    level: str = "INFO"
    json_output: bool = False


class TelemetryConfig(BaseModel):
    """OpenTelemetry tracing configuration."""

    enabled: bool = False
    endpoint: str | None = None
    env: str = "dev"

    @model_validator(mode="after")
    def _validate_enabled_requires_endpoint(self) -> TelemetryConfig:
        if self.enabled and not self.endpoint:
            raise ValueError("telemetry.endpoint is required when telemetry is enabled")
        return self


class RuntimeSettings(BaseSettings):
    agent_name: str = "Tandem"
    data_dir: Path = Path("./data")
    db_path: str | None = None
    conversation_length: int = Field(default=32, ge=1)
    settings: dict[str, Any] = Field(default_factory=dict)
    runtime: RuntimeConfig = Field(default_factory=RuntimeConfig)
    memory: MemoryConfig = Field(default_factory=MemoryConfig)
    tasks: TasksConfig = Field(default_factory=TasksConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    telemetry: TelemetryConfig = Field(default_factory=TelemetryConfig)

    model_config = SettingsConfigDict(
        env_prefix="TANDEM_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    def resolved_db_path(self) -> str:
        if self.db_path:
            return self.db_path
        return str(self.data_dir / "tandem.db")


def _coerce_env_value(value: str) -> object:
    parsed = yaml.safe_load(value)
    return value if parsed is None else parsed


def _set_nested(mapping: dict[str, object], path: list[str], value: object) -> None:
    current = mapping
    for key in path[:-1]:
        existing = current.get(key)
        if not isinstance(existing, dict):
            existing = {}
            current[key] = existing
        current = existing
    current[path[-1]] = value


def _apply_env_overrides(data: dict[str, object]) -> dict[str, object]:
    merged = dict(data)
    prefix = "TANDEM_"
    for key, raw_value in os.environ.items():
        if not key.startswith(prefix):
            continue
        path = key[len(prefix) :].lower().split("__")
        _set_nested(merged, path, _coerce_env_value(raw_value))
    return merged


def load_config(path: str | Path = "config/tandem.yaml") -> RuntimeSettings:
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"config file not found: {config_path}")

    loaded = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
    if not isinstance(loaded, dict):
        raise ValueError("config file must contain a top-level mapping")

    raw = loaded.get("tandem", loaded)
    if not isinstance(raw, dict):
        raise ValueError("tandem config section must be a mapping")

    merged = _apply_env_overrides(raw)
    return RuntimeSettings.model_validate(merged)


__all__ = [
    "LoggingConfig",
    "MemoryConfig",
    "RuntimeConfig",
    "RuntimeSettings",
    "TasksConfig",
    "TelemetryConfig",
    "load_config",
]
