from __future__ import annotations

import os
from functools import cache
from pathlib import Path
from typing import Any, ClassVar

import yaml
from pydantic import BaseModel, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from membership.errors import ConfigurationError


DEFAULT_CONFIG_PATHS = (Path("data/membership.yaml"), Path("/etc/membership/membership.yaml"))

_TRUTHY = frozenset({"1", "true", "yes", "on"})


def read_yaml_mapping(path: Path) -> dict[str, Any]:
    """Parse a YAML file whose root must be a mapping; an empty file gives {}."""
    try:
        loaded = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"cannot read YAML at {path}: {exc}") from exc
    if not isinstance(loaded, dict):
        raise ConfigurationError(f"YAML at {path} must define a mapping at the root")
    return loaded


class LoggingSettings(BaseModel):

    level: str = Field(default="INFO")
    json_output: bool = Field(default=False)


class AdminSettings(BaseModel):
    """Knobs for the admin client boundary; the core itself never retries."""

    # a status call running longer counts as an unreachable cluster
    status_timeout_sec: float = Field(default=10.0, gt=0)


class ReconcileSettings(BaseModel):

    max_parallel_clusters: int = Field(default=4, ge=1)  # clusters evaluated at the same time


class AppConfig(BaseSettings):
    """
    Operator-level settings (not the per-cluster policy).

    Source of truth:
      1) YAML file (structured config)
      2) Flat MEMBERSHIP_* env overrides, merged explicitly in from_yaml().
    """

    model_config: ClassVar[SettingsConfigDict] = SettingsConfigDict(
        env_prefix="",  # no automatic prefixing
        env_nested_delimiter="__",
        extra="ignore",
        case_sensitive=False,
    )

    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    admin: AdminSettings = Field(default_factory=AdminSettings)
    reconcile: ReconcileSettings = Field(default_factory=ReconcileSettings)

    @classmethod
    def from_yaml(cls, path: Path | None = None) -> AppConfig:
        """
        Load the first existing file of `path` or DEFAULT_CONFIG_PATHS, then overlay env.

        Raises:
            ConfigurationError: unreadable YAML, invalid values or a bad env override.
        """
        candidates = [path] if path is not None else list(DEFAULT_CONFIG_PATHS)
        raw = next((read_yaml_mapping(p) for p in candidates if p.exists()), {})
        try:
            cfg = cls.model_validate(raw)
        except ValidationError as exc:
            raise ConfigurationError(f"invalid settings: {exc}") from exc
        _apply_env_overrides(cfg)
        return cfg


def _env(*names: str) -> str | None:
    """First non-empty value among `names`."""
    for name in names:
        value = os.getenv(name)
        if value:
            return value
    return None


def _apply_env_overrides(cfg: AppConfig) -> None:
    level = _env("MEMBERSHIP_LOG_LEVEL", "LOG_LEVEL")
    if level is not None:
        cfg.logging.level = level.strip().upper()

    json_output = _env("MEMBERSHIP_LOG_JSON")
    if json_output is not None:
        cfg.logging.json_output = json_output.strip().lower() in _TRUTHY

    timeout = _env("MEMBERSHIP_ADMIN_TIMEOUT_SEC")
    if timeout is not None:
        try:
            seconds = float(timeout)
        except ValueError as exc:
            raise ConfigurationError(
                f"MEMBERSHIP_ADMIN_TIMEOUT_SEC must be a number, got {timeout!r}"
            ) from exc
        if seconds <= 0:
            raise ConfigurationError("MEMBERSHIP_ADMIN_TIMEOUT_SEC must be positive")
        cfg.admin.status_timeout_sec = seconds


@cache
def get_settings() -> AppConfig:
    return AppConfig.from_yaml()


__all__ = [
    "DEFAULT_CONFIG_PATHS",
    "AdminSettings",
    "AppConfig",
    "LoggingSettings",
    "ReconcileSettings",
    "get_settings",
    "read_yaml_mapping",
]
