"""Configuration management for the users service."""
from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Dict, Mapping, Optional

import yaml

from .database import resolve_database_path

_LOG_LEVELS = {"critical", "error", "warning", "info", "debug", "trace"}


def _parse_port(value: object) -> int:
    try:
        port = int(str(value).strip())
    except ValueError as exc:
        raise ValueError(f"Invalid port number: {value!r}") from exc
    if not 1 <= port <= 65535:
        raise ValueError(f"Port must be between 1 and 65535, got {port}")
    return port


def _parse_log_level(value: object) -> str:
    level = str(value).strip().lower()
    if level not in _LOG_LEVELS:
        raise ValueError(f"Unknown log level: {value!r}")
    return level


def _resolve_path(raw: str, base_path: Path | None) -> Path:
    candidate = Path(raw).expanduser()
    if not candidate.is_absolute() and base_path is not None:
        candidate = base_path / candidate
    return candidate.resolve(strict=False)


@dataclass(frozen=True)
class ServiceConfig:
    """Settings needed to open the store and bind the HTTP listener."""

    host: str = "0.0.0.0"
    port: int = 8000
    database_path: Path = Path("data.db")
    log_level: str = "info"

    @staticmethod
    def from_dict(data: Mapping[str, object], base_path: Path | None = None) -> "ServiceConfig":
        """Create a :class:`ServiceConfig` from raw dictionary data."""

        defaults = ServiceConfig()
        raw_db_path = data.get("database_path")
        if raw_db_path:
            database_path = _resolve_path(str(raw_db_path), base_path)
        else:
            database_path = resolve_database_path(None)

        return ServiceConfig(
            host=str(data.get("host", defaults.host)),
            port=_parse_port(data.get("port", defaults.port)),
            database_path=database_path,
            log_level=_parse_log_level(data.get("log_level", defaults.log_level)),
        )

    def with_environment(self, environ: Mapping[str, str] | None = None) -> "ServiceConfig":
        """Return a copy with ``USERS_*`` environment overrides applied."""

        env = os.environ if environ is None else environ
        overrides: Dict[str, object] = {}
        if env.get("USERS_SERVICE_HOST"):
            overrides["host"] = env["USERS_SERVICE_HOST"].strip()
        if env.get("USERS_SERVICE_PORT"):
            overrides["port"] = _parse_port(env["USERS_SERVICE_PORT"])
        if env.get("USERS_DB_PATH"):
            overrides["database_path"] = resolve_database_path(env["USERS_DB_PATH"])
        if env.get("USERS_SERVICE_LOG_LEVEL"):
            overrides["log_level"] = _parse_log_level(env["USERS_SERVICE_LOG_LEVEL"])
        return replace(self, **overrides)


def load_service_config(config_path: Path) -> ServiceConfig:
    """Load service settings from a YAML file.

    A missing file yields the defaults. Values live under a top-level
    ``service`` key.
    """

    if not config_path.exists():
        return ServiceConfig.from_dict({})

    with config_path.open("r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle) or {}

    if not isinstance(raw, dict):
        raise ValueError("Configuration file must contain a mapping")
    section = raw.get("service") or {}
    if not isinstance(section, dict):
        raise ValueError("The 'service' key must contain a mapping")

    return ServiceConfig.from_dict(section, base_path=config_path.parent)


def resolve_config_path(env_value: Optional[str]) -> Path:
    """Resolve the path to the configuration file."""
    if env_value:
        candidate = Path(env_value).expanduser().resolve(strict=False)
    else:
        candidate = (Path(__file__).resolve().parent.parent / "config" / "service.yaml").resolve(strict=False)
    return candidate


__all__ = ["ServiceConfig", "load_service_config", "resolve_config_path"]
