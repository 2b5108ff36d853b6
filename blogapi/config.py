"""Configuration management for the blog API service."""
from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Dict, Mapping, Optional, Tuple

import yaml

from .database import resolve_database_path

_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the HTTP service."""

    database_path: Path
    host: str = "127.0.0.1"
    port: int = 3000
    log_level: str = "INFO"
    cors_origins: Tuple[str, ...] = ("*",)

    @staticmethod
    def from_dict(data: Mapping[str, object], base_path: Path | None = None) -> "Settings":
        """Create :class:`Settings` from raw dictionary data."""

        unknown = set(data) - {"database_path", "host", "port", "log_level", "cors_origins"}
        if unknown:
            raise ValueError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")

        raw_path = data.get("database_path")
        if raw_path:
            candidate = Path(str(raw_path)).expanduser()
            if not candidate.is_absolute() and base_path is not None:
                candidate = base_path / candidate
            database_path = candidate.resolve(strict=False)
        else:
            database_path = resolve_database_path(None)

        settings = Settings(database_path=database_path)
        overrides: Dict[str, object] = {}
        if data.get("host") is not None:
            overrides["host"] = str(data["host"])
        if data.get("port") is not None:
            overrides["port"] = _parse_port(data["port"])
        if data.get("log_level") is not None:
            overrides["log_level"] = _parse_log_level(str(data["log_level"]))
        if data.get("cors_origins") is not None:
            overrides["cors_origins"] = _parse_origins(data["cors_origins"])
        return replace(settings, **overrides)


def _parse_port(value: object) -> int:
    try:
        port = int(str(value))
    except ValueError as exc:
        raise ValueError(f"Invalid port: {value!r}") from exc
    if not 1 <= port <= 65535:
        raise ValueError(f"Port out of range: {port}")
    return port


def _parse_log_level(value: str) -> str:
    level = value.strip().upper()
    if level not in _LOG_LEVELS:
        raise ValueError(f"Invalid log level: {value!r}")
    return level


def _parse_origins(value: object) -> Tuple[str, ...]:
    if isinstance(value, str):
        items = value.split(",")
    elif isinstance(value, (list, tuple)):
        items = [str(item) for item in value]
    else:
        raise ValueError("cors_origins must be a string or a list of strings")
    return tuple(item.strip() for item in items if item.strip())


def load_config_file(config_path: Path) -> Settings:
    """Load settings from a YAML file."""

    with config_path.open("r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle) or {}
    if not isinstance(raw, dict):
        raise ValueError("Configuration file must contain a mapping at the top level")
    return Settings.from_dict(raw, base_path=config_path.parent)


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Resolve settings from ``BLOGAPI_CONFIG`` and ``BLOGAPI_*`` variables.

    Environment variables take precedence over values read from the file.
    """

    env = os.environ if environ is None else environ

    config_file = env.get("BLOGAPI_CONFIG")
    if config_file:
        settings = load_config_file(Path(config_file).expanduser())
    else:
        settings = Settings(database_path=resolve_database_path(None))

    overrides: Dict[str, object] = {}
    if env.get("BLOGAPI_DB_PATH"):
        overrides["database_path"] = resolve_database_path(env["BLOGAPI_DB_PATH"])
    if env.get("BLOGAPI_HOST"):
        overrides["host"] = env["BLOGAPI_HOST"].strip()
    if env.get("BLOGAPI_PORT"):
        overrides["port"] = _parse_port(env["BLOGAPI_PORT"])
    if env.get("BLOGAPI_LOG_LEVEL"):
        overrides["log_level"] = _parse_log_level(env["BLOGAPI_LOG_LEVEL"])
    if env.get("BLOGAPI_CORS_ORIGINS") is not None:
        overrides["cors_origins"] = _parse_origins(env["BLOGAPI_CORS_ORIGINS"])
    return replace(settings, **overrides)


__all__ = ["Settings", "load_config_file", "load_settings"]
