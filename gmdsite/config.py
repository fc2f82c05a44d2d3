"""Application settings."""
from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv

logger = logging.getLogger("uvicorn.error")

DEFAULT_PORT = 8080
DEFAULT_VIEW_COOLDOWN = 10.0
DEFAULT_GEO_URL = "http://ip-api.com/json/{address}"
DEFAULT_GEO_TIMEOUT = 3.0


class ConfigError(RuntimeError):
    """Raised when a setting cannot be parsed."""


@dataclass(frozen=True)
class Settings:
    host: str = "127.0.0.1"
    port: int = DEFAULT_PORT
    source_dir: Path = Path("web")
    build_dir: Path = Path(".built")
    assets_dir: Path = Path("assets")
    favicon_path: Path = Path("favicon.ico")
    analytics_user: Optional[str] = None
    analytics_pass: Optional[str] = None
    view_cooldown_seconds: float = DEFAULT_VIEW_COOLDOWN
    geo_lookup_url: str = DEFAULT_GEO_URL
    geo_timeout_seconds: float = DEFAULT_GEO_TIMEOUT
    trust_proxy_headers: bool = False

    @property
    def analytics_protected(self) -> bool:
        return bool(self.analytics_user and self.analytics_pass)


def _read_config_file(path: Path) -> Dict[str, Any]:
    """Read the legacy ``config.json``; a broken file falls back to defaults."""
    if not path.is_file():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        logger.warning("Ignoring unreadable config file %s: %s", path, exc)
        return {}
    if not isinstance(data, dict):
        logger.warning("Ignoring config file %s: expected a JSON object", path)
        return {}
    return data


def _as_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _as_int(name: str, value: Optional[str], default: int) -> int:
    if value is None:
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got {value!r}") from exc


def _as_float(name: str, value: Optional[str], default: float) -> float:
    if value is None:
        return default
    try:
        parsed = float(value)
    except ValueError as exc:
        raise ConfigError(f"{name} must be a number, got {value!r}") from exc
    if parsed < 0:
        raise ConfigError(f"{name} must not be negative")
    return parsed


def _as_bool(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in {"1", "true", "yes", "on"}


def load_settings(environ: Optional[Dict[str, str]] = None) -> Settings:
    """Build settings from the environment, then ``config.json``, then defaults."""
    env = os.environ if environ is None else environ
    file_data = _read_config_file(Path(env.get("GMD_CONFIG_FILE", "config.json")))

    def pick(env_name: str, file_key: Optional[str] = None) -> Optional[str]:
        value = _as_str(env.get(env_name))
        if value is None and file_key:
            value = _as_str(file_data.get(file_key))
        return value

    return Settings(
        host=pick("GMD_HOST") or "127.0.0.1",
        port=_as_int("GMD_PORT", pick("GMD_PORT", "port"), DEFAULT_PORT),
        source_dir=Path(pick("GMD_SOURCE_DIR") or "web"),
        build_dir=Path(pick("GMD_BUILD_DIR") or ".built"),
        assets_dir=Path(pick("GMD_ASSETS_DIR") or "assets"),
        favicon_path=Path(pick("GMD_FAVICON") or "favicon.ico"),
        analytics_user=pick("GMD_ANALYTICS_USER", "analytics_user"),
        analytics_pass=pick("GMD_ANALYTICS_PASS", "analytics_pass"),
        view_cooldown_seconds=_as_float(
            "GMD_VIEW_COOLDOWN", pick("GMD_VIEW_COOLDOWN"), DEFAULT_VIEW_COOLDOWN
        ),
        geo_lookup_url=pick("GMD_GEO_URL") or DEFAULT_GEO_URL,
        geo_timeout_seconds=_as_float(
            "GMD_GEO_TIMEOUT", pick("GMD_GEO_TIMEOUT"), DEFAULT_GEO_TIMEOUT
        ),
        trust_proxy_headers=_as_bool(pick("GMD_TRUST_PROXY_HEADERS")),
    )


@lru_cache()
def get_settings() -> Settings:
    load_dotenv(Path.cwd() / ".env")
    return load_settings()
