from __future__ import annotations

import json
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from diffreview.errors import ConfigError
from diffreview.util import load_json, write_json

APP_NAME = "diffreview"
CONFIG_PATH_ENV = "DIFFREVIEW_CONFIG"

# Persisted store key -> environment variable used as the fallback.
_FIELDS = {
    "api_key": "DIFFREVIEW_API_KEY",
    "api_endpoint": "DIFFREVIEW_API_ENDPOINT",
    "ticket_system": "DIFFREVIEW_TICKET_SYSTEM",
}


@dataclass(slots=True, frozen=True)
class ReviewConfig:
    api_key: str | None = None
    api_endpoint: str | None = None
    ticket_system: str | None = None

    def require_api(self) -> tuple[str, str]:
        if not self.api_key:
            raise ConfigError(
                "API Key not found!",
                hint=f"Please run `{APP_NAME} config --key YOUR_KEY` first.",
            )
        if not self.api_endpoint:
            raise ConfigError(
                "API Endpoint not found!",
                hint=f"Please run `{APP_NAME} config --endpoint YOUR_ENDPOINT` first.",
            )
        return self.api_key, self.api_endpoint


def _clean(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value or None


def resolve_config(
    stored: Mapping[str, Any] | None = None,
    environ: Mapping[str, str] | None = None,
) -> ReviewConfig:
    """Merge the persisted store and the environment; stored values win."""
    stored = stored or {}
    environ = environ or {}
    values = {
        key: _clean(stored.get(key)) or _clean(environ.get(env_name))
        for key, env_name in _FIELDS.items()
    }
    return ReviewConfig(**values)


def default_config_path(environ: Mapping[str, str] | None = None) -> Path:
    environ = os.environ if environ is None else environ
    override = environ.get(CONFIG_PATH_ENV)
    if override:
        return Path(override).expanduser()
    base = environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    return Path(base).expanduser() / APP_NAME / "config.json"


class ConfigStore:
    def __init__(self, path: Path | None = None) -> None:
        self.path = path if path is not None else default_config_path()

    def load(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = load_json(self.path)
        except (OSError, json.JSONDecodeError) as exc:
            raise ConfigError(f"Could not read config file {self.path}: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigError(f"Config file {self.path} must contain a JSON object.")
        return data

    def set(self, key: str, value: str) -> None:
        if key not in _FIELDS:
            raise ConfigError(f"Unknown config key: {key}")
        value = value.strip()
        if not value:
            raise ConfigError(f"{key} cannot be empty")
        data = self.load()
        data[key] = value
        write_json(self.path, data)
        if os.name == "posix":
            self.path.chmod(0o600)


def load_config(
    store: ConfigStore | None = None, environ: Mapping[str, str] | None = None
) -> ReviewConfig:
    store = store or ConfigStore()
    return resolve_config(store.load(), os.environ if environ is None else environ)
