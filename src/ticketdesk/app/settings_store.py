from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

from ticketdesk.app.runtime_paths import app_root, fallback_settings_file, local_data_root
from ticketdesk.app.ticket_models import TICKET_TYPES, default_ticket_label, normalize_ticket_type

_APP_SETTINGS_DIRNAME = "ticketdesk"
_logger = logging.getLogger("ticketdesk.settings")


def _resolve_settings_path() -> Path:
    env = os.environ
    if os.name == "nt":
        appdata = str(env.get("APPDATA", "") or "").strip()
        if appdata:
            return Path(appdata) / _APP_SETTINGS_DIRNAME / "config" / "settings.json"
        localappdata = str(env.get("LOCALAPPDATA", "") or "").strip()
        if localappdata:
            return Path(localappdata) / _APP_SETTINGS_DIRNAME / "config" / "settings.json"
    else:
        xdg_config_home = str(env.get("XDG_CONFIG_HOME", "") or "").strip()
        if xdg_config_home:
            return Path(xdg_config_home) / _APP_SETTINGS_DIRNAME / "settings.json"
        home = str(env.get("HOME", "") or "").strip()
        if home:
            return Path(home) / ".config" / _APP_SETTINGS_DIRNAME / "settings.json"

    return fallback_settings_file()


_SETTINGS_PATH = _resolve_settings_path()
_TICKET_TYPE_KEY = "ticketType"
_TICKET_LABEL_KEY = "ticketLabel"
_DATA_STORAGE_FOLDER_KEY = "dataStorageFolder"
_DATA_STORAGE_BACKEND_KEY = "dataStorageBackend"
_EXPORT_FOLDER_KEY = "exportFolder"
_TICKET_TYPE_ENV = "TICKETDESK_TICKET_TYPE"
_DATA_FOLDER_ENV = "TICKETDESK_DATA_FOLDER"
DEFAULT_TICKET_TYPE = TICKET_TYPES[0]
DEFAULT_DATA_STORAGE_BACKEND = "local_sqlite"
SUPPORTED_DATA_STORAGE_BACKENDS: tuple[str, ...] = (
    DEFAULT_DATA_STORAGE_BACKEND,
    "local_json",
    "memory",
)


def settings_path() -> Path:
    return _SETTINGS_PATH


def load_settings() -> dict[str, Any]:
    path = settings_path()
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        _logger.warning("Ignoring unreadable settings file %s: %s", path, exc)
        return {}
    if not isinstance(data, dict):
        return {}
    return data


def save_settings(settings: dict[str, Any]) -> None:
    path = settings_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(settings, indent=2), encoding="utf-8")


def load_ticket_type(default: str = DEFAULT_TICKET_TYPE) -> str:
    env_value = str(os.environ.get(_TICKET_TYPE_ENV, "") or "").strip()
    if env_value:
        return normalize_ticket_type(env_value)
    value = load_settings().get(_TICKET_TYPE_KEY)
    if isinstance(value, str) and value.strip():
        return normalize_ticket_type(value)
    return normalize_ticket_type(default)


def save_ticket_type(value: str) -> str:
    resolved = normalize_ticket_type(value)
    settings = load_settings()
    settings[_TICKET_TYPE_KEY] = resolved
    save_settings(settings)
    return resolved


def load_ticket_label(ticket_type: str, default: str | None = None) -> str:
    value = load_settings().get(_TICKET_LABEL_KEY)
    if isinstance(value, str) and value.strip():
        return value.strip()
    if default and default.strip():
        return default.strip()
    return default_ticket_label(ticket_type)


def save_ticket_label(value: str) -> str:
    label = str(value or "").strip()
    settings = load_settings()
    if label:
        settings[_TICKET_LABEL_KEY] = label
    else:
        settings.pop(_TICKET_LABEL_KEY, None)
    save_settings(settings)
    return label


def default_data_storage_folder() -> Path:
    return local_data_root().resolve()


def normalize_folder(
    value: str | Path | None,
    *,
    default: Path | None = None,
) -> Path:
    fallback = Path(default) if default is not None else default_data_storage_folder()
    candidate: Path
    if isinstance(value, Path):
        candidate = value
    elif isinstance(value, str):
        text = value.strip()
        candidate = Path(text) if text else fallback
    else:
        candidate = fallback

    candidate = candidate.expanduser()
    if not candidate.is_absolute():
        candidate = app_root() / candidate
    try:
        return candidate.resolve()
    except OSError:
        return candidate


def load_data_storage_folder(default: Path | None = None) -> Path:
    fallback = normalize_folder(default)
    env_value = str(os.environ.get(_DATA_FOLDER_ENV, "") or "").strip()
    if env_value:
        return normalize_folder(env_value, default=fallback)
    value = load_settings().get(_DATA_STORAGE_FOLDER_KEY)
    if not isinstance(value, str) or not value.strip():
        return fallback
    return normalize_folder(value, default=fallback)


def save_data_storage_folder(value: str | Path | None) -> Path:
    resolved = normalize_folder(value)
    settings = load_settings()
    settings[_DATA_STORAGE_FOLDER_KEY] = str(resolved)
    save_settings(settings)
    return resolved


def normalize_data_storage_backend(
    value: str | None,
    *,
    default: str = DEFAULT_DATA_STORAGE_BACKEND,
) -> str:
    fallback = str(default or DEFAULT_DATA_STORAGE_BACKEND).strip().lower()
    if fallback not in SUPPORTED_DATA_STORAGE_BACKENDS:
        fallback = DEFAULT_DATA_STORAGE_BACKEND
    normalized = str(value or "").strip().lower()
    if normalized in SUPPORTED_DATA_STORAGE_BACKENDS:
        return normalized
    return fallback


def load_data_storage_backend(default: str = DEFAULT_DATA_STORAGE_BACKEND) -> str:
    value = load_settings().get(_DATA_STORAGE_BACKEND_KEY)
    return normalize_data_storage_backend(value if isinstance(value, str) else None, default=default)


def save_data_storage_backend(value: str) -> str:
    resolved = normalize_data_storage_backend(value)
    settings = load_settings()
    settings[_DATA_STORAGE_BACKEND_KEY] = resolved
    save_settings(settings)
    return resolved


def load_export_folder() -> Path | None:
    value = load_settings().get(_EXPORT_FOLDER_KEY)
    if not isinstance(value, str) or not value.strip():
        return None
    return normalize_folder(value, default=Path.home())


def save_export_folder(value: str | Path) -> Path:
    resolved = normalize_folder(value, default=Path.home())
    settings = load_settings()
    settings[_EXPORT_FOLDER_KEY] = str(resolved)
    save_settings(settings)
    return resolved
