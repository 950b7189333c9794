from __future__ import annotations

import sys
from pathlib import Path


def is_frozen_runtime() -> bool:
    return bool(getattr(sys, "frozen", False))


def app_root() -> Path:
    """Folder next to the executable when frozen, else the checkout root."""
    if is_frozen_runtime():
        return Path(sys.executable).resolve().parent
    return Path(__file__).resolve().parents[3]


def local_data_root() -> Path:
    return app_root() / "data"


def fallback_settings_file() -> Path:
    return app_root() / "config" / "settings.json"
