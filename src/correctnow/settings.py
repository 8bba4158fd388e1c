from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Union

from . import config as CFG

log = logging.getLogger(__name__)

DEFAULT_PATH = Path(os.environ.get("CORRECTNOW_SETTINGS", Path.home() / ".correctnow" / "settings.json"))


@dataclass
class Settings:
    enabled: bool = True
    language: str = CFG.DEFAULT_LANGUAGE     # "auto" or a language name/code
    auto_check: bool = False
    api_base_url: str = CFG.DEFAULT_API_BASE_URL
    api_key: str = ""


def load_settings(path: Union[str, Path] = DEFAULT_PATH) -> Settings:
    """Stored values over defaults. Missing or unreadable files give defaults."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            stored = json.load(f)
    except FileNotFoundError:
        return Settings()
    except (OSError, ValueError) as exc:
        log.warning("ignoring unreadable settings %s: %s", path, exc)
        return Settings()

    if not isinstance(stored, dict):
        return Settings()
    values = {}
    for f in fields(Settings):
        if f.name not in stored:
            continue
        value = _coerce(stored[f.name], type(f.default))
        if value is None:
            log.warning("ignoring setting %s=%r: expected %s", f.name, stored[f.name], type(f.default).__name__)
            continue
        values[f.name] = value
    return Settings(**values)


def _coerce(value, kind):
    """Value as ``kind``, or None when it cannot be read as one."""
    if type(value) is kind:
        return value
    if kind is bool and isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    return None


def save_settings(settings: Settings, path: Union[str, Path] = DEFAULT_PATH) -> None:
    path = os.fspath(path)
    tmp = f"{path}.tmp"
    os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
    with open(tmp, "w", encoding="utf-8") as f:
        json.dump(asdict(settings), f, indent=2)
    os.replace(tmp, path)
