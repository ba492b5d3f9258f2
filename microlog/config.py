# -*- coding: utf-8 -*-
"""Account / vault configuration (JSON on disk) and runtime capabilities."""
from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from loguru import logger

from .errors import StorageIOError

APP_NAME = "microlog"

# Storage location sentinels; any other value is a vault directory.
BROWSER_STORAGE = "localStorage"
REMOTE_STORAGE = "remote"

DEFAULT_CONFIG: Dict[str, Any] = {
    "storage_location": None,
    "account_id": "local",
    "account_salt": None,
    "passphrase_hash": None,
    "account_created": None,
    "language": "en",
}


# ---------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------

def config_dir() -> Path:
    """Return the config directory path for this platform."""
    override = os.environ.get("MICROLOG_HOME")
    if override:
        return Path(override).expanduser()
    if os.name == "nt":
        base = os.environ.get("APPDATA", os.path.expanduser("~\\AppData\\Roaming"))
        return Path(base) / APP_NAME
    base = os.environ.get("XDG_CONFIG_HOME", os.path.expanduser("~/.config"))
    return Path(base) / APP_NAME

def config_path() -> Path:
    return config_dir() / "config.json"

def db_path() -> Path:
    """SQLite file backing browser storage and the local remote-record store."""
    override = os.environ.get("MICROLOG_DB")
    if override:
        return Path(override).expanduser()
    return config_dir() / "microlog.sqlite3"


# ---------------------------------------------------------------------
# Capabilities
# ---------------------------------------------------------------------

@dataclass(frozen=True)
class Capabilities:
    """What the host environment offers, decided once at startup.

    ``native_shell`` is True when the process can reach the local filesystem
    directly (desktop / terminal). Without it only browser storage is usable.
    """

    native_shell: bool = True


# ---------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------

class ConfigStore:
    """Small persisted record with ``get()`` / ``set(**partial)`` semantics."""

    def __init__(self, path: Optional[Path] = None) -> None:
        self.path = Path(path) if path is not None else config_path()

    def get(self) -> Dict[str, Any]:
        """Load the merged configuration (defaults + file)."""
        merged = dict(DEFAULT_CONFIG)
        if not self.path.exists():
            return merged
        try:
            with self.path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            raise StorageIOError(f"cannot read config {self.path}: {exc}") from exc
        if not isinstance(data, dict):
            raise StorageIOError(f"config {self.path} is not a JSON object")
        merged.update({k: v for k, v in data.items() if k in DEFAULT_CONFIG})
        return merged

    def set(self, **partial: Any) -> Dict[str, Any]:
        """Merge *partial* into the stored record and persist it."""
        unknown = set(partial) - set(DEFAULT_CONFIG)
        if unknown:
            raise ValueError(f"unknown config keys: {sorted(unknown)}")
        cfg = self.get()
        cfg.update(partial)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("w", encoding="utf-8") as f:
                json.dump(cfg, f, indent=2)
        except OSError as exc:
            raise StorageIOError(f"cannot write config {self.path}: {exc}") from exc
        logger.debug("config updated: {}", sorted(partial))
        return cfg
