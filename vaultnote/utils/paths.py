from __future__ import annotations

import os
import re
import uuid
from pathlib import Path
from typing import Dict, Mapping, Optional, Union

Pathish = Union[str, Path]

__all__ = [
    "APP_NAMESPACE",
    "default_data_dir",
    "data_paths",
    "ensure_data_dir",
    "new_id",
    "is_valid_id",
]

APP_NAMESPACE = "vaultnote"

LOG_FILE = "changes.log"
SNAPSHOT_FILE = "snapshot.json"
SETTINGS_FILE = "settings.json"
DEBUG_LOG_FILE = "vaultnote.log"

_ID_RE = re.compile(r"^[0-9a-f]{32}$")


def default_data_dir(environ: Optional[Mapping[str, str]] = None) -> Path:
    """
    Return the application-private data directory:
      $XDG_DATA_HOME/vaultnote, or ~/.local/share/vaultnote when unset.
    Does not create it.
    """
    env = os.environ if environ is None else environ
    base = env.get("XDG_DATA_HOME")
    if not base:
        base = os.path.join(Path.home(), ".local", "share")
    return Path(base) / APP_NAMESPACE


def data_paths(data_dir: Pathish) -> Dict[str, Path]:
    """
    Layout of a data directory:
    <data_dir>/
      changes.log      append-only change log (source of truth)
      snapshot.json    optional materialized view for fast startup
      settings.json    UI preferences
      vaultnote.log    debug log dump
    """
    root = Path(data_dir).expanduser().resolve()
    return {
        "root": root,
        "log": root / LOG_FILE,
        "snapshot": root / SNAPSHOT_FILE,
        "settings": root / SETTINGS_FILE,
        "debug_log": root / DEBUG_LOG_FILE,
    }


def ensure_data_dir(data_dir: Pathish) -> Path:
    """
    Create the data directory if needed and return its resolved path.
    Raises ValueError if the path exists but is not a directory.
    """
    root = data_paths(data_dir)["root"]
    if root.exists() and not root.is_dir():
        raise ValueError(f"Data path exists and is not a directory: {root}")
    root.mkdir(parents=True, exist_ok=True)
    return root


def new_id() -> str:
    """Return a lowercase hex UUID string (no dashes)."""
    return uuid.uuid4().hex


def is_valid_id(value: Optional[str]) -> bool:
    """True for the 32-char lowercase hex ids produced by new_id()."""
    return isinstance(value, str) and _ID_RE.match(value) is not None
