# core/settings.py
'''
Copyright 2025 Aaron Vose (avose@aaronvose.net)
Licensed under the LGPL v2.1; see the file 'LICENSE' for details.
'''

from __future__ import annotations

import os
import threading
import time
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union

from vaultnote.core.errors import InvalidInput, IOFailure
from vaultnote.core.log import Log
from vaultnote.utils.fs_atomic import atomic_write_json, read_json
from vaultnote.utils.retry import with_retries

__all__ = ["SettingsStore", "THEMES", "DEFAULT_SETTINGS"]

THEMES = ("light", "dark", "system")
DEFAULT_SETTINGS: Dict[str, Any] = {"theme": "system"}


class SettingsStore:
    """UI preferences persisted as a small JSON file beside the notes."""

    def __init__(
        self,
        path: Union[str, Path],
        *,
        attempts: int = 3,
        backoff: float = 0.05,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.path = Path(path)
        self._attempts = attempts
        self._backoff = backoff
        self._sleep = sleep
        self._lock = threading.Lock()
        self._settings: Optional[Dict[str, Any]] = None

    def load(self) -> Dict[str, Any]:
        with self._lock:
            return dict(self._current())

    def set_theme(self, theme: str) -> Dict[str, Any]:
        if theme not in THEMES:
            raise InvalidInput(f"Theme must be one of: {', '.join(THEMES)}")
        with self._lock:
            settings = dict(self._current())
            settings["theme"] = theme
            with_retries(
                lambda: atomic_write_json(self.path, settings),
                what="settings write",
                attempts=self._attempts,
                backoff=self._backoff,
                sleep=self._sleep,
            )
            self._settings = settings
            Log.debug(f"Theme set to {theme}", 1)
            return dict(settings)

    def _current(self) -> Dict[str, Any]:
        if self._settings is None:
            self._settings = self._read()
        return self._settings

    def _read(self) -> Dict[str, Any]:
        try:
            data = read_json(self.path, {})
        except ValueError as e:
            # Keep the damaged file for inspection and start from defaults.
            bad = self.path.with_name(self.path.name + ".bad")
            Log.debug(f"Settings file is malformed, moved to {bad.name}: {e}", 0)
            try:
                os.replace(self.path, bad)
            except OSError as move_error:
                raise IOFailure(f"Could not move aside {self.path}", cause=move_error) from move_error
            data = {}
        except OSError as e:
            raise IOFailure(f"Could not read settings {self.path}", cause=e) from e

        settings = dict(DEFAULT_SETTINGS)
        if isinstance(data, dict) and data.get("theme") in THEMES:
            settings["theme"] = data["theme"]
        return settings
