# core/config.py
'''
Copyright 2025 Aaron Vose (avose@aaronvose.net)
Licensed under the LGPL v2.1; see the file 'LICENSE' for details.
'''

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional, Union

from vaultnote.utils.paths import default_data_dir

__all__ = ["EngineConfig"]

ENV_DATA_DIR = "VAULTNOTE_DATA_DIR"
ENV_IO_ATTEMPTS = "VAULTNOTE_IO_ATTEMPTS"
ENV_IO_BACKOFF = "VAULTNOTE_IO_BACKOFF"
ENV_VERBOSITY = "VAULTNOTE_VERBOSITY"


def _env_number(environ: Mapping[str, str], name: str, default, cast, minimum):
    raw = environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = cast(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}, got {raw!r}")
    return value


@dataclass
class EngineConfig:
    """
    Runtime settings for one engine instance.

    Precedence: explicit arguments, then VAULTNOTE_* environment variables,
    then defaults.
    """
    data_dir: Path
    io_attempts: int = 3
    io_backoff: float = 0.05
    verbosity: int = 0

    @classmethod
    def from_env(
        cls,
        data_dir: Optional[Union[str, Path]] = None,
        *,
        verbosity: Optional[int] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> EngineConfig:
        env = os.environ if environ is None else environ

        if data_dir is None:
            data_dir = env.get(ENV_DATA_DIR) or default_data_dir(env)
        if verbosity is None:
            verbosity = _env_number(env, ENV_VERBOSITY, 0, int, 0)

        return cls(
            data_dir=Path(data_dir).expanduser(),
            io_attempts=_env_number(env, ENV_IO_ATTEMPTS, 3, int, 1),
            io_backoff=_env_number(env, ENV_IO_BACKOFF, 0.05, float, 0.0),
            verbosity=verbosity,
        )
