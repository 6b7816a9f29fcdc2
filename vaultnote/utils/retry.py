from __future__ import annotations

import time
from typing import Callable, Optional, TypeVar

from vaultnote.core.errors import IOFailure
from vaultnote.core.log import Log

T = TypeVar("T")

__all__ = ["with_retries"]


def with_retries(
    fn: Callable[[], T],
    *,
    what: str,
    attempts: int = 3,
    backoff: float = 0.05,
    on_failure: Optional[Callable[[OSError], None]] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Run fn(), retrying on OSError up to `attempts` times with exponential
    backoff (backoff, 2*backoff, ...). `on_failure` runs after each failed
    attempt so the caller can undo a partial write before the next try.

    Raises IOFailure once all attempts are used.
    """
    attempts = max(1, attempts)
    last_error: Optional[OSError] = None

    for attempt in range(1, attempts + 1):
        try:
            return fn()
        except OSError as e:
            last_error = e
            Log.debug(f"{what} failed (attempt {attempt}/{attempts}): {e}", 0)
            if on_failure is not None:
                on_failure(e)
            if attempt < attempts:
                sleep(backoff * (2 ** (attempt - 1)))

    raise IOFailure(
        f"{what} failed after {attempts} attempts",
        details={"attempts": attempts},
        cause=last_error,
    )
