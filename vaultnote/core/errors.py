# core/errors.py
'''
Copyright 2025 Aaron Vose (avose@aaronvose.net)
Licensed under the LGPL v2.1; see the file 'LICENSE' for details.
'''

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional

__all__ = [
    "ErrorKind",
    "VaultError",
    "InvalidInput",
    "NotFound",
    "LogCorrupt",
    "IOFailure",
    "InternalError",
    "InvalidEncoding",
]


class ErrorKind(str, Enum):
    """Tags carried by every error that can reach the UI shell."""
    INVALID_INPUT = "InvalidInput"
    NOT_FOUND = "NotFound"
    LOG_CORRUPT = "LogCorrupt"
    IO_FAILURE = "IOFailure"
    INTERNAL = "Internal"
    INVALID_ENCODING = "InvalidEncoding"


class VaultError(Exception):
    """
    Base class for all engine errors.

    Args:
        message: Human-readable description
        details: Extra context for the log (never shown to the user as-is)
        cause: Original exception, if any
    """

    kind = ErrorKind.INTERNAL

    def __init__(
        self,
        message: str,
        *,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ):
        self.message = message
        self.details = details or {}
        self.cause = cause

        full_message = message
        if cause is not None:
            full_message += f" | Caused by: {cause}"
        super().__init__(full_message)


class InvalidInput(VaultError):
    """Request had the wrong shape; never retried."""
    kind = ErrorKind.INVALID_INPUT


class NotFound(VaultError):
    """Note is unknown or soft-deleted."""
    kind = ErrorKind.NOT_FOUND


class LogCorrupt(VaultError):
    """
    The change log holds a record that cannot be trusted.

    `offset` is the byte offset of the bad frame and `good_records` the number
    of records that replayed cleanly before it.
    """
    kind = ErrorKind.LOG_CORRUPT

    def __init__(self, message: str, *, offset: int = 0, good_records: int = 0, **kwargs):
        details = dict(kwargs.pop("details", None) or {})
        details.update({"offset": offset, "good_records": good_records})
        super().__init__(message, details=details, **kwargs)
        self.offset = offset
        self.good_records = good_records


class IOFailure(VaultError):
    """Disk operation kept failing after the bounded retry."""
    kind = ErrorKind.IO_FAILURE


class InternalError(VaultError):
    """Unexpected fault inside the engine."""
    kind = ErrorKind.INTERNAL


class InvalidEncoding(VaultError):
    """Text could not be decoded / encoded as UTF-8."""
    kind = ErrorKind.INVALID_ENCODING
