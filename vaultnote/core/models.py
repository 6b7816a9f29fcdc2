# core/models.py
'''
Copyright 2025 Aaron Vose (avose@aaronvose.net)
Licensed under the LGPL v2.1; see the file 'LICENSE' for details.
'''

from __future__ import annotations

import re
from dataclasses import asdict, dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Optional

__all__ = ["Note", "NoteSummary", "OpKind", "ChangeRecord", "PREVIEW_CHARS"]

PREVIEW_CHARS = 200

_WS_RE = re.compile(r"\s+")


@dataclass
class Note:
    """A single note. `deleted` is a tombstone; notes are never physically removed."""
    id: str
    title: str
    body: str
    created_at: float
    updated_at: float
    deleted: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Note:
        return cls(
            id=str(data["id"]),
            title=str(data["title"]),
            body=str(data["body"]),
            created_at=float(data["created_at"]),
            updated_at=float(data["updated_at"]),
            deleted=bool(data.get("deleted", False)),
        )

    def copy(self, **changes) -> Note:
        return replace(self, **changes)

    def summary(self) -> NoteSummary:
        return NoteSummary(
            id=self.id,
            title=self.title,
            created_at=self.created_at,
            updated_at=self.updated_at,
            preview=_preview(self.body),
        )


def _preview(body: str) -> str:
    """Collapse whitespace and cut the body down to PREVIEW_CHARS."""
    text = _WS_RE.sub(" ", body).strip()
    if len(text) <= PREVIEW_CHARS:
        return text
    return text[:PREVIEW_CHARS] + "..."


@dataclass(frozen=True)
class NoteSummary:
    id: str
    title: str
    created_at: float
    updated_at: float
    preview: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class OpKind(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True)
class ChangeRecord:
    """
    One mutation in the change log.

    `before` / `after` are full note snapshots as dicts (`before` is None for
    a create). `seq` is the log position; it is None until the record has been
    appended.
    """
    note_id: str
    op: OpKind
    before: Optional[Dict[str, Any]]
    after: Dict[str, Any]
    timestamp: float
    seq: Optional[int] = field(default=None, compare=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "seq": self.seq,
            "note_id": self.note_id,
            "op": self.op.value,
            "before": self.before,
            "after": self.after,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> ChangeRecord:
        """Raises KeyError / ValueError / TypeError on a malformed payload."""
        after = data["after"]
        before = data.get("before")
        if not isinstance(after, dict) or (before is not None and not isinstance(before, dict)):
            raise TypeError("before/after must be objects")
        return cls(
            note_id=str(data["note_id"]),
            op=OpKind(data["op"]),
            before=before,
            after=after,
            timestamp=float(data["timestamp"]),
            seq=int(data["seq"]),
        )

    def with_seq(self, seq: int) -> ChangeRecord:
        return replace(self, seq=seq)

    def note(self) -> Note:
        """The note state this record leaves behind."""
        return Note.from_dict(self.after)
