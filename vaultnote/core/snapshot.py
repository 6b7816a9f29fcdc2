# core/snapshot.py
'''
Copyright 2025 Aaron Vose (avose@aaronvose.net)
Licensed under the LGPL v2.1; see the file 'LICENSE' for details.
'''

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, Optional

from vaultnote.core.errors import IOFailure
from vaultnote.core.log import Log
from vaultnote.core.models import Note
from vaultnote.utils.fs_atomic import atomic_write_json, read_json

__all__ = ["Snapshot", "SNAPSHOT_FORMAT", "load_snapshot", "write_snapshot", "remove_snapshot"]

SNAPSHOT_FORMAT = 1


@dataclass
class Snapshot:
    """Materialized note table as of change log position `seq`."""
    seq: int
    notes: Dict[str, Note]


def load_snapshot(path: Path) -> Optional[Snapshot]:
    """
    Return the snapshot at `path`, or None when there is none or it cannot be
    trusted. The snapshot only speeds up startup; the change log can always
    rebuild everything it holds.
    """
    try:
        data = read_json(path, None)
    except ValueError as e:
        Log.debug(f"Ignoring unreadable snapshot {path}: {e}", 0)
        return None
    except OSError as e:
        raise IOFailure(f"Could not read snapshot {path}", cause=e) from e

    if data is None:
        return None

    try:
        if data["format"] != SNAPSHOT_FORMAT:
            Log.debug(f"Ignoring snapshot with format {data['format']!r}", 0)
            return None
        seq = int(data["seq"])
        notes = [Note.from_dict(n) for n in data["notes"]]
    except (KeyError, TypeError, ValueError) as e:
        Log.debug(f"Ignoring malformed snapshot {path}: {e}", 0)
        return None

    return Snapshot(seq=seq, notes={n.id: n for n in notes})


def write_snapshot(path: Path, seq: int, notes: Iterable[Note]) -> None:
    """Atomically write the note table (tombstones included). Raises OSError."""
    atomic_write_json(path, {
        "format": SNAPSHOT_FORMAT,
        "seq": seq,
        "notes": [n.to_dict() for n in sorted(notes, key=lambda n: n.id)],
    })


def remove_snapshot(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError as e:
        raise IOFailure(f"Could not remove snapshot {path}", cause=e) from e
