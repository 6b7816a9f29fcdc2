# core/store.py
'''
Copyright 2025 Aaron Vose (avose@aaronvose.net)
Licensed under the LGPL v2.1; see the file 'LICENSE' for details.
'''

from __future__ import annotations

import time
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple, Union

from vaultnote.core.changelog import ChangeLog
from vaultnote.core.errors import InternalError, IOFailure, NotFound
from vaultnote.core.log import Log
from vaultnote.core.models import ChangeRecord, Note, NoteSummary, OpKind
from vaultnote.core.rwlock import ReadWriteLock
from vaultnote.core.snapshot import load_snapshot, remove_snapshot, write_snapshot
from vaultnote.utils.paths import data_paths, ensure_data_dir, new_id
from vaultnote.utils.retry import with_retries

__all__ = ["NoteStore"]

# Smallest step used to keep record timestamps strictly increasing.
_TICK = 1e-6


class NoteStore:
    """
    Owner of all notes for one data directory.

    The in-memory table is a materialized view of the change log:

    • init()      – load snapshot (if any) and replay the log into the table
    • mutations   – append one ChangeRecord (fsynced) *then* update the table
    • reads       – served from the table only, never from the log
    • shutdown()  – write a fresh snapshot and close the log

    Access is guarded by a single-writer / multi-reader lock: mutations are
    serialized, reads run in parallel with each other but never alongside a
    write.
    """

    def __init__(
        self,
        data_dir: Union[str, Path],
        *,
        attempts: int = 3,
        backoff: float = 0.05,
        clock: Callable[[], float] = time.time,
        id_factory: Callable[[], str] = new_id,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.paths = data_paths(data_dir)
        self._attempts = attempts
        self._backoff = backoff
        self._sleep = sleep
        self._clock = clock
        self._id_factory = id_factory
        self._log = ChangeLog(self.paths["log"], attempts=attempts, backoff=backoff, sleep=sleep)
        self._lock = ReadWriteLock()
        self._notes: Dict[str, Note] = {}
        self._last_ts = 0.0
        self._open = False

    # ------------------------------------------------------------------ #
    # lifecycle
    # ------------------------------------------------------------------ #

    @property
    def is_open(self) -> bool:
        return self._open

    def init(self) -> None:
        """
        Rebuild the table from snapshot + change log and open for writes.
        Raises LogCorrupt if the log is damaged; the store stays closed until
        repair() is called.
        """
        with self._lock.write_locked():
            self._init_locked()

    def _init_locked(self) -> None:
        if self._open:
            return

        try:
            ensure_data_dir(self.paths["root"])
        except (OSError, ValueError) as e:
            raise IOFailure(f"Data directory is not usable: {self.paths['root']}", cause=e) from e

        self._log.open()
        try:
            notes = self._rebuild()
        except BaseException:
            self._log.close()
            raise

        self._notes = notes
        self._last_ts = max((n.updated_at for n in notes.values()), default=0.0)
        self._open = True
        live = sum(1 for n in notes.values() if not n.deleted)
        Log.debug(f"Note store opened at {self.paths['root']} ({live} notes)", 0)

    def _rebuild(self) -> Dict[str, Note]:
        snapshot = load_snapshot(self.paths["snapshot"])
        floor = 0
        notes: Dict[str, Note] = {}
        if snapshot is not None:
            floor = snapshot.seq
            notes = dict(snapshot.notes)

        last_seq = 0
        replayed = 0
        for record in self._log.replay():
            last_seq = record.seq
            if record.seq > floor:
                notes[record.note_id] = record.note()
                replayed += 1

        if last_seq < floor:
            # Snapshot describes records the log no longer has; trust the log.
            # Drop the file too, or later appends would make it look current.
            Log.debug(
                f"Snapshot position {floor} is ahead of the change log ({last_seq}); "
                "discarding it and rebuilding from the log alone",
                0,
            )
            remove_snapshot(self.paths["snapshot"])
            notes = {}
            for record in self._log.replay():
                notes[record.note_id] = record.note()
        else:
            Log.debug(f"Replayed {replayed} change records after position {floor}", 1)

        return notes

    def shutdown(self) -> None:
        """Write a snapshot of the current table and close the log. Idempotent."""
        with self._lock.write_locked():
            if not self._open:
                return
            try:
                self._write_snapshot()
            finally:
                self._open = False
                self._log.close()
            Log.debug("Note store closed", 0)

    # ------------------------------------------------------------------ #
    # mutations
    # ------------------------------------------------------------------ #

    def create_or_update(self, note_id: Optional[str], title: str, body: str) -> Note:
        """
        Create a note (note_id is None) or update a live one.
        Raises NotFound for an unknown or deleted id.
        """
        with self._lock.write_locked():
            self._require_open()
            now = self._next_ts()

            if note_id is None:
                note = Note(
                    id=self._allocate_id(),
                    title=title,
                    body=body,
                    created_at=now,
                    updated_at=now,
                )
                record = ChangeRecord(note.id, OpKind.CREATE, None, note.to_dict(), now)
            else:
                current = self._live(note_id)
                note = current.copy(title=title, body=body, updated_at=now)
                record = ChangeRecord(note_id, OpKind.UPDATE, current.to_dict(), note.to_dict(), now)

            self._commit(record, note)
            return note.copy()

    def delete(self, note_id: str) -> None:
        """
        Tombstone a note. Deleting an already-deleted note changes nothing.
        Raises NotFound for an id that never existed.
        """
        with self._lock.write_locked():
            self._require_open()
            current = self._notes.get(note_id)
            if current is None:
                raise NotFound(f"Note {note_id} not found")
            if current.deleted:
                Log.debug(f"Note {note_id} already deleted", 1)
                return

            now = self._next_ts()
            note = current.copy(deleted=True, updated_at=now)
            record = ChangeRecord(note_id, OpKind.DELETE, current.to_dict(), note.to_dict(), now)
            self._commit(record, note)

    def _commit(self, record: ChangeRecord, note: Note) -> None:
        # Write-ahead: the table only changes once the record is durable.
        seq = self._log.append(record)
        self._notes[note.id] = note
        self._last_ts = record.timestamp
        Log.debug(f"{record.op.value} note {note.id} at log position {seq}", 1)

    # ------------------------------------------------------------------ #
    # reads
    # ------------------------------------------------------------------ #

    def get(self, note_id: str) -> Note:
        with self._lock.read_locked():
            self._require_open()
            return self._live(note_id).copy()

    def list(self) -> List[NoteSummary]:
        """Summaries of live notes, most recently updated first."""
        with self._lock.read_locked():
            self._require_open()
            live = [n for n in self._notes.values() if not n.deleted]
        live.sort(key=lambda n: (-n.updated_at, n.id))
        return [n.summary() for n in live]

    # ------------------------------------------------------------------ #
    # maintenance
    # ------------------------------------------------------------------ #

    def compact(self, drop_tombstones: bool = False) -> int:
        """
        Rewrite the change log keeping only the newest record for each note.
        With drop_tombstones, deleted notes are purged entirely.
        Returns the number of records removed.
        """
        with self._lock.write_locked():
            self._require_open()

            latest: Dict[str, ChangeRecord] = {}
            total = 0
            for record in self._log.replay():
                latest[record.note_id] = record
                total += 1

            kept = sorted(latest.values(), key=lambda r: r.seq)
            purged: Tuple[str, ...] = ()
            if drop_tombstones:
                purged = tuple(r.note_id for r in kept if r.note().deleted)
                kept = [r for r in kept if r.note_id not in purged]

            # The old snapshot may reference positions the new log lacks.
            remove_snapshot(self.paths["snapshot"])
            self._log.rewrite(kept)
            for note_id in purged:
                self._notes.pop(note_id, None)
            self._write_snapshot()

            removed = total - len(kept)
            Log.debug(f"Compacted change log: {total} -> {len(kept)} records", 1)
            return removed

    def repair(self) -> int:
        """
        Cut a damaged change log back to its last good record (the original is
        kept beside it), drop the snapshot, and reopen the store.
        Returns the number of bytes cut.
        """
        with self._lock.write_locked():
            self._open = False
            self._notes = {}
            cut = self._log.repair()
            remove_snapshot(self.paths["snapshot"])
            self._log.close()
            self._init_locked()
            return cut

    # ------------------------------------------------------------------ #
    # helpers
    # ------------------------------------------------------------------ #

    def _require_open(self) -> None:
        if not self._open:
            raise InternalError("Note store is not open")

    def _live(self, note_id: str) -> Note:
        note = self._notes.get(note_id)
        if note is None or note.deleted:
            raise NotFound(f"Note {note_id} not found")
        return note

    def _allocate_id(self) -> str:
        while True:
            note_id = self._id_factory()
            if note_id not in self._notes:
                return note_id

    def _next_ts(self) -> float:
        """Wall-clock time, bumped so it always exceeds the last record's."""
        return max(float(self._clock()), self._last_ts + _TICK)

    def _write_snapshot(self) -> None:
        seq = self._log.last_position
        notes = list(self._notes.values())
        with_retries(
            lambda: write_snapshot(self.paths["snapshot"], seq, notes),
            what="snapshot write",
            attempts=self._attempts,
            backoff=self._backoff,
            sleep=self._sleep,
        )
