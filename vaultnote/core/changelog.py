# core/changelog.py
'''
Copyright 2025 Aaron Vose (avose@aaronvose.net)
Licensed under the LGPL v2.1; see the file 'LICENSE' for details.
'''

from __future__ import annotations

import json
import os
import struct
import time
import zlib
from pathlib import Path
from typing import BinaryIO, Callable, Iterable, Iterator, Optional, Tuple, Union

from vaultnote.core.errors import InternalError, IOFailure, LogCorrupt
from vaultnote.core.log import Log
from vaultnote.core.models import ChangeRecord
from vaultnote.utils.fs_atomic import atomic_write_bytes
from vaultnote.utils.retry import with_retries

__all__ = ["ChangeLog", "MAGIC"]

# File layout:
#   MAGIC
#   frame*   where frame = [u32 length][u32 crc32(payload)][payload: UTF-8 JSON]
MAGIC = b"VNLOG\x00\x00\x01"
_FRAME = struct.Struct(">II")
MAX_PAYLOAD = 64 * 1024 * 1024


def _encode(record: ChangeRecord) -> bytes:
    payload = json.dumps(record.to_dict(), ensure_ascii=False, sort_keys=True).encode("utf-8")
    return _FRAME.pack(len(payload), zlib.crc32(payload)) + payload


class ChangeLog:
    """
    Append-only, length-prefixed log of ChangeRecords.

    The log is the source of truth for the note table. It is read only at
    startup (replay), by explicit compaction, and by explicit repair; the
    steady-state read path never touches it.

    Every append is flushed and fsynced before `append()` returns, so a record
    the caller has been told about survives a crash.
    """

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
        self._fh: Optional[BinaryIO] = None
        self._last_seq: Optional[int] = None

    # ------------------------------------------------------------------ #
    # lifecycle
    # ------------------------------------------------------------------ #

    @property
    def is_open(self) -> bool:
        return self._fh is not None

    def open(self) -> None:
        """
        Open the log for appending, creating it with a header if missing.
        Raises LogCorrupt if an existing file does not start with the header.
        """
        if self._fh is not None:
            return

        if not self.path.exists() or self.path.stat().st_size == 0:
            self._retry(lambda: atomic_write_bytes(self.path, MAGIC), "change log creation")
            self._last_seq = 0
            Log.debug(f"Created change log at {self.path}", 1)
        else:
            self._check_header()

        try:
            # Unbuffered, so a failed write can be rolled back with ftruncate.
            self._fh = open(self.path, "ab", buffering=0)
        except OSError as e:
            raise IOFailure(f"Could not open change log {self.path}", cause=e) from e

    def close(self) -> None:
        if self._fh is None:
            return
        fh, self._fh = self._fh, None
        try:
            fh.close()
        except OSError as e:
            raise IOFailure(f"Could not close change log {self.path}", cause=e) from e

    def _check_header(self) -> None:
        try:
            with open(self.path, "rb") as f:
                header = f.read(len(MAGIC))
        except OSError as e:
            raise IOFailure(f"Could not read change log {self.path}", cause=e) from e
        if header != MAGIC:
            raise LogCorrupt("Change log header is damaged", offset=0, good_records=0)

    # ------------------------------------------------------------------ #
    # writing
    # ------------------------------------------------------------------ #

    @property
    def last_position(self) -> int:
        """Position of the newest record (0 for an empty log)."""
        if self._last_seq is None:
            self._scan()
        return self._last_seq

    def append(self, record: ChangeRecord) -> int:
        """
        Durably append one record and return its position. Positions increase
        by one per append.
        """
        if self._fh is None:
            raise InternalError("Change log is not open")

        seq = self.last_position + 1
        frame = _encode(record.with_seq(seq))
        fd = self._fh.fileno()
        start = os.fstat(fd).st_size

        def write():
            view = memoryview(frame)
            while view:
                written = self._fh.write(view)
                view = view[written:]
            os.fsync(fd)

        def rollback(error: OSError):
            try:
                os.ftruncate(fd, start)
            except OSError as e:
                raise IOFailure("Could not roll back a partial change log write", cause=e) from e

        self._retry(write, "change log append", on_failure=rollback)
        self._last_seq = seq
        return seq

    def rewrite(self, records: Iterable[ChangeRecord]) -> None:
        """
        Atomically replace the log with `records` (already stamped with
        increasing positions). Used by compaction only.
        """
        records = list(records)
        last = 0
        chunks = [MAGIC]
        for record in records:
            if record.seq is None or record.seq <= last:
                raise InternalError("Rewritten records must carry increasing positions")
            last = record.seq
            chunks.append(_encode(record))
        data = b"".join(chunks)

        was_open = self._fh is not None
        self.close()
        self._retry(lambda: atomic_write_bytes(self.path, data), "change log rewrite")
        self._last_seq = last
        if was_open:
            self.open()
        Log.debug(f"Change log rewritten with {len(records)} records", 1)

    def repair(self) -> int:
        """
        Cut the log back to its last good record.

        The damaged file is preserved next to the log as
        `<name>.corrupt-<timestamp>` before anything is cut.
        Returns the number of bytes removed (0 if the log was healthy).
        """
        was_open = self._fh is not None
        self.close()

        if not self.path.exists():
            return 0

        valid_end, good = self._valid_prefix()
        try:
            data = self.path.read_bytes()
        except OSError as e:
            raise IOFailure(f"Could not read change log {self.path}", cause=e) from e

        if not data or valid_end == len(data):
            if was_open:
                self.open()
            return 0

        stamp = time.strftime("%Y%m%d-%H%M%S")
        backup = self.path.with_name(f"{self.path.name}.corrupt-{stamp}")
        self._retry(lambda: atomic_write_bytes(backup, data), "change log backup")
        kept = data[:valid_end] if valid_end >= len(MAGIC) else MAGIC
        self._retry(lambda: atomic_write_bytes(self.path, kept), "change log repair")
        self._last_seq = None

        cut = len(data) - valid_end
        Log.debug(
            f"Repaired change log: kept {good} records, cut {cut} bytes; "
            f"original saved as {backup.name}",
            0,
        )
        if was_open:
            self.open()
        return cut

    # ------------------------------------------------------------------ #
    # reading
    # ------------------------------------------------------------------ #

    def replay(self) -> Iterator[ChangeRecord]:
        """
        Yield every record in log order, starting from the beginning.

        Stops with LogCorrupt at the first damaged frame; records before it
        have already been yielded. Reaching the end cleanly records the last
        position for later appends.
        """
        last_seq = 0
        for _offset, _size, record in self._frames():
            last_seq = record.seq
            yield record
        self._last_seq = last_seq

    def _frames(self) -> Iterator[Tuple[int, int, ChangeRecord]]:
        """Yield (byte offset, frame size, record) for each good frame."""
        try:
            f = open(self.path, "rb")
        except FileNotFoundError:
            return
        except OSError as e:
            raise IOFailure(f"Could not read change log {self.path}", cause=e) from e

        with f:
            header = f.read(len(MAGIC))
            if not header:
                return
            if header != MAGIC:
                raise LogCorrupt("Change log header is damaged", offset=0, good_records=0)

            offset = len(MAGIC)
            good = 0
            last_seq = 0
            last_ts = float("-inf")

            def corrupt(reason: str) -> LogCorrupt:
                return LogCorrupt(
                    f"Change log is damaged at byte {offset} ({reason})",
                    offset=offset,
                    good_records=good,
                )

            while True:
                head = f.read(_FRAME.size)
                if not head:
                    return
                if len(head) < _FRAME.size:
                    raise corrupt("truncated frame header")
                length, crc = _FRAME.unpack(head)
                if length > MAX_PAYLOAD:
                    raise corrupt("frame length out of range")
                payload = f.read(length)
                if len(payload) < length:
                    raise corrupt("truncated frame")
                if zlib.crc32(payload) != crc:
                    raise corrupt("checksum mismatch")
                try:
                    record = ChangeRecord.from_dict(json.loads(payload.decode("utf-8")))
                    note = record.note()
                except (ValueError, KeyError, TypeError) as e:
                    raise corrupt(f"unreadable record: {e}") from e
                if note.id != record.note_id:
                    raise corrupt("record note id mismatch")
                if record.seq <= last_seq or record.timestamp <= last_ts:
                    raise corrupt("records out of order")

                yield offset, _FRAME.size + length, record

                last_seq = record.seq
                last_ts = record.timestamp
                good += 1
                offset += _FRAME.size + length

    def _valid_prefix(self) -> Tuple[int, int]:
        """(byte offset just past the last good record, number of good records)"""
        end = len(MAGIC)
        good = 0
        try:
            for offset, size, _record in self._frames():
                good += 1
                end = offset + size
        except LogCorrupt as e:
            return e.offset, e.good_records
        return end, good

    def _scan(self) -> None:
        for _ in self.replay():
            pass

    def _retry(self, fn, what: str, on_failure=None):
        return with_retries(
            fn,
            what=what,
            attempts=self._attempts,
            backoff=self._backoff,
            on_failure=on_failure,
            sleep=self._sleep,
        )
