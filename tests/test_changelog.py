import os

import pytest

from vaultnote.core.changelog import MAGIC, ChangeLog
from vaultnote.core.errors import IOFailure, LogCorrupt
from vaultnote.core.models import ChangeRecord, Note, OpKind


def make_record(note_id="a" * 32, title="t", ts=1.0, op=OpKind.CREATE):
    note = Note(id=note_id, title=title, body="body", created_at=1.0, updated_at=ts)
    return ChangeRecord(note_id, op, None, note.to_dict(), ts)


@pytest.fixture
def log(tmp_path):
    cl = ChangeLog(tmp_path / "changes.log", sleep=lambda _s: None)
    cl.open()
    yield cl
    cl.close()


def fill(log, count):
    return [log.append(make_record(title=f"t{i}", ts=float(i + 1))) for i in range(count)]


def test_new_log_starts_with_header(log):
    assert log.path.read_bytes() == MAGIC
    assert log.last_position == 0


def test_append_returns_increasing_positions(log):
    assert fill(log, 3) == [1, 2, 3]
    assert log.last_position == 3


def test_replay_yields_records_in_order(log):
    fill(log, 3)
    replayed = list(log.replay())
    assert [r.seq for r in replayed] == [1, 2, 3]
    assert [r.note().title for r in replayed] == ["t0", "t1", "t2"]
    assert all(r.op is OpKind.CREATE for r in replayed)


def test_replay_restarts_from_the_beginning(log):
    fill(log, 2)
    assert list(log.replay()) == list(log.replay())


def test_records_survive_reopening(log, tmp_path):
    fill(log, 2)
    log.close()
    again = ChangeLog(tmp_path / "changes.log")
    again.open()
    try:
        assert [r.seq for r in again.replay()] == [1, 2]
        assert again.append(make_record(ts=10.0)) == 3
    finally:
        again.close()


def test_truncated_tail_stops_replay_with_log_corrupt(log):
    fill(log, 3)
    log.close()
    data = log.path.read_bytes()
    log.path.write_bytes(data[:-5])

    seen = []
    with pytest.raises(LogCorrupt) as info:
        for record in ChangeLog(log.path).replay():
            seen.append(record.seq)
    assert seen == [1, 2]
    assert info.value.good_records == 2


def test_checksum_mismatch_is_reported_at_its_offset(log):
    fill(log, 2)
    log.close()
    data = bytearray(log.path.read_bytes())
    data[len(MAGIC) + 12] ^= 0xFF
    log.path.write_bytes(bytes(data))

    with pytest.raises(LogCorrupt) as info:
        list(ChangeLog(log.path).replay())
    assert info.value.offset == len(MAGIC)
    assert info.value.good_records == 0


def test_damaged_header_refuses_to_open(tmp_path):
    path = tmp_path / "changes.log"
    path.write_bytes(b"garbage!" + b"\x00" * 16)
    with pytest.raises(LogCorrupt):
        ChangeLog(path).open()


def test_repair_keeps_good_prefix_and_backs_up_original(log):
    fill(log, 3)
    log.close()
    original = log.path.read_bytes()
    log.path.write_bytes(original[:-5])

    repaired = ChangeLog(log.path)
    cut = repaired.repair()

    assert cut > 0
    backups = list(log.path.parent.glob("changes.log.corrupt-*"))
    assert len(backups) == 1
    assert backups[0].read_bytes() == original[:-5]
    assert [r.seq for r in repaired.replay()] == [1, 2]

    repaired.open()
    try:
        assert repaired.append(make_record(ts=50.0)) == 3
    finally:
        repaired.close()


def test_repair_of_healthy_log_is_a_noop(log):
    fill(log, 2)
    assert log.repair() == 0
    assert not list(log.path.parent.glob("changes.log.corrupt-*"))
    assert log.is_open


def test_append_retries_and_rolls_back_partial_writes(log, monkeypatch):
    fill(log, 1)
    real_fsync = os.fsync
    calls = {"n": 0}

    def flaky_fsync(fd):
        calls["n"] += 1
        if calls["n"] == 1:
            raise OSError("disk hiccup")
        return real_fsync(fd)

    monkeypatch.setattr(os, "fsync", flaky_fsync)
    assert log.append(make_record(title="retried", ts=5.0)) == 2
    monkeypatch.setattr(os, "fsync", real_fsync)

    replayed = list(log.replay())
    assert [r.seq for r in replayed] == [1, 2]
    assert replayed[-1].note().title == "retried"


def test_append_gives_up_after_bounded_attempts(log, monkeypatch):
    fill(log, 1)
    size = log.path.stat().st_size

    def broken_fsync(fd):
        raise OSError("disk gone")

    monkeypatch.setattr(os, "fsync", broken_fsync)
    with pytest.raises(IOFailure) as info:
        log.append(make_record(ts=5.0))
    monkeypatch.undo()

    assert info.value.details["attempts"] == 3
    assert log.path.stat().st_size == size
    assert log.last_position == 1


def test_rewrite_replaces_contents_and_keeps_positions(log):
    fill(log, 4)
    kept = [r for r in log.replay() if r.seq in (2, 4)]
    log.rewrite(kept)

    assert [r.seq for r in log.replay()] == [2, 4]
    assert log.append(make_record(ts=99.0)) == 5
