import threading

import pytest

from vaultnote.core.rwlock import ReadWriteLock


def test_readers_share_the_lock():
    lock = ReadWriteLock()
    lock.acquire_read()
    lock.acquire_read()
    assert lock.readers == 2
    lock.release_read()
    lock.release_read()
    assert lock.readers == 0


def test_writer_waits_for_readers():
    lock = ReadWriteLock()
    lock.acquire_read()
    acquired = threading.Event()

    def writer():
        with lock.write_locked():
            acquired.set()

    t = threading.Thread(target=writer)
    t.start()
    assert not acquired.wait(0.1)
    lock.release_read()
    assert acquired.wait(2)
    t.join(2)
    assert not lock.writing


def test_waiting_writer_blocks_new_readers():
    lock = ReadWriteLock()
    lock.acquire_read()
    order = []

    def writer():
        with lock.write_locked():
            order.append("write")

    def reader():
        with lock.read_locked():
            order.append("read")

    w = threading.Thread(target=writer)
    w.start()
    # Give the writer time to register as waiting.
    deadline = threading.Event()
    deadline.wait(0.1)
    r = threading.Thread(target=reader)
    r.start()
    deadline.wait(0.1)
    assert order == []

    lock.release_read()
    w.join(2)
    r.join(2)
    assert order == ["write", "read"]


def test_unbalanced_release_is_an_error():
    lock = ReadWriteLock()
    with pytest.raises(RuntimeError):
        lock.release_read()
    with pytest.raises(RuntimeError):
        lock.release_write()


def test_context_managers_release_on_error():
    lock = ReadWriteLock()
    with pytest.raises(ValueError):
        with lock.write_locked():
            raise ValueError("boom")
    assert not lock.writing
    with lock.read_locked():
        assert lock.readers == 1
    assert lock.readers == 0
