import pytest

from vaultnote.core.changelog import ChangeLog
from vaultnote.core.dispatcher import Dispatcher
from vaultnote.core.log import Log
from vaultnote.core.settings import SettingsStore
from vaultnote.core.store import NoteStore
from vaultnote.utils.paths import data_paths


class FakeClock:
    """Deterministic clock: every call moves time forward by `step` seconds."""

    def __init__(self, start: float = 1000.0, step: float = 1.0):
        self.now = start
        self.step = step

    def __call__(self) -> float:
        self.now += self.step
        return self.now


@pytest.fixture(autouse=True)
def quiet_log():
    Log.set_verbosity(0)
    yield
    Log.set_verbosity(0)


@pytest.fixture
def data_dir(tmp_path):
    return tmp_path / "vault"


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_store(data_dir, clock):
    """Factory for stores on the shared data dir; all are shut down afterwards."""
    created = []

    def factory(**kwargs):
        kwargs.setdefault("clock", clock)
        kwargs.setdefault("sleep", lambda _s: None)
        store = NoteStore(data_dir, **kwargs)
        created.append(store)
        return store

    yield factory

    for store in created:
        if store.is_open:
            store.shutdown()


@pytest.fixture
def store(make_store):
    s = make_store()
    s.init()
    return s


@pytest.fixture
def log_path(data_dir):
    return data_paths(data_dir)["log"]


@pytest.fixture
def records(log_path):
    """Read back every record currently in the store's change log."""
    def read():
        return list(ChangeLog(log_path).replay())
    return read


@pytest.fixture
def settings(data_dir):
    return SettingsStore(data_paths(data_dir)["settings"], sleep=lambda _s: None)


@pytest.fixture
def dispatcher(store, settings):
    return Dispatcher(store, settings=settings)
