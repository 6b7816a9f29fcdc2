import json

import pytest

from vaultnote.core.errors import InvalidInput
from vaultnote.core.settings import DEFAULT_SETTINGS, SettingsStore


def test_missing_file_gives_defaults(settings):
    assert settings.load() == DEFAULT_SETTINGS
    assert not settings.path.exists()


def test_set_theme_persists(settings):
    assert settings.set_theme("dark") == {"theme": "dark"}
    assert json.loads(settings.path.read_text(encoding="utf-8")) == {"theme": "dark"}
    assert SettingsStore(settings.path).load()["theme"] == "dark"


def test_unknown_theme_is_rejected(settings):
    with pytest.raises(InvalidInput):
        settings.set_theme("neon")
    assert not settings.path.exists()


def test_unknown_stored_theme_falls_back_to_default(settings):
    settings.path.parent.mkdir(parents=True)
    settings.path.write_text('{"theme": "sepia", "extra": 1}', encoding="utf-8")
    assert settings.load()["theme"] == "system"


def test_malformed_file_is_moved_aside(settings):
    settings.path.parent.mkdir(parents=True)
    settings.path.write_text("{oops", encoding="utf-8")

    assert settings.load() == DEFAULT_SETTINGS
    bad = settings.path.with_name("settings.json.bad")
    assert bad.read_text(encoding="utf-8") == "{oops"
    assert not settings.path.exists()


def test_load_returns_a_copy(settings):
    settings.load()["theme"] = "dark"
    assert settings.load()["theme"] == "system"
