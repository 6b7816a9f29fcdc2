from vaultnote.core.log import Log


def test_debug_respects_verbosity():
    Log.clear()
    Log.debug("hidden", 1)
    Log.set_verbosity(1)
    Log.debug("shown", 1)

    messages = [message for _ts, message in Log.get()]
    assert "[test_log.py] shown" in messages
    assert not any("hidden" in m for m in messages)


def test_write_to_file_appends(tmp_path):
    Log.clear()
    Log.debug("lifecycle event", 0)
    target = tmp_path / "vaultnote.log"

    assert Log.write_to_file(str(target))
    assert Log.write_to_file(str(target))
    assert target.read_text(encoding="utf-8").count("lifecycle event") == 2


def test_write_to_unwritable_path_reports_failure(tmp_path):
    assert not Log.write_to_file(str(tmp_path / "missing" / "dir" / "x.log"))
