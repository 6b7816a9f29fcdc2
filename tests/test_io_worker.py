import threading

from vaultnote.core.io_worker import IOWorker


def inline_post(fn, *args):
    fn(*args)


def test_tasks_run_in_order_and_report_results():
    worker = IOWorker(post=inline_post)
    results = []
    for i in range(5):
        worker.submit(lambda n=i: n * n, callback=lambda r, e: results.append((r, e)))
    worker.stop(timeout=2)

    assert results == [(n * n, None) for n in range(5)]
    assert not worker.alive


def test_errors_reach_the_callback():
    worker = IOWorker(post=inline_post)
    seen = threading.Event()
    captured = {}

    def boom():
        raise ValueError("nope")

    def callback(result, error):
        captured["result"], captured["error"] = result, error
        seen.set()

    worker.submit(boom, callback=callback)
    assert seen.wait(2)
    worker.stop(timeout=2)

    exc, tb = captured["error"]
    assert captured["result"] is None
    assert isinstance(exc, ValueError)
    assert "nope" in tb


def test_failure_without_callback_keeps_worker_running():
    worker = IOWorker(post=inline_post)
    done = threading.Event()
    worker.submit(lambda: 1 / 0)
    worker.submit(done.set)
    assert done.wait(2)
    worker.stop(timeout=2)


def test_callbacks_go_through_post():
    posted = []
    worker = IOWorker(post=lambda fn, *args: posted.append((fn, args)))
    worker.submit(lambda: "done", callback=print)
    worker.stop(timeout=2)
    assert posted == [(print, ("done", None))]
