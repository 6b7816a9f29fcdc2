# core/io_worker.py
'''
Copyright 2025 Aaron Vose (avose@aaronvose.net)
Licensed under the LGPL v2.1; see the file 'LICENSE' for details.
'''
import queue
import threading
import traceback

from vaultnote.core.log import Log

_STOP = object()

class IOWorker:
    """
    Single background thread for engine calls, so the GUI thread never waits
    on disk. Tasks run one at a time in submission order.

    Callbacks are handed to `post`, which must run them on the GUI thread;
    it defaults to wx.CallAfter.
    """

    def __init__(self, post=None):
        if post is None:
            import wx
            post = wx.CallAfter
        self._post = post
        self._q = queue.Queue()
        self._t = threading.Thread(target=self._run, name="IOWorker", daemon=True)
        self._t.start()

    def submit(self, fn, *args, callback=None, **kwargs):
        """Queue a task; callback(result, error) runs on the GUI thread via post."""
        self._q.put((fn, args, kwargs, callback))

    def stop(self, timeout=None):
        """Finish queued tasks, then end the thread."""
        self._q.put(_STOP)
        self._t.join(timeout)

    @property
    def alive(self) -> bool:
        return self._t.is_alive()

    def _run(self):
        """Background thread main loop."""
        while True:
            item = self._q.get()
            if item is _STOP:
                self._q.task_done()
                return

            fn, args, kwargs, cb = item
            result = None
            err = None

            try:
                result = fn(*args, **kwargs)
            except Exception as e:
                err = (e, traceback.format_exc())

            if cb:
                self._post(cb, result, err)
            elif err is not None:
                # No callback provided; keep the traceback in the log.
                Log.debug(f"IOWorker task failed:\n{err[1]}", 0)

            self._q.task_done()
