# app.py
'''
Copyright 2025 Aaron Vose (avose@aaronvose.net)
Licensed under the LGPL v2.1; see the file 'LICENSE' for details.
'''
import json
import sys
import time
import traceback

from vaultnote.core.config import EngineConfig
from vaultnote.core.dispatcher import Dispatcher, Response
from vaultnote.core.io_worker import IOWorker
from vaultnote.core.log import Log
from vaultnote.core.settings import SettingsStore
from vaultnote.core.store import NoteStore
from vaultnote.utils.paths import data_paths

def on_exception(exc_type, exc_value, exc_traceback):
    """Record unhandled exceptions in the log before reporting them."""
    if issubclass(exc_type, KeyboardInterrupt):
        # Allow Ctrl+C to work normally
        sys.__excepthook__(exc_type, exc_value, exc_traceback)
        return

    tb_text = ''.join(traceback.format_exception(exc_type, exc_value, exc_traceback))
    error_message = f"!ERROR! Unhandled Exception:\n{tb_text}"
    Log.debug(error_message, 0)
    print(error_message, file=sys.stderr)

class NotesBackend:
    """
    Everything a UI shell needs, wired together from one EngineConfig:
    the note store, settings, dispatcher, and (on first async call) the
    IO worker. The shell must call start() before commands and close() on exit.
    """

    def __init__(self, config: EngineConfig, *, post=None, clock=time.time):
        self.config = config
        self.paths = data_paths(config.data_dir)
        self.store = NoteStore(
            config.data_dir,
            attempts=config.io_attempts,
            backoff=config.io_backoff,
            clock=clock,
        )
        self.settings = SettingsStore(
            self.paths["settings"],
            attempts=config.io_attempts,
            backoff=config.io_backoff,
        )
        self.dispatcher = Dispatcher(self.store, settings=self.settings)
        self._post = post
        self._worker = None

    def start(self) -> Response:
        return self.dispatcher.startup()

    def invoke(self, command: str, args=None) -> Response:
        return self.dispatcher.invoke(command, args)

    def invoke_async(self, command: str, args=None, callback=None):
        """Run a command on the IO worker; callback(response, error) arrives on the GUI thread."""
        if self._worker is None:
            self._worker = IOWorker(post=self._post)
        self._worker.submit(self.dispatcher.invoke, command, args, callback=callback)

    def close(self) -> Response:
        if self._worker is not None:
            self._worker.stop()
            self._worker = None
        return self.dispatcher.shutdown()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

def _emit(response: Response, out) -> int:
    out.write(json.dumps(response.to_dict(), indent=2, ensure_ascii=False) + "\n")
    return 0 if response.ok else 1

def main(command: str, args=None, data_dir=None, verbosity=None,
         stdexp: bool = False, out=None) -> int:
    """Run one command against the data directory and print its JSON response."""
    out = out or sys.stdout

    # Install the exception handler
    if not stdexp:
        sys.excepthook = on_exception

    config = EngineConfig.from_env(data_dir, verbosity=verbosity)
    Log.set_verbosity(config.verbosity)
    backend = NotesBackend(config)

    try:
        if command == "repair_log":
            # A damaged log cannot start; repair reopens the store itself.
            response = backend.invoke(command, args)
        else:
            response = backend.start()
            if response.ok:
                response = backend.invoke(command, args)
        status = _emit(response, out)
    finally:
        closed = backend.close()
        if config.verbosity > 0:
            Log.write_to_file(str(backend.paths["debug_log"]))

    if status == 0 and not closed.ok:
        return _emit(closed, out)
    return status
