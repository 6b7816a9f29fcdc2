################################################################################################

'''

Copyright 2025 Aaron Vose (avose@aaronvose.net)

Licensed under the LGPL v2.1; see the file 'LICENSE' for details.

This file holds the code for the engine's info / debug logger.

Verbosity levels used across VaultNote:
  0 - errors and lifecycle (startup, shutdown, repair)
  1 - normal operations (note saved, log compacted, ...)
  2 - dispatcher state transitions

'''

################################################################################################

import inspect
import os
import threading
from collections import deque
from datetime import datetime

################################################################################################

MAX_ENTRIES = 10000

def _now() -> str:
    return datetime.now().strftime("%m/%d/%Y %H:%M:%S")

class LogManager():
    __log = None
    __lock = threading.Lock()

    def __init__(self, verbosity: int = 0):
        if LogManager.__log is None:
            LogManager.__log = deque(maxlen=MAX_ENTRIES)
            LogManager.__log.append((_now(), "Begin VaultNote Log"))
        self.verbosity = verbosity

    def add(self, text: str):
        with LogManager.__lock:
            LogManager.__log.append((_now(), text))

    def debug(self, text: str, level: int = 0):
        if self.verbosity >= level:
            # Tag with the caller's file name (not the full path)
            frame = inspect.currentframe()
            caller = frame.f_back if frame is not None else None
            if caller is not None:
                filename = os.path.basename(caller.f_code.co_filename)
            else:
                filename = "unknown"
            self.add(f"[{filename}] {text}")

    def get(self, index: int = None):
        with LogManager.__lock:
            if index is not None:
                return LogManager.__log[index]
            return list(LogManager.__log)

    def count(self):
        return len(LogManager.__log)

    def set_verbosity(self, verbosity: int = 0):
        self.verbosity = verbosity

    def clear(self):
        """Clear all log entries."""
        with LogManager.__lock:
            LogManager.__log.clear()
            LogManager.__log.append((_now(), "Log cleared"))

    def write_to_file(self, filepath: str) -> bool:
        """Append all log entries to a file. Returns False if the file could not be written."""
        entries = self.get()
        try:
            with open(filepath, 'a', encoding='utf-8') as f:
                for timestamp, message in entries:
                    f.write(f"[{timestamp}] {message}\n")
        except OSError as e:
            self.add(f"Failed to write log to file '{filepath}': {e}")
            return False
        self.add(f"Log written to file: {filepath}")
        return True

################################################################################################

Log = LogManager()

################################################################################################
