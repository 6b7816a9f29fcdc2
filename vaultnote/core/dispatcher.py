# core/dispatcher.py
'''
Copyright 2025 Aaron Vose (avose@aaronvose.net)
Licensed under the LGPL v2.1; see the file 'LICENSE' for details.
'''

from __future__ import annotations

import inspect
import traceback
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

from vaultnote.core.errors import ErrorKind, InvalidInput, LogCorrupt, IOFailure, VaultError
from vaultnote.core.log import Log
from vaultnote.core.render import render
from vaultnote.core.settings import SettingsStore
from vaultnote.core.store import NoteStore
from vaultnote.utils.paths import is_valid_id

__all__ = ["Dispatcher", "Response", "INTERNAL_MESSAGE", "MAX_TITLE_LEN"]

MAX_TITLE_LEN = 200
INTERNAL_MESSAGE = "An unexpected internal error occurred."


@dataclass(frozen=True)
class Response:
    """What the UI shell gets back: `data` on success, `error` otherwise."""
    ok: bool
    data: Any = None
    error: Optional[Dict[str, str]] = None

    @classmethod
    def success(cls, data: Any = None) -> Response:
        return cls(ok=True, data=data)

    @classmethod
    def failure(cls, kind: ErrorKind, message: str) -> Response:
        return cls(ok=False, error={"kind": kind.value, "message": message})

    @property
    def error_kind(self) -> Optional[ErrorKind]:
        return ErrorKind(self.error["kind"]) if self.error else None

    def to_dict(self) -> Dict[str, Any]:
        if self.ok:
            return {"ok": True, "data": self.data}
        return {"ok": False, "error": dict(self.error)}


# ---------- validation ----------

def _text(value: Any, name: str) -> str:
    if not isinstance(value, str):
        raise InvalidInput(f"{name} must be a string")
    try:
        value.encode("utf-8")
    except UnicodeEncodeError:
        raise InvalidInput(f"{name} contains invalid characters") from None
    return value


def _note_id(value: Any) -> str:
    if not is_valid_id(value):
        raise InvalidInput("Malformed note id")
    return value


def _optional_note_id(value: Any) -> Optional[str]:
    return None if value is None else _note_id(value)


def _title(value: Any) -> str:
    title = _text(value, "title")
    if not title.strip():
        raise InvalidInput("Title must not be empty")
    if len(title) > MAX_TITLE_LEN:
        raise InvalidInput(f"Title must be at most {MAX_TITLE_LEN} characters")
    return title


def _user_message(error: VaultError) -> str:
    """The one place engine errors become text for people."""
    if isinstance(error, LogCorrupt):
        return (
            f"{error.message}. {error.good_records} change records are intact. "
            "Run `vaultnote repair` to keep them; the damaged log is saved beside it."
        )
    if isinstance(error, IOFailure):
        return f"{error.message}. Check that the data directory is writable and has free space."
    return error.message


class Dispatcher:
    """
    Sole boundary between the UI shell and the engine.

    Every command goes Received -> Validated -> Executed -> Responded.
    Validation happens before anything is touched, so bad input never causes
    a partial change. Every call returns a Response; nothing raises.
    """

    def __init__(
        self,
        store: NoteStore,
        *,
        renderer: Callable[[Any], str] = render,
        settings: Optional[SettingsStore] = None,
    ):
        self._store = store
        self._render = renderer
        self._settings = settings
        self._commands: Dict[str, Callable[..., Response]] = {
            "greet": self.greet,
            "save_note": self.save_note,
            "get_note": self.get_note,
            "parse_markdown": self.parse_markdown,
            "list_notes": self.list_notes,
            "delete_note": self.delete_note,
            "compact_log": self.compact_log,
            "repair_log": self.repair_log,
        }
        if settings is not None:
            self._commands["get_settings"] = self.get_settings
            self._commands["set_theme"] = self.set_theme

    @property
    def commands(self) -> Tuple[str, ...]:
        return tuple(sorted(self._commands))

    def invoke(self, command: str, args: Optional[Dict[str, Any]] = None) -> Response:
        """Route a command by name, the way the shell's invoke bridge calls it."""
        handler = self._commands.get(command)
        if handler is None:
            return self._reject(command, InvalidInput(f"Unknown command: {command}"))
        if args is None:
            args = {}
        if not isinstance(args, dict):
            return self._reject(command, InvalidInput("Command arguments must be an object"))
        try:
            bound = inspect.signature(handler).bind(**args)
        except TypeError as e:
            return self._reject(command, InvalidInput(f"Invalid arguments for {command}: {e}"))
        return handler(*bound.args, **bound.kwargs)

    # ------------------------------------------------------------------ #
    # lifecycle
    # ------------------------------------------------------------------ #

    def startup(self) -> Response:
        def execute():
            self._store.init()
            return {"notes": len(self._store.list())}
        return self._run("startup", lambda: (), execute)

    def shutdown(self) -> Response:
        return self._run("shutdown", lambda: (), self._store.shutdown)

    # ------------------------------------------------------------------ #
    # commands
    # ------------------------------------------------------------------ #

    def greet(self, name: str) -> Response:
        return self._run(
            "greet",
            lambda: (_text(name, "name"),),
            lambda n: f"Hello, {n}! You've been greeted from VaultNote!",
        )

    def save_note(self, id: Optional[str] = None, title: str = "", body: str = "") -> Response:
        def validate():
            return _optional_note_id(id), _title(title), _text(body, "body")

        def execute(note_id, title, body):
            return self._store.create_or_update(note_id, title, body).to_dict()

        return self._run("save_note", validate, execute)

    def get_note(self, id: str) -> Response:
        return self._run(
            "get_note",
            lambda: (_note_id(id),),
            lambda note_id: self._store.get(note_id).to_dict(),
        )

    def parse_markdown(self, text: Any) -> Response:
        def validate():
            if not isinstance(text, (str, bytes)):
                raise InvalidInput("text must be a string")
            return (text,)

        return self._run("parse_markdown", validate, self._render)

    def list_notes(self) -> Response:
        return self._run(
            "list_notes",
            lambda: (),
            lambda: [s.to_dict() for s in self._store.list()],
        )

    def delete_note(self, id: str) -> Response:
        return self._run("delete_note", lambda: (_note_id(id),), self._store.delete)

    def compact_log(self, drop_tombstones: bool = False) -> Response:
        def validate():
            if not isinstance(drop_tombstones, bool):
                raise InvalidInput("drop_tombstones must be true or false")
            return (drop_tombstones,)

        return self._run("compact_log", validate, self._store.compact)

    def repair_log(self) -> Response:
        return self._run("repair_log", lambda: (), self._store.repair)

    def get_settings(self) -> Response:
        return self._run("get_settings", lambda: (), self._settings.load)

    def set_theme(self, theme: str) -> Response:
        return self._run("set_theme", lambda: (_text(theme, "theme"),), self._settings.set_theme)

    # ------------------------------------------------------------------ #
    # request state machine
    # ------------------------------------------------------------------ #

    def _run(self, command: str, validate: Callable[[], tuple], execute: Callable[..., Any]) -> Response:
        Log.debug(f"{command}: received", 2)
        try:
            params = validate()
        except VaultError as e:
            return self._reject(command, e)
        except Exception:
            return self._internal(command)
        Log.debug(f"{command}: validated", 2)

        try:
            data = execute(*params)
        except VaultError as e:
            return self._reject(command, e)
        except Exception:
            return self._internal(command)
        Log.debug(f"{command}: executed", 2)
        return self._respond(command, Response.success(data))

    def _reject(self, command: str, error: VaultError) -> Response:
        if error.kind is ErrorKind.INTERNAL:
            Log.debug(f"{command}: internal error: {error}", 0)
            return self._respond(command, Response.failure(ErrorKind.INTERNAL, INTERNAL_MESSAGE))
        level = 1 if error.kind in (ErrorKind.INVALID_INPUT, ErrorKind.NOT_FOUND) else 0
        Log.debug(f"{command}: {error.kind.value}: {error}", level)
        return self._respond(command, Response.failure(error.kind, _user_message(error)))

    def _internal(self, command: str) -> Response:
        Log.debug(f"{command}: unexpected failure\n{traceback.format_exc()}", 0)
        return self._respond(command, Response.failure(ErrorKind.INTERNAL, INTERNAL_MESSAGE))

    def _respond(self, command: str, response: Response) -> Response:
        state = "ok" if response.ok else response.error["kind"]
        Log.debug(f"{command}: responded ({state})", 2)
        return response
