from __future__ import annotations

import json
import os
import uuid
from pathlib import Path
from typing import Any, Union

Pathish = Union[str, Path]

__all__ = ["fsync_dir", "atomic_write_bytes", "atomic_write_json", "read_json"]


def fsync_dir(dir_path: Pathish) -> None:
    """
    Fsync a directory to persist metadata updates (e.g., renames).
    Safe no-op if the directory doesn't exist, or on platforms that
    cannot open directories.
    """
    d = Path(dir_path)
    if not d.exists() or os.name == "nt":
        return
    fd = os.open(str(d), os.O_RDONLY)
    try:
        os.fsync(fd)
    finally:
        os.close(fd)


def _write_tmp_and_replace(dst_path: Path, write_fn) -> None:
    """
    Internal helper:
      - create a temp file in dst directory
      - write via write_fn(fileobj)
      - fsync temp
      - os.replace -> dst
      - fsync directory
    """
    dst_dir = dst_path.parent
    dst_dir.mkdir(parents=True, exist_ok=True)
    tmp_path = dst_dir / f".{dst_path.name}.tmp-{os.getpid()}-{uuid.uuid4().hex[:8]}"

    try:
        with open(tmp_path, "wb") as f:
            write_fn(f)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, dst_path)
        fsync_dir(dst_dir)
    except BaseException:
        # Leave no temp file behind; the original error is what matters.
        try:
            tmp_path.unlink()
        except OSError:
            pass
        raise


def atomic_write_bytes(dst: Pathish, data: bytes) -> None:
    """
    Atomically write bytes to dst path (same-dir temp + replace + fsync).
    Readers see either the old file or the complete new one.
    """
    _write_tmp_and_replace(Path(dst), lambda f: f.write(data))


def atomic_write_json(dst: Pathish, obj: Any) -> None:
    data = json.dumps(obj, indent=2, sort_keys=True, ensure_ascii=False).encode("utf-8")
    atomic_write_bytes(dst, data)


def read_json(path: Pathish, default: Any) -> Any:
    """
    Load JSON from path, returning default when the file does not exist.
    Raises ValueError on malformed JSON.
    """
    p = Path(path)
    try:
        return json.loads(p.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return default
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ValueError(f"Malformed JSON in {p}: {e}") from e
