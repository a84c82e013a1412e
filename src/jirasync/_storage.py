"""JSON documents on disk, written atomically.

Blocking helpers; callers on the event loop run them in the default
executor.
"""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any

from jirasync.exceptions import CacheCorruptError


def dump_document(data: Any) -> str:
    """Serialise *data* with the fixed layout used for every cache file.

    Same input, same bytes: cache records rely on it.
    """
    return json.dumps(data, indent=2, ensure_ascii=False) + "\n"


def atomic_write_text(path: Path, text: str) -> None:
    """Write *text* to *path* through a temporary file and a rename.

    Raises :class:`OSError` on failure; no partial file is left behind.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise


def read_document(path: Path) -> Any:
    """Read and decode a JSON document.

    Raises :class:`FileNotFoundError` if it does not exist and
    :class:`CacheCorruptError` if it cannot be decoded.
    """
    data = path.read_bytes()
    try:
        return json.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise CacheCorruptError(f"Cannot decode {path}: {exc}", path=str(path)) from exc
