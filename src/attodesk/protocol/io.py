"""Document IO helpers with atomic writes and append-only logs."""

from __future__ import annotations

import contextlib
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Iterator

logger = logging.getLogger(__name__)


def ensure_parent(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def read_json(path: Path, default: Any) -> Any:
    if not path.exists():
        return default
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        return default


def load_json(path: Path) -> Any:
    """Read a JSON document, letting decode errors propagate."""
    return json.loads(path.read_text(encoding="utf-8"))


def write_json_atomic(path: Path, data: Any) -> None:
    """Replace *path* with *data* so readers only ever see a complete document.

    Every call writes its own temp file beside *path*; concurrent writers
    only race on the final rename and the last one wins.
    """
    ensure_parent(path)
    payload = json.dumps(data, indent=2, sort_keys=False) + "\n"
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(payload)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp, path)
    except BaseException:
        with contextlib.suppress(FileNotFoundError):
            os.unlink(tmp)
        raise


def append_jsonl(path: Path, item: Any) -> None:
    ensure_parent(path)
    with path.open("a", encoding="utf-8") as handle:
        handle.write(json.dumps(item) + "\n")


def iter_jsonl(path: Path) -> Iterator[dict[str, Any]]:
    """Yield each JSON object line of *path*; blank and corrupt lines are skipped."""
    if not path.exists():
        return
    with path.open("r", encoding="utf-8") as handle:
        for lineno, line in enumerate(handle, start=1):
            if not line.strip():
                continue
            try:
                item = json.loads(line)
            except json.JSONDecodeError:
                logger.warning("Skipping corrupt line %d in %s", lineno, path)
                continue
            if isinstance(item, dict):
                yield item


def remove_file(path: Path) -> bool:
    """Delete *path* if present.  Returns whether a file was removed."""
    try:
        path.unlink()
    except FileNotFoundError:
        return False
    return True
