"""Readiness detection for a freshly spawned agent server.

The child writes to a log file under the workspace state directory and a
daemon thread tails that file for a line announcing the listen URL.  The
first outcome wins: URL found, process exited, or timeout.  Exit and timeout
fall back to the URL built from host and port.
"""

from __future__ import annotations

import logging
import re
import subprocess
import threading
import time
from pathlib import Path

logger = logging.getLogger(__name__)

_URL_RE = re.compile(r"(https?://[^\s\"']+)")
_POLL_INTERVAL = 0.05
_DRAIN_TIMEOUT = 1.0


class ReadyResult:
    """A value that can be set once; later sets are ignored."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._event = threading.Event()
        self._value: str | None = None
        self._source = ""

    def resolve(self, value: str, source: str) -> bool:
        with self._lock:
            if self._event.is_set():
                return False
            self._value = value
            self._source = source
            self._event.set()
            return True

    def wait(self, timeout: float | None = None) -> bool:
        return self._event.wait(timeout)

    @property
    def value(self) -> str | None:
        return self._value

    @property
    def source(self) -> str:
        return self._source


def extract_ready_url(line: str) -> str | None:
    lowered = line.lower()
    if "listening" not in lowered and "server" not in lowered:
        return None
    match = _URL_RE.search(line)
    if match is None:
        return None
    return match.group(1).rstrip("/.,;")


def _follow_log(path: Path, offset: int, result: ReadyResult, done: threading.Event) -> None:
    """Tail *path* from *offset* until a URL shows up.

    Once *done* is set the reader stops at the current end of the file.
    """
    pending = b""
    try:
        with path.open("rb") as handle:
            handle.seek(offset)
            while result.value is None:
                chunk = handle.readline()
                if not chunk:
                    if done.is_set():
                        break
                    time.sleep(_POLL_INTERVAL)
                    continue
                pending += chunk
                if not pending.endswith(b"\n"):
                    continue
                _check_line(pending, result)
                pending = b""
    except OSError as exc:
        logger.debug("Cannot follow agent server log %s: %s", path, exc)
        return
    if pending and result.value is None:
        _check_line(pending, result)


def _check_line(raw: bytes, result: ReadyResult) -> None:
    url = extract_ready_url(raw.decode("utf-8", errors="replace"))
    if url:
        result.resolve(url, "log")


def wait_for_ready(
    process: subprocess.Popen[bytes],
    host: str,
    port: int,
    timeout: float = 15.0,
    *,
    log_path: Path,
    offset: int = 0,
) -> str:
    fallback = f"http://{host}:{port}"
    result = ReadyResult()
    done = threading.Event()

    reader = threading.Thread(
        target=_follow_log,
        args=(log_path, offset, result, done),
        name=f"agent-server-ready-{port}",
        daemon=True,
    )
    reader.start()

    deadline = time.monotonic() + timeout
    try:
        while not result.wait(_POLL_INTERVAL):
            if process.poll() is not None:
                # Let the reader catch up with whatever the child wrote before exiting.
                done.set()
                reader.join(_DRAIN_TIMEOUT)
                result.resolve(fallback, "exit")
                break
            if time.monotonic() >= deadline:
                result.resolve(fallback, "timeout")
                break
    finally:
        done.set()

    if result.source == "exit":
        logger.warning(
            "Agent server on port %d exited with code %s before announcing readiness",
            port,
            process.returncode,
        )
    elif result.source == "timeout":
        logger.warning(
            "Agent server on port %d did not announce readiness within %.1fs; assuming %s",
            port,
            timeout,
            fallback,
        )
    return result.value or fallback
