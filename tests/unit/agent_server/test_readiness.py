"""Tests for agent server readiness detection."""

from __future__ import annotations

import threading
import time
from pathlib import Path

import pytest

from attodesk.agent_server.readiness import ReadyResult, extract_ready_url, wait_for_ready


class FakeProcess:
    def __init__(self, returncode: int | None = None) -> None:
        self.returncode = returncode

    def poll(self) -> int | None:
        return self.returncode


@pytest.fixture
def log_path(tmp_path: Path) -> Path:
    path = tmp_path / "logs" / "agent-server.log"
    path.parent.mkdir()
    path.write_bytes(b"")
    return path


@pytest.mark.parametrize(
    ("line", "expected"),
    [
        ("opencode server listening on http://127.0.0.1:4100\n", "http://127.0.0.1:4100"),
        ("Server started at https://localhost:9000/.\n", "https://localhost:9000"),
        ("visit http://127.0.0.1:4100 for docs\n", None),
        ("listening, no url yet\n", None),
    ],
)
def test_extract_ready_url(line: str, expected: str | None) -> None:
    assert extract_ready_url(line) == expected


def test_ready_result_resolves_once() -> None:
    result = ReadyResult()
    assert result.resolve("a", "log")
    assert not result.resolve("b", "exit")
    assert result.value == "a"
    assert result.source == "log"
    assert result.wait(0)


def test_url_from_log_wins(log_path: Path) -> None:
    log_path.write_text("booting\nserver listening on http://127.0.0.1:4321\n", encoding="utf-8")
    url = wait_for_ready(FakeProcess(), "127.0.0.1", 4321, timeout=5, log_path=log_path)  # type: ignore[arg-type]
    assert url == "http://127.0.0.1:4321"


def test_lines_before_offset_are_ignored(log_path: Path) -> None:
    old = b"server listening on http://127.0.0.1:1111\n"
    log_path.write_bytes(old + b"server listening on http://127.0.0.1:2222\n")
    url = wait_for_ready(
        FakeProcess(), "127.0.0.1", 2222, timeout=5, log_path=log_path, offset=len(old)  # type: ignore[arg-type]
    )
    assert url == "http://127.0.0.1:2222"


def test_line_written_after_start_is_picked_up(log_path: Path) -> None:
    def late_writer() -> None:
        time.sleep(0.2)
        with log_path.open("ab") as handle:
            handle.write(b"server listening on ")
            handle.flush()
            time.sleep(0.1)
            handle.write(b"http://127.0.0.1:4700\n")

    writer = threading.Thread(target=late_writer)
    writer.start()
    url = wait_for_ready(FakeProcess(), "127.0.0.1", 4700, timeout=5, log_path=log_path)  # type: ignore[arg-type]
    writer.join()
    assert url == "http://127.0.0.1:4700"


def test_exit_still_reads_what_was_written(log_path: Path) -> None:
    log_path.write_text("server listening on http://127.0.0.1:4800", encoding="utf-8")
    url = wait_for_ready(FakeProcess(returncode=0), "127.0.0.1", 4800, timeout=5, log_path=log_path)  # type: ignore[arg-type]
    assert url == "http://127.0.0.1:4800"


def test_exit_falls_back_to_host_port(log_path: Path) -> None:
    url = wait_for_ready(FakeProcess(returncode=1), "127.0.0.1", 4500, timeout=5, log_path=log_path)  # type: ignore[arg-type]
    assert url == "http://127.0.0.1:4500"


def test_timeout_falls_back_to_host_port(log_path: Path) -> None:
    url = wait_for_ready(FakeProcess(), "localhost", 4600, timeout=0.1, log_path=log_path)  # type: ignore[arg-type]
    assert url == "http://localhost:4600"


def test_missing_log_falls_back(tmp_path: Path) -> None:
    url = wait_for_ready(
        FakeProcess(), "localhost", 4900, timeout=0.1, log_path=tmp_path / "absent.log"  # type: ignore[arg-type]
    )
    assert url == "http://localhost:4900"
