"""Tests for the JSON document helpers."""

from __future__ import annotations

import json
import threading
from pathlib import Path

from attodesk.protocol.io import append_jsonl, iter_jsonl, read_json, remove_file, write_json_atomic


def test_write_json_atomic_creates_parents(tmp_path: Path) -> None:
    target = tmp_path / "a" / "b" / "doc.json"
    write_json_atomic(target, {"x": 1})
    assert json.loads(target.read_text(encoding="utf-8")) == {"x": 1}
    assert [p.name for p in target.parent.iterdir()] == ["doc.json"]


def test_write_json_atomic_concurrent_writers(tmp_path: Path) -> None:
    target = tmp_path / "doc.json"

    def writer(n: int) -> None:
        for i in range(50):
            write_json_atomic(target, {"writer": n, "pass": i})

    threads = [threading.Thread(target=writer, args=(n,)) for n in range(6)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert json.loads(target.read_text(encoding="utf-8"))["pass"] == 49
    assert [p.name for p in tmp_path.iterdir()] == ["doc.json"]


def test_read_json_default_on_missing_or_corrupt(tmp_path: Path) -> None:
    target = tmp_path / "doc.json"
    assert read_json(target, {}) == {}
    target.write_text("{nope", encoding="utf-8")
    assert read_json(target, []) == []


def test_iter_jsonl_skips_blank_corrupt_and_non_objects(tmp_path: Path) -> None:
    target = tmp_path / "log.jsonl"
    append_jsonl(target, {"n": 1})
    with target.open("a", encoding="utf-8") as fh:
        fh.write("\n{bad\n[1, 2]\n")
    append_jsonl(target, {"n": 2})
    assert [item["n"] for item in iter_jsonl(target)] == [1, 2]


def test_iter_jsonl_missing_file(tmp_path: Path) -> None:
    assert list(iter_jsonl(tmp_path / "none.jsonl")) == []


def test_remove_file(tmp_path: Path) -> None:
    target = tmp_path / "f"
    target.write_text("x", encoding="utf-8")
    assert remove_file(target) is True
    assert remove_file(target) is False
