"""Tests for the append-only event log."""

from __future__ import annotations

import json
from datetime import timedelta
from pathlib import Path

from attodesk.events.log import EventFilters, EventLog
from attodesk.protocol.models import SYSTEM_ACTOR, Actor, parse_iso

USER = Actor(type="user", id="u1")
AGENT = Actor(type="agent", id="a1")


def _rewrite_timestamp(log: EventLog, event_id: str, timestamp: str) -> None:
    lines = log.path.read_text(encoding="utf-8").splitlines()
    out = []
    for line in lines:
        item = json.loads(line)
        if item["id"] == event_id:
            item["timestamp"] = timestamp
        out.append(json.dumps(item))
    log.path.write_text("\n".join(out) + "\n", encoding="utf-8")


class TestEventLog:
    def test_append_writes_one_line_each(self, workspace_dir: Path) -> None:
        log = EventLog(workspace_dir)
        first = log.append("file:changed", USER, {"path": "src/a.py"})
        before = log.path.read_text(encoding="utf-8")
        log.append("agent:idle", AGENT)
        after = log.path.read_text(encoding="utf-8")
        assert after.startswith(before)
        assert len(after.splitlines()) == 2
        assert log.read()[0].id == first.id

    def test_ids_are_time_ordered(self, workspace_dir: Path) -> None:
        log = EventLog(workspace_dir)
        ids = [log.append("test:ran", SYSTEM_ACTOR).id for _ in range(20)]
        assert ids == sorted(ids)
        assert len(set(ids)) == 20

    def test_read_limit_returns_most_recent(self, workspace_dir: Path) -> None:
        log = EventLog(workspace_dir)
        for i in range(5):
            log.append("build:step", SYSTEM_ACTOR, {"i": i})
        assert [e.data["i"] for e in log.read(limit=2)] == [3, 4]

    def test_missing_file_reads_empty(self, workspace_dir: Path) -> None:
        assert EventLog(workspace_dir).read() == []

    def test_corrupt_lines_are_skipped(self, workspace_dir: Path) -> None:
        log = EventLog(workspace_dir)
        log.append("git:commit", USER)
        with log.path.open("a", encoding="utf-8") as fh:
            fh.write("{broken\n")
            fh.write('{"id": "x"}\n')
        log.append("git:push", USER)
        assert [e.type for e in log.read()] == ["git:commit", "git:push"]


class TestEventQuery:
    def test_filters_compose(self, workspace_dir: Path) -> None:
        log = EventLog(workspace_dir)
        log.append("file:changed", USER, {"path": "src/app/main.py"})
        log.append("file:changed", AGENT, {"path": "src/app/util.py"})
        log.append("file:changed", AGENT, {"path": "docs/readme.md"})
        log.append("agent:idle", AGENT)

        result = log.query(EventFilters(event_type="file:changed", actor_type="agent", path="src/"))
        assert [e.data["path"] for e in result] == ["src/app/util.py"]

        by_actor = log.query(EventFilters(actor_id="a1", limit=2))
        assert [e.type for e in by_actor] == ["file:changed", "agent:idle"]

    def test_minutes_ago_cutoff(self, workspace_dir: Path) -> None:
        log = EventLog(workspace_dir)
        old = log.append("task:created", USER)
        fresh = log.append("task:updated", USER)
        now = parse_iso(fresh.timestamp)
        _rewrite_timestamp(log, old.id, (now - timedelta(minutes=30)).isoformat())

        recent = log.query(EventFilters(minutes_ago=10), now=now)
        assert [e.id for e in recent] == [fresh.id]

        # 0 disables the cutoff entirely.
        assert len(log.query(EventFilters(minutes_ago=0), now=now)) == 2

    def test_future_timestamp_still_matches(self, workspace_dir: Path) -> None:
        log = EventLog(workspace_dir)
        event = log.append("note:updated", USER)
        now = parse_iso(event.timestamp)
        _rewrite_timestamp(log, event.id, (now + timedelta(minutes=5)).isoformat())
        assert len(log.query(EventFilters(minutes_ago=1), now=now)) == 1

    def test_summary_counts_by_type(self, workspace_dir: Path) -> None:
        log = EventLog(workspace_dir)
        log.append("file:changed", USER)
        log.append("file:changed", USER)
        log.append("git:commit", USER)
        assert log.summary(minutes_ago=60) == {"file:changed": 2, "git:commit": 1}

    def test_negative_minutes_ago_skips_cutoff(self, workspace_dir: Path) -> None:
        log = EventLog(workspace_dir)
        for _ in range(3):
            log.append("git:commit", USER)
        assert len(log.query(EventFilters(minutes_ago=-5))) == 3

    def test_huge_minutes_ago_clamps_instead_of_overflowing(self, workspace_dir: Path) -> None:
        log = EventLog(workspace_dir)
        for _ in range(3):
            log.append("git:commit", USER)
        assert len(log.query(EventFilters(minutes_ago=1e10))) == 3
        assert sum(log.summary(minutes_ago=1e10).values()) == 3

    def test_huge_minutes_ago_from_far_future_reference(self, workspace_dir: Path) -> None:
        log = EventLog(workspace_dir)
        for _ in range(3):
            log.append("git:commit", USER)
        now = parse_iso(log.read()[-1].timestamp) + timedelta(minutes=2e9)
        assert log.query(EventFilters(minutes_ago=1e9), now=now) == []
