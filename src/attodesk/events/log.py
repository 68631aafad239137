"""Append-only workspace event log (``<state>/events.jsonl``)."""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

from attodesk.errors import SchemaError
from attodesk.protocol.ids import uuid7
from attodesk.protocol.io import append_jsonl, iter_jsonl
from attodesk.protocol.models import (
    DEFAULT_STATE_DIR,
    Actor,
    WorkspaceEvent,
    parse_iso,
    state_layout,
    utc_now_iso,
)

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class EventFilters:
    event_type: str | None = None
    actor_type: str | None = None
    actor_id: str | None = None
    path: str | None = None
    minutes_ago: float | None = None
    limit: int | None = None


class EventLog:
    """One workspace's event stream.

    Appends only ever add a line; earlier lines are never rewritten.
    """

    def __init__(self, workspace_path: str | Path, state_dir: str = DEFAULT_STATE_DIR) -> None:
        self.workspace_path = Path(workspace_path)
        self.path = state_layout(self.workspace_path, state_dir)["events"]

    def append(
        self,
        event_type: str,
        actor: Actor,
        data: dict[str, Any] | None = None,
    ) -> WorkspaceEvent:
        event = WorkspaceEvent(
            id=uuid7(),
            type=event_type,
            timestamp=utc_now_iso(),
            actor=actor,
            data=dict(data or {}),
        )
        append_jsonl(self.path, event.to_dict())
        logger.debug("Event %s appended to %s", event_type, self.path)
        return event

    def read(self, limit: int | None = None) -> list[WorkspaceEvent]:
        events: list[WorkspaceEvent] = []
        for raw in iter_jsonl(self.path):
            try:
                events.append(WorkspaceEvent.from_dict(raw))
            except SchemaError as exc:
                logger.warning("Skipping malformed event in %s: %s", self.path, exc)
        if limit is not None and limit > 0:
            return events[-limit:]
        return events

    def query(self, filters: EventFilters, now: datetime | None = None) -> list[WorkspaceEvent]:
        """Filter in a fixed order: type, actor type, actor id, path, age, limit."""
        events = self.read()

        if filters.event_type:
            events = [e for e in events if e.type == filters.event_type]
        if filters.actor_type:
            events = [e for e in events if e.actor.type == filters.actor_type]
        if filters.actor_id:
            events = [e for e in events if e.actor.id == filters.actor_id]
        if filters.path:
            prefix = filters.path
            events = [
                e for e in events
                if isinstance(e.data.get("path"), str) and e.data["path"].startswith(prefix)
            ]
        if filters.minutes_ago is not None and filters.minutes_ago > 0:
            cutoff = _cutoff(now or parse_iso(utc_now_iso()), filters.minutes_ago)
            events = [e for e in events if _timestamp(e) is not None and _timestamp(e) >= cutoff]
        if filters.limit is not None and filters.limit > 0:
            events = events[-filters.limit:]
        return events

    def summary(self, minutes_ago: float = 60, now: datetime | None = None) -> dict[str, int]:
        recent = self.query(EventFilters(minutes_ago=minutes_ago), now=now)
        return dict(Counter(e.type for e in recent))


def _cutoff(reference: datetime, minutes_ago: float) -> datetime:
    try:
        return reference - timedelta(minutes=minutes_ago)
    except OverflowError:
        return datetime.min.replace(tzinfo=timezone.utc)


def _timestamp(event: WorkspaceEvent) -> datetime | None:
    try:
        return parse_iso(event.timestamp)
    except ValueError:
        return None
