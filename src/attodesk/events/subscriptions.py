"""Agent subscriptions to workspace events, one JSON file each."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from attodesk.errors import InvalidInputError, NotFoundError, SchemaError
from attodesk.protocol.ids import uuid7
from attodesk.protocol.io import load_json, remove_file, write_json_atomic
from attodesk.protocol.models import (
    DEFAULT_STATE_DIR,
    Subscription,
    WorkspaceEvent,
    parse_iso,
    state_layout,
)

logger = logging.getLogger(__name__)

VALID_CATEGORY_WILDCARDS: tuple[str, ...] = (
    "agent:*",
    "file:*",
    "task:*",
    "git:*",
    "note:*",
    "terminal:*",
    "test:*",
    "build:*",
)
ALL_EVENTS = "*"


def normalize_event_types(event_types: list[str]) -> list[str]:
    """Expand ``*`` into every category wildcard and reject unknown wildcards."""
    if not event_types:
        raise InvalidInputError("At least one event type is required.")
    expanded: list[str] = []
    for item in event_types:
        item = item.strip()
        if not item:
            continue
        if item == ALL_EVENTS:
            expanded.extend(VALID_CATEGORY_WILDCARDS)
        elif item.endswith(":*") and item not in VALID_CATEGORY_WILDCARDS:
            raise InvalidInputError(
                f"Unknown category wildcard {item!r}. Valid: {', '.join(VALID_CATEGORY_WILDCARDS)}"
            )
        else:
            expanded.append(item)
    if not expanded:
        raise InvalidInputError("At least one event type is required.")
    return list(dict.fromkeys(expanded))


def matches(subscription: Subscription, event: WorkspaceEvent) -> bool:
    if subscription.exclude_actor_ids and event.actor.id in subscription.exclude_actor_ids:
        return False
    for pattern in subscription.event_types:
        if pattern == event.type:
            return True
        if pattern.endswith(":*") and pattern[:-2] == event.category:
            return True
    return False


class SubscriptionRegistry:
    def __init__(self, workspace_path: str | Path, state_dir: str = DEFAULT_STATE_DIR) -> None:
        self.workspace_path = Path(workspace_path)
        self.directory = state_layout(self.workspace_path, state_dir)["subscriptions"]

    def _path(self, subscription_id: str) -> Path:
        return self.directory / f"{subscription_id}.json"

    def create(
        self,
        agent_id: str,
        agent_name: str,
        event_types: list[str],
        exclude_actor_ids: list[str] | None = None,
        batch_window_ms: int | None = None,
        one_shot: bool = False,
    ) -> Subscription:
        if batch_window_ms is not None and batch_window_ms < 0:
            raise InvalidInputError("batch_window_ms must be non-negative.")
        subscription = Subscription(
            id=uuid7(),
            agent_id=agent_id,
            agent_name=agent_name,
            event_types=normalize_event_types(event_types),
            exclude_actor_ids=list(exclude_actor_ids) if exclude_actor_ids else None,
            batch_window_ms=batch_window_ms,
            one_shot=one_shot,
        )
        write_json_atomic(self._path(subscription.id), subscription.to_dict())
        logger.info(
            "Subscription %s created for agent %s: %s",
            subscription.id,
            agent_id,
            ", ".join(subscription.event_types),
        )
        return subscription

    def get(self, subscription_id: str) -> Subscription:
        path = self._path(subscription_id)
        if not path.exists():
            raise NotFoundError("subscription", subscription_id)
        return Subscription.from_dict(load_json(path))

    def delete(self, subscription_id: str) -> None:
        if not remove_file(self._path(subscription_id)):
            raise NotFoundError("subscription", subscription_id)

    def list(self) -> list[Subscription]:
        if not self.directory.is_dir():
            return []
        subs: list[Subscription] = []
        for entry in sorted(self.directory.glob("*.json")):
            try:
                subs.append(Subscription.from_dict(load_json(entry)))
            except (OSError, json.JSONDecodeError, SchemaError) as exc:
                logger.warning("Skipping unreadable subscription %s: %s", entry.name, exc)
        subs.sort(key=lambda s: parse_iso(s.created_at))
        return subs

    def for_agent(self, agent_id: str) -> list[Subscription]:
        return [s for s in self.list() if s.agent_id == agent_id]
