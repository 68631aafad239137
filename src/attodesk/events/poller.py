"""Delivers new events to subscriptions.

The poller re-reads the event log on each ``poll`` and hands every
subscription the events it has not seen yet.  Listeners registered with
``subscribe`` receive each :class:`Notification` as it is released.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable

from attodesk.errors import NotFoundError
from attodesk.events.log import EventLog
from attodesk.events.subscriptions import SubscriptionRegistry, matches
from attodesk.protocol.models import Subscription, WorkspaceEvent, parse_iso, utc_now_iso

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Notification:
    subscription: Subscription
    events: list[WorkspaceEvent] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "subscriptionId": self.subscription.id,
            "agentId": self.subscription.agent_id,
            "events": [e.to_dict() for e in self.events],
        }


class NotificationPoller:
    """Per-subscription cursors over one workspace's event log."""

    def __init__(self, log: EventLog, registry: SubscriptionRegistry) -> None:
        self._log = log
        self._registry = registry
        self._cursors: dict[str, str] = {}
        self._listeners: list[Callable[[Notification], Any]] = []

    def subscribe(self, callback: Callable[[Notification], Any]) -> None:
        self._listeners.append(callback)

    def unsubscribe(self, callback: Callable[[Notification], Any]) -> None:
        self._listeners = [cb for cb in self._listeners if cb is not callback]

    def poll(self, now: datetime | None = None) -> list[Notification]:
        reference = now or parse_iso(utc_now_iso())
        events = self._log.read()
        released: list[Notification] = []

        for sub in self._registry.list():
            unseen = self._unseen(sub, events)
            pending = [e for e in unseen if matches(sub, e)]
            if not pending:
                if unseen:
                    self._cursors[sub.id] = unseen[-1].id
                continue
            if sub.batch_window_ms:
                oldest = parse_iso(pending[0].timestamp)
                if reference - oldest < timedelta(milliseconds=sub.batch_window_ms):
                    continue

            self._cursors[sub.id] = unseen[-1].id
            notification = Notification(subscription=sub, events=pending)
            released.append(notification)
            if sub.one_shot:
                self._retire(sub)

        for notification in released:
            self._emit(notification)
        return released

    def _unseen(self, sub: Subscription, events: list[WorkspaceEvent]) -> list[WorkspaceEvent]:
        cursor = self._cursors.get(sub.id)
        if cursor is not None:
            for index, event in enumerate(events):
                if event.id == cursor:
                    return events[index + 1:]
        created = parse_iso(sub.created_at)
        return [e for e in events if parse_iso(e.timestamp) >= created]

    def _retire(self, sub: Subscription) -> None:
        try:
            self._registry.delete(sub.id)
        except NotFoundError:
            logger.debug("One-shot subscription %s already removed", sub.id)
        self._cursors.pop(sub.id, None)

    def _emit(self, notification: Notification) -> None:
        for cb in self._listeners:
            try:
                cb(notification)
            except Exception as exc:
                logger.warning("Notification listener error: %s", exc)
