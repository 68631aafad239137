"""Workspace event log, subscriptions and notification delivery."""

from attodesk.events.log import EventFilters, EventLog
from attodesk.events.poller import Notification, NotificationPoller
from attodesk.events.subscriptions import (
    VALID_CATEGORY_WILDCARDS,
    SubscriptionRegistry,
    matches,
    normalize_event_types,
)

__all__ = [
    "EventFilters",
    "EventLog",
    "Notification",
    "NotificationPoller",
    "SubscriptionRegistry",
    "VALID_CATEGORY_WILDCARDS",
    "matches",
    "normalize_event_types",
]
