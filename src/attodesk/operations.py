"""Named operations with JSON-compatible input and output.

Each operation takes the shared :class:`OperationContext` plus a plain
``dict`` of arguments and returns a plain ``dict``.  Workspace-scoped
operations accept ``workspace`` as either an id or a path.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

from attodesk.adapters.agents import AgentConversation
from attodesk.agent_server.manager import AgentServerManager
from attodesk.config.loader import load_config, workspaces_root
from attodesk.config.schema import DeskConfig
from attodesk.errors import InvalidInputError, NotFoundError
from attodesk.events.log import EventFilters, EventLog
from attodesk.events.subscriptions import SubscriptionRegistry
from attodesk.protocol.models import ACTOR_TYPES, SYSTEM_ACTOR, Actor
from attodesk.store.notes import NoteStore
from attodesk.tasks.graph import TaskGraph
from attodesk.tasks.specialists import SpecialistRegistry
from attodesk.workspace.manager import WorkspaceManager

logger = logging.getLogger(__name__)

Operation = Callable[["OperationContext", dict[str, Any]], dict[str, Any]]


@dataclass
class OperationContext:
    config: DeskConfig
    workspaces: WorkspaceManager
    servers: AgentServerManager
    specialists: SpecialistRegistry
    conversation: AgentConversation | None = None
    record_events: bool = True
    _graphs: dict[str, TaskGraph] = field(default_factory=dict, repr=False)

    @classmethod
    def from_config(
        cls,
        config: DeskConfig | None = None,
        *,
        conversation: AgentConversation | None = None,
    ) -> OperationContext:
        config = config or load_config()
        return cls(
            config=config,
            workspaces=WorkspaceManager(workspaces_root(config), config.workspaces),
            servers=AgentServerManager(
                config.agent_server,
                state_dir=config.workspaces.state_dir,
                record_events=True,
            ),
            specialists=SpecialistRegistry(
                config.specialists.builtin_dir or None,
                config.specialists.user_dir or None,
            ),
            conversation=conversation,
        )

    @property
    def state_dir(self) -> str:
        return self.config.workspaces.state_dir

    def workspace_path(self, ref: Any) -> Path:
        if not ref:
            raise InvalidInputError("'workspace' is required.")
        return Path(self.workspaces.resolve(str(ref)).path)

    def event_log(self, path: Path) -> EventLog:
        return EventLog(path, self.state_dir)

    def task_graph(self, path: Path) -> TaskGraph:
        key = str(path)
        graph = self._graphs.get(key)
        if graph is None:
            graph = TaskGraph(
                NoteStore(path, self.state_dir),
                events=self.event_log(path) if self.record_events else None,
                conversation=self.conversation,
                specialists=self.specialists,
            )
            self._graphs[key] = graph
        return graph


def _require(args: dict[str, Any], key: str) -> Any:
    value = args.get(key)
    if value is None or value == "":
        raise InvalidInputError(f"'{key}' is required.")
    return value


def _actor(args: dict[str, Any]) -> Actor:
    raw = args.get("actor")
    if raw is None:
        return SYSTEM_ACTOR
    if not isinstance(raw, dict) or raw.get("type") not in ACTOR_TYPES:
        raise InvalidInputError(f"'actor' must be an object with type in {', '.join(ACTOR_TYPES)}.")
    return Actor(type=raw["type"], id=raw.get("id"))


# ---------------------------------------------------------------------------
# Workspaces
# ---------------------------------------------------------------------------


def workspace_create(ctx: OperationContext, args: dict[str, Any]) -> dict[str, Any]:
    result = ctx.workspaces.create(
        _require(args, "repositoryPath"),
        title=args.get("title"),
        base_ref=args.get("baseRef"),
        setup_command=args.get("setupCommand"),
        branch=args.get("branch"),
    )
    return result.to_dict()


def workspace_archive(ctx: OperationContext, args: dict[str, Any]) -> dict[str, Any]:
    return ctx.workspaces.archive(str(_require(args, "workspace"))).to_dict()


def workspace_unarchive(ctx: OperationContext, args: dict[str, Any]) -> dict[str, Any]:
    return ctx.workspaces.unarchive(str(_require(args, "workspace"))).to_dict()


def workspace_destroy(ctx: OperationContext, args: dict[str, Any]) -> dict[str, Any]:
    entry = ctx.workspaces.locate(str(_require(args, "workspace")))
    if ctx.servers.check_status(entry.path).state == "running":
        ctx.servers.stop_server(entry.path)
    ctx.workspaces.destroy(entry, force=bool(args.get("force", True)))
    return {"destroyed": True, "id": entry.id}


def workspace_list(ctx: OperationContext, args: dict[str, Any]) -> dict[str, Any]:
    status = args.get("status")
    items = [w for w in ctx.workspaces.list() if status is None or w.status == status]
    return {"workspaces": [w.to_dict() for w in items]}


# ---------------------------------------------------------------------------
# Agent servers
# ---------------------------------------------------------------------------


def server_get_or_start(ctx: OperationContext, args: dict[str, Any]) -> dict[str, Any]:
    path = ctx.workspace_path(args.get("workspace"))
    return ctx.servers.get_or_start(path).to_dict()


def server_stop(ctx: OperationContext, args: dict[str, Any]) -> dict[str, Any]:
    path = ctx.workspace_path(args.get("workspace"))
    ctx.servers.stop_server(path)
    return {"stopped": True}


def server_status(ctx: OperationContext, args: dict[str, Any]) -> dict[str, Any]:
    path = ctx.workspace_path(args.get("workspace"))
    return ctx.servers.check_status(path).to_dict()


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------


def task_convert_inline(ctx: OperationContext, args: dict[str, Any]) -> dict[str, Any]:
    graph = ctx.task_graph(ctx.workspace_path(args.get("workspace")))
    return graph.convert_inline_tasks(_require(args, "noteId"), actor=_actor(args)).to_dict()


def task_create_prerequisite(ctx: OperationContext, args: dict[str, Any]) -> dict[str, Any]:
    graph = ctx.task_graph(ctx.workspace_path(args.get("workspace")))
    note = graph.create_prerequisite(
        _require(args, "dependentNoteId"),
        _require(args, "title"),
        content=args.get("content") or "",
        status=args.get("status") or "not_started",
        actor=_actor(args),
    )
    return note.to_dict()


def task_assign_agent(ctx: OperationContext, args: dict[str, Any]) -> dict[str, Any]:
    graph = ctx.task_graph(ctx.workspace_path(args.get("workspace")))
    note = graph.assign_agent(_require(args, "noteId"), _require(args, "agentId"), actor=_actor(args))
    return note.to_dict()


def task_delegate(ctx: OperationContext, args: dict[str, Any]) -> dict[str, Any]:
    graph = ctx.task_graph(ctx.workspace_path(args.get("workspace")))
    result = graph.delegate(
        _require(args, "taskNoteId"),
        specialist_id=args.get("specialistId"),
        instructions=args.get("instructions"),
        actor=_actor(args),
    )
    return result.to_dict()


def task_update(ctx: OperationContext, args: dict[str, Any]) -> dict[str, Any]:
    graph = ctx.task_graph(ctx.workspace_path(args.get("workspace")))
    line_number = _require(args, "lineNumber")
    if not isinstance(line_number, int):
        raise InvalidInputError("'lineNumber' must be an integer.")
    line = graph.update_task(
        _require(args, "noteId"),
        line_number,
        new_text=args.get("text"),
        status=args.get("status"),
        actor=_actor(args),
    )
    return line.to_dict()


def task_update_status(ctx: OperationContext, args: dict[str, Any]) -> dict[str, Any]:
    graph = ctx.task_graph(ctx.workspace_path(args.get("workspace")))
    line = graph.update_task_status(
        _require(args, "noteId"),
        _require(args, "taskText"),
        _require(args, "status"),
        actor=_actor(args),
    )
    return line.to_dict()


# ---------------------------------------------------------------------------
# Events and subscriptions
# ---------------------------------------------------------------------------


def event_append(ctx: OperationContext, args: dict[str, Any]) -> dict[str, Any]:
    log = ctx.event_log(ctx.workspace_path(args.get("workspace")))
    data = args.get("data") or {}
    if not isinstance(data, dict):
        raise InvalidInputError("'data' must be an object.")
    return log.append(_require(args, "type"), _actor(args), data).to_dict()


def event_query(ctx: OperationContext, args: dict[str, Any]) -> dict[str, Any]:
    log = ctx.event_log(ctx.workspace_path(args.get("workspace")))
    filters = EventFilters(
        event_type=args.get("eventType"),
        actor_type=args.get("actorType"),
        actor_id=args.get("actorId"),
        path=args.get("path"),
        minutes_ago=args.get("minutesAgo"),
        limit=args.get("limit"),
    )
    events = log.query(filters)
    return {"events": [e.to_dict() for e in events], "count": len(events)}


def subscription_create(ctx: OperationContext, args: dict[str, Any]) -> dict[str, Any]:
    registry = SubscriptionRegistry(ctx.workspace_path(args.get("workspace")), ctx.state_dir)
    event_types = _require(args, "eventTypes")
    if isinstance(event_types, str):
        event_types = [event_types]
    sub = registry.create(
        _require(args, "agentId"),
        args.get("agentName") or "",
        list(event_types),
        exclude_actor_ids=args.get("excludeActorIds"),
        batch_window_ms=args.get("batchWindow"),
        one_shot=bool(args.get("oneShot", False)),
    )
    return sub.to_dict()


def subscription_delete(ctx: OperationContext, args: dict[str, Any]) -> dict[str, Any]:
    registry = SubscriptionRegistry(ctx.workspace_path(args.get("workspace")), ctx.state_dir)
    subscription_id = _require(args, "subscriptionId")
    registry.delete(subscription_id)
    return {"deleted": True, "subscriptionId": subscription_id}


def subscription_list(ctx: OperationContext, args: dict[str, Any]) -> dict[str, Any]:
    registry = SubscriptionRegistry(ctx.workspace_path(args.get("workspace")), ctx.state_dir)
    agent_id = args.get("agentId")
    subs = registry.for_agent(agent_id) if agent_id else registry.list()
    return {"subscriptions": [s.to_dict() for s in subs]}


OPERATIONS: dict[str, Operation] = {
    "workspace.create": workspace_create,
    "workspace.archive": workspace_archive,
    "workspace.unarchive": workspace_unarchive,
    "workspace.destroy": workspace_destroy,
    "workspace.list": workspace_list,
    "server.get_or_start": server_get_or_start,
    "server.stop": server_stop,
    "server.status": server_status,
    "task.convert_inline": task_convert_inline,
    "task.create_prerequisite": task_create_prerequisite,
    "task.assign_agent": task_assign_agent,
    "task.delegate": task_delegate,
    "task.update": task_update,
    "task.update_status": task_update_status,
    "event.append": event_append,
    "event.query": event_query,
    "subscription.create": subscription_create,
    "subscription.delete": subscription_delete,
    "subscription.list": subscription_list,
}


def invoke(ctx: OperationContext, name: str, args: dict[str, Any] | None = None) -> dict[str, Any]:
    operation = OPERATIONS.get(name)
    if operation is None:
        raise NotFoundError("operation", name)
    logger.debug("Invoking %s", name)
    return operation(ctx, dict(args or {}))
