"""Persisted document types for attodesk.

Every record serialises to camelCase JSON carrying a ``schemaVersion`` and
parses back through ``from_dict``, which raises :class:`SchemaError` on a
missing or mistyped field so listings can skip the file instead of failing.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Literal

from attodesk.errors import SchemaError

SCHEMA_VERSION = "1.0"

WorkspaceStatus = Literal["active", "archived"]
ActorType = Literal["user", "agent", "system"]
AuthorType = Literal["user", "agent"]
CommentType = Literal["comment", "suggestion", "question", "change-request"]
CommentStatus = Literal["open", "pending", "resolved"]

COMMENT_TYPES = ("comment", "suggestion", "question", "change-request")
COMMENT_STATUSES = ("open", "pending", "resolved")
ACTOR_TYPES = ("user", "agent", "system")


def utc_now_iso() -> str:
    return datetime.now(UTC).isoformat()


def parse_iso(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _req(raw: dict[str, Any], key: str, kind: type | tuple[type, ...], record: str) -> Any:
    if key not in raw:
        raise SchemaError(record, f"missing field '{key}'")
    value = raw[key]
    if not isinstance(value, kind) or (kind is int and isinstance(value, bool)):
        raise SchemaError(record, f"field '{key}' has type {type(value).__name__}")
    return value


def _opt(raw: dict[str, Any], key: str, kind: type | tuple[type, ...], record: str) -> Any:
    if raw.get(key) is None:
        return None
    return _req(raw, key, kind, record)


def _str_list(raw: dict[str, Any], key: str, record: str) -> list[str] | None:
    value = _opt(raw, key, list, record)
    if value is None:
        return None
    if not all(isinstance(item, str) for item in value):
        raise SchemaError(record, f"field '{key}' must be a list of strings")
    return list(value)


def _check_mapping(raw: Any, record: str) -> dict[str, Any]:
    if not isinstance(raw, dict):
        raise SchemaError(record, f"expected an object, got {type(raw).__name__}")
    return raw


def _drop_none(payload: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in payload.items() if v is not None}


# ---------------------------------------------------------------------------
# Workspace
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class Workspace:
    id: str
    title: str
    path: str
    repository_path: str
    repository_name: str
    branch: str
    base_ref: str
    base_commit_sha: str
    status: WorkspaceStatus = "active"
    created_at: str = field(default_factory=utc_now_iso)
    updated_at: str = field(default_factory=utc_now_iso)
    worktree_path: str = ""
    repository_owner: str | None = None
    tags: list[str] = field(default_factory=list)
    archived_at: str | None = None

    @property
    def container_dir(self) -> Path:
        """The ``<root>/<id>`` directory that holds the worktree."""
        return Path(self.path).parent

    def to_dict(self) -> dict[str, Any]:
        return _drop_none(
            {
                "schemaVersion": SCHEMA_VERSION,
                "id": self.id,
                "title": self.title,
                "path": self.path,
                "repositoryPath": self.repository_path,
                "repositoryName": self.repository_name,
                "repositoryOwner": self.repository_owner,
                "branch": self.branch,
                "baseRef": self.base_ref,
                "baseCommitSha": self.base_commit_sha,
                "status": self.status,
                "createdAt": self.created_at,
                "updatedAt": self.updated_at,
                "worktreePath": self.worktree_path or self.path,
                "tags": list(self.tags),
                "archivedAt": self.archived_at,
            }
        )

    @classmethod
    def from_dict(cls, raw: Any) -> Workspace:
        rec = "workspace"
        raw = _check_mapping(raw, rec)
        status = _req(raw, "status", str, rec)
        if status not in ("active", "archived"):
            raise SchemaError(rec, f"unknown status {status!r}")
        path = _req(raw, "path", str, rec)
        return cls(
            id=_req(raw, "id", str, rec),
            title=_req(raw, "title", str, rec),
            path=path,
            repository_path=_req(raw, "repositoryPath", str, rec),
            repository_name=_opt(raw, "repositoryName", str, rec) or Path(path).name,
            branch=_req(raw, "branch", str, rec),
            base_ref=_req(raw, "baseRef", str, rec),
            base_commit_sha=_req(raw, "baseCommitSha", str, rec),
            status=status,
            created_at=_req(raw, "createdAt", str, rec),
            updated_at=_req(raw, "updatedAt", str, rec),
            worktree_path=_opt(raw, "worktreePath", str, rec) or path,
            repository_owner=_opt(raw, "repositoryOwner", str, rec),
            tags=_str_list(raw, "tags", rec) or [],
            archived_at=_opt(raw, "archivedAt", str, rec),
        )


# ---------------------------------------------------------------------------
# Agent server
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class AgentServerInfo:
    pid: int
    port: int
    url: str
    started_at: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> dict[str, Any]:
        return {
            "schemaVersion": SCHEMA_VERSION,
            "pid": self.pid,
            "port": self.port,
            "url": self.url,
            "startedAt": self.started_at,
        }

    @classmethod
    def from_dict(cls, raw: Any) -> AgentServerInfo:
        rec = "server info"
        raw = _check_mapping(raw, rec)
        return cls(
            pid=_req(raw, "pid", int, rec),
            port=_req(raw, "port", int, rec),
            url=_req(raw, "url", str, rec),
            started_at=_opt(raw, "startedAt", str, rec) or utc_now_iso(),
        )


# ---------------------------------------------------------------------------
# Notes and tasks
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class TaskDependency:
    prerequisite_note_id: str
    status: str = "pending"

    def to_dict(self) -> dict[str, Any]:
        return {"prerequisiteNoteId": self.prerequisite_note_id, "status": self.status}

    @classmethod
    def from_dict(cls, raw: Any) -> TaskDependency:
        rec = "task dependency"
        raw = _check_mapping(raw, rec)
        return cls(
            prerequisite_note_id=_req(raw, "prerequisiteNoteId", str, rec),
            status=_req(raw, "status", str, rec),
        )


@dataclass(slots=True)
class TaskMetadata:
    status: str = "not_started"
    acceptance_criteria: list[str] | None = None
    assigned_agents: list[str] | None = None
    dependencies: list[TaskDependency] | None = None

    def to_dict(self) -> dict[str, Any]:
        return _drop_none(
            {
                "status": self.status,
                "acceptanceCriteria": self.acceptance_criteria,
                "assignedAgents": self.assigned_agents,
                "dependencies": (
                    [d.to_dict() for d in self.dependencies] if self.dependencies is not None else None
                ),
            }
        )

    @classmethod
    def from_dict(cls, raw: Any) -> TaskMetadata:
        rec = "task metadata"
        raw = _check_mapping(raw, rec)
        deps_raw = _opt(raw, "dependencies", list, rec)
        return cls(
            status=_req(raw, "status", str, rec),
            acceptance_criteria=_str_list(raw, "acceptanceCriteria", rec),
            assigned_agents=_str_list(raw, "assignedAgents", rec),
            dependencies=(
                [TaskDependency.from_dict(d) for d in deps_raw] if deps_raw is not None else None
            ),
        )


@dataclass(slots=True)
class Note:
    id: str
    title: str
    content: str = ""
    tags: list[str] = field(default_factory=list)
    created_at: str = field(default_factory=utc_now_iso)
    updated_at: str = field(default_factory=utc_now_iso)
    task_metadata: TaskMetadata | None = None

    @property
    def is_task(self) -> bool:
        return self.task_metadata is not None

    def touch(self) -> None:
        self.updated_at = utc_now_iso()

    def to_dict(self) -> dict[str, Any]:
        return _drop_none(
            {
                "schemaVersion": SCHEMA_VERSION,
                "id": self.id,
                "title": self.title,
                "content": self.content,
                "tags": list(self.tags),
                "createdAt": self.created_at,
                "updatedAt": self.updated_at,
                "taskMetadata": self.task_metadata.to_dict() if self.task_metadata else None,
            }
        )

    @classmethod
    def from_dict(cls, raw: Any) -> Note:
        rec = "note"
        raw = _check_mapping(raw, rec)
        meta_raw = _opt(raw, "taskMetadata", dict, rec)
        return cls(
            id=_req(raw, "id", str, rec),
            title=_req(raw, "title", str, rec),
            content=_req(raw, "content", str, rec),
            tags=_str_list(raw, "tags", rec) or [],
            created_at=_req(raw, "createdAt", str, rec),
            updated_at=_req(raw, "updatedAt", str, rec),
            task_metadata=TaskMetadata.from_dict(meta_raw) if meta_raw is not None else None,
        )


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class Comment:
    id: str
    note_id: str
    content: str
    author: str
    author_type: AuthorType
    type: CommentType
    status: CommentStatus
    thread_id: str
    parent_id: str | None = None
    section: str | None = None
    created_at: str = field(default_factory=utc_now_iso)
    updated_at: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> dict[str, Any]:
        return _drop_none(
            {
                "id": self.id,
                "noteId": self.note_id,
                "content": self.content,
                "author": self.author,
                "authorType": self.author_type,
                "type": self.type,
                "status": self.status,
                "threadId": self.thread_id,
                "parentId": self.parent_id,
                "section": self.section,
                "createdAt": self.created_at,
                "updatedAt": self.updated_at,
            }
        )

    @classmethod
    def from_dict(cls, raw: Any) -> Comment:
        rec = "comment"
        raw = _check_mapping(raw, rec)
        author_type = _req(raw, "authorType", str, rec)
        ctype = _req(raw, "type", str, rec)
        status = _req(raw, "status", str, rec)
        if author_type not in ("user", "agent"):
            raise SchemaError(rec, f"unknown authorType {author_type!r}")
        if ctype not in COMMENT_TYPES:
            raise SchemaError(rec, f"unknown type {ctype!r}")
        if status not in COMMENT_STATUSES:
            raise SchemaError(rec, f"unknown status {status!r}")
        return cls(
            id=_req(raw, "id", str, rec),
            note_id=_req(raw, "noteId", str, rec),
            content=_req(raw, "content", str, rec),
            author=_req(raw, "author", str, rec),
            author_type=author_type,
            type=ctype,
            status=status,
            thread_id=_req(raw, "threadId", str, rec),
            parent_id=_opt(raw, "parentId", str, rec),
            section=_opt(raw, "section", str, rec),
            created_at=_req(raw, "createdAt", str, rec),
            updated_at=_req(raw, "updatedAt", str, rec),
        )


# ---------------------------------------------------------------------------
# Events and subscriptions
# ---------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class Actor:
    type: ActorType
    id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return _drop_none({"type": self.type, "id": self.id})

    @classmethod
    def from_dict(cls, raw: Any) -> Actor:
        rec = "actor"
        raw = _check_mapping(raw, rec)
        kind = _req(raw, "type", str, rec)
        if kind not in ACTOR_TYPES:
            raise SchemaError(rec, f"unknown actor type {kind!r}")
        return cls(type=kind, id=_opt(raw, "id", str, rec))


SYSTEM_ACTOR = Actor(type="system")


@dataclass(slots=True, frozen=True)
class WorkspaceEvent:
    id: str
    type: str
    timestamp: str
    actor: Actor
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def category(self) -> str:
        return self.type.split(":", 1)[0]

    def to_dict(self) -> dict[str, Any]:
        return {
            "schemaVersion": SCHEMA_VERSION,
            "id": self.id,
            "type": self.type,
            "timestamp": self.timestamp,
            "actor": self.actor.to_dict(),
            "data": dict(self.data),
        }

    @classmethod
    def from_dict(cls, raw: Any) -> WorkspaceEvent:
        rec = "event"
        raw = _check_mapping(raw, rec)
        return cls(
            id=_req(raw, "id", str, rec),
            type=_req(raw, "type", str, rec),
            timestamp=_req(raw, "timestamp", str, rec),
            actor=Actor.from_dict(_req(raw, "actor", dict, rec)),
            data=_opt(raw, "data", dict, rec) or {},
        )


@dataclass(slots=True)
class Subscription:
    id: str
    agent_id: str
    agent_name: str
    event_types: list[str]
    exclude_actor_ids: list[str] | None = None
    batch_window_ms: int | None = None
    one_shot: bool = False
    created_at: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> dict[str, Any]:
        return _drop_none(
            {
                "schemaVersion": SCHEMA_VERSION,
                "id": self.id,
                "agentId": self.agent_id,
                "agentName": self.agent_name,
                "eventTypes": list(self.event_types),
                "excludeActorIds": self.exclude_actor_ids,
                "batchWindow": self.batch_window_ms,
                "oneShot": self.one_shot,
                "createdAt": self.created_at,
            }
        )

    @classmethod
    def from_dict(cls, raw: Any) -> Subscription:
        rec = "subscription"
        raw = _check_mapping(raw, rec)
        event_types = _str_list(raw, "eventTypes", rec)
        if event_types is None:
            raise SchemaError(rec, "missing field 'eventTypes'")
        return cls(
            id=_req(raw, "id", str, rec),
            agent_id=_req(raw, "agentId", str, rec),
            agent_name=_opt(raw, "agentName", str, rec) or "",
            event_types=event_types,
            exclude_actor_ids=_str_list(raw, "excludeActorIds", rec),
            batch_window_ms=_opt(raw, "batchWindow", int, rec),
            one_shot=bool(_opt(raw, "oneShot", bool, rec)),
            created_at=_req(raw, "createdAt", str, rec),
        )


# ---------------------------------------------------------------------------
# Layout
# ---------------------------------------------------------------------------

DEFAULT_STATE_DIR = ".workspace"


def state_layout(workspace_path: str | Path, state_dir: str = DEFAULT_STATE_DIR) -> dict[str, Path]:
    root = Path(workspace_path) / state_dir
    return {
        "root": root,
        "notes": root / "notes",
        "comments": root / "comments",
        "subscriptions": root / "subscriptions",
        "logs": root / "logs",
        "events": root / "events.jsonl",
        "server": root / "server.json",
        "server_config": root / "agent-server" / "config",
        "metadata": root / "metadata.json",
    }
