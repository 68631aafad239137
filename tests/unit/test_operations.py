"""Tests for the named operations table."""

from __future__ import annotations

import shutil
from pathlib import Path

import pytest

from attodesk.agent_server.manager import AgentServerManager
from attodesk.config.loader import load_config
from attodesk.errors import InvalidInputError, NotFoundError
from attodesk.operations import OPERATIONS, OperationContext, invoke
from attodesk.store.notes import NoteStore
from attodesk.tasks.specialists import SpecialistRegistry
from attodesk.workspace.manager import WorkspaceManager


@pytest.fixture
def ctx(tmp_path: Path, fake_runner, conversation) -> OperationContext:  # type: ignore[no-untyped-def]
    config = load_config()
    return OperationContext(
        config=config,
        workspaces=WorkspaceManager(tmp_path / "ws", config.workspaces, runner=fake_runner),
        servers=AgentServerManager(config.agent_server),
        specialists=SpecialistRegistry(None, tmp_path / "specialists"),
        conversation=conversation,
    )


@pytest.fixture
def workspace(ctx: OperationContext, git_repo: Path) -> dict:
    return invoke(ctx, "workspace.create", {"repositoryPath": str(git_repo), "title": "Demo"})["workspace"]


def test_operation_names() -> None:
    assert set(OPERATIONS) == {
        "workspace.create", "workspace.archive", "workspace.unarchive", "workspace.destroy",
        "workspace.list", "server.get_or_start", "server.stop", "server.status",
        "task.convert_inline", "task.create_prerequisite", "task.assign_agent", "task.delegate",
        "task.update", "task.update_status", "event.append", "event.query",
        "subscription.create", "subscription.delete", "subscription.list",
    }


def test_unknown_operation(ctx: OperationContext) -> None:
    with pytest.raises(NotFoundError):
        invoke(ctx, "workspace.explode", {})


def test_missing_required_argument(ctx: OperationContext) -> None:
    with pytest.raises(InvalidInputError, match="repositoryPath"):
        invoke(ctx, "workspace.create", {})


def test_workspace_lifecycle(ctx: OperationContext, workspace: dict) -> None:
    assert workspace["title"] == "Demo"
    archived = invoke(ctx, "workspace.archive", {"workspace": workspace["id"]})
    assert archived["status"] == "archived"
    listed = invoke(ctx, "workspace.list", {"status": "active"})
    assert listed["workspaces"] == []
    invoke(ctx, "workspace.unarchive", {"workspace": workspace["path"]})
    assert [w["id"] for w in invoke(ctx, "workspace.list", {})["workspaces"]] == [workspace["id"]]

    result = invoke(ctx, "workspace.destroy", {"workspace": workspace["id"]})
    assert result == {"destroyed": True, "id": workspace["id"]}
    assert invoke(ctx, "workspace.list", {})["workspaces"] == []


def test_destroy_after_worktree_deleted_by_hand(ctx: OperationContext, workspace: dict) -> None:
    shutil.rmtree(workspace["path"])
    result = invoke(ctx, "workspace.destroy", {"workspace": workspace["id"]})
    assert result == {"destroyed": True, "id": workspace["id"]}
    assert not Path(workspace["path"]).parent.exists()
    assert ctx.workspaces.registry.load() == []


def test_server_status_without_server(ctx: OperationContext, workspace: dict) -> None:
    assert invoke(ctx, "server.status", {"workspace": workspace["id"]}) == {"state": "stopped"}


def test_task_operations_record_events(ctx: OperationContext, workspace: dict) -> None:
    path = Path(workspace["path"])
    notes = NoteStore(path)
    plan = notes.create("Plan", "- [ ] wire up\n@@@task\n# Add login\n@@@")
    actor = {"type": "user", "id": "u1"}

    converted = invoke(ctx, "task.convert_inline", {"workspace": workspace["id"], "noteId": plan.id, "actor": actor})
    (task_id,) = converted["createdNoteIds"]

    prereq = invoke(ctx, "task.create_prerequisite", {
        "workspace": workspace["id"], "dependentNoteId": task_id, "title": "Design",
    })
    assert prereq["taskMetadata"]["status"] == "not_started"

    assigned = invoke(ctx, "task.assign_agent", {"workspace": workspace["id"], "noteId": task_id, "agentId": "a7"})
    assert assigned["taskMetadata"]["assignedAgents"] == ["a7"]

    delegated = invoke(ctx, "task.delegate", {
        "workspace": workspace["id"], "taskNoteId": task_id, "instructions": "Be brief.",
    })
    assert delegated["agentId"] == "agent-1"

    line = invoke(ctx, "task.update", {"workspace": workspace["id"], "noteId": plan.id, "lineNumber": 1, "status": "done"})
    assert line["status"] == "done"
    line = invoke(ctx, "task.update_status", {
        "workspace": workspace["id"], "noteId": plan.id, "taskText": "Add login", "status": "in-progress",
    })
    assert line["linkedTaskId"] == task_id

    events = invoke(ctx, "event.query", {"workspace": workspace["id"], "actorId": "u1"})
    assert [e["type"] for e in events["events"]] == ["task:created", "note:updated"]
    all_types = [e["type"] for e in invoke(ctx, "event.query", {"workspace": workspace["id"]})["events"]]
    assert "task:delegated" in all_types
    assert all_types.count("task:updated") == 2


def test_task_update_requires_integer_line(ctx: OperationContext, workspace: dict) -> None:
    with pytest.raises(InvalidInputError):
        invoke(ctx, "task.update", {"workspace": workspace["id"], "noteId": "spec", "lineNumber": "1"})


def test_event_append_and_actor_validation(ctx: OperationContext, workspace: dict) -> None:
    event = invoke(ctx, "event.append", {
        "workspace": workspace["id"], "type": "file:changed",
        "actor": {"type": "agent", "id": "a1"}, "data": {"path": "src/x.py"},
    })
    assert event["actor"] == {"type": "agent", "id": "a1"}
    with pytest.raises(InvalidInputError):
        invoke(ctx, "event.append", {"workspace": workspace["id"], "type": "x:y", "actor": {"type": "robot"}})
    with pytest.raises(InvalidInputError):
        invoke(ctx, "event.append", {"workspace": workspace["id"], "type": "x:y", "data": [1]})


def test_subscription_operations(ctx: OperationContext, workspace: dict) -> None:
    created = invoke(ctx, "subscription.create", {
        "workspace": workspace["id"], "agentId": "a1", "eventTypes": "*", "batchWindow": 200,
    })
    assert len(created["eventTypes"]) == 8
    assert created["batchWindow"] == 200
    listed = invoke(ctx, "subscription.list", {"workspace": workspace["id"], "agentId": "a1"})
    assert [s["id"] for s in listed["subscriptions"]] == [created["id"]]
    invoke(ctx, "subscription.delete", {"workspace": workspace["id"], "subscriptionId": created["id"]})
    assert invoke(ctx, "subscription.list", {"workspace": workspace["id"]})["subscriptions"] == []
    with pytest.raises(InvalidInputError):
        invoke(ctx, "subscription.create", {"workspace": workspace["id"], "agentId": "a1", "eventTypes": ["ci:*"]})


def test_workspace_argument_required(ctx: OperationContext) -> None:
    with pytest.raises(InvalidInputError):
        invoke(ctx, "event.query", {})


def test_from_config_wires_managers(tmp_path: Path) -> None:
    ops = OperationContext.from_config(load_config())
    assert ops.workspaces.root == tmp_path / "home" / "workspaces"
    assert ops.specialists.user_dir == tmp_path / "home" / "specialists"
    assert ops.state_dir == ".workspace"
