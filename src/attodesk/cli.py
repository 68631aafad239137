"""CLI entrypoint for attodesk."""

from __future__ import annotations

import json
import time
from pathlib import Path
from typing import Any

import click

from attodesk.config.loader import load_config
from attodesk.errors import DeskError
from attodesk.logger import get_logger, setup_logging
from attodesk.operations import OPERATIONS, OperationContext, invoke

log = get_logger("attodesk.cli")


def _context(ctx: click.Context) -> OperationContext:
    obj = ctx.ensure_object(dict)
    if "ops" not in obj:
        obj["ops"] = OperationContext.from_config(load_config(obj.get("config_path")))
    return obj["ops"]


def _echo_json(payload: Any) -> None:
    click.echo(json.dumps(payload, indent=2))


def _run(ctx: click.Context, name: str, args: dict[str, Any]) -> dict[str, Any]:
    try:
        return invoke(_context(ctx), name, args)
    except DeskError as exc:
        log.debug("operation_failed", operation=name, category=str(exc.category), details=exc.details)
        click.echo(f"Error: {exc}", err=True)
        raise SystemExit(1) from exc


def _drop_none(args: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in args.items() if v is not None}


@click.group()
@click.option("--config", "config_path", type=click.Path(dir_okay=False, path_type=Path), default=None,
              help="Config file (default: $ATTODESK_HOME/config.yaml)")
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--json-logs", is_flag=True, help="Emit logs as JSON")
@click.pass_context
def main(ctx: click.Context, config_path: Path | None, debug: bool, json_logs: bool) -> None:
    """Attodesk workspace, agent server and task orchestration."""
    setup_logging(debug=debug, json_output=json_logs)
    ctx.ensure_object(dict)["config_path"] = config_path


# ---------------------------------------------------------------------------
# workspace
# ---------------------------------------------------------------------------


@main.group("workspace")
def workspace_group() -> None:
    """Create, list, archive and destroy workspaces."""


@workspace_group.command("create")
@click.argument("repository", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.option("--title", default=None, help="Display title (defaults to the workspace id)")
@click.option("--base-ref", default=None, help="Ref to branch from")
@click.option("--branch", default=None, help="Branch name override")
@click.option("--setup", "setup_command", default=None, help="Shell command to run in the new worktree")
@click.pass_context
def workspace_create(
    ctx: click.Context,
    repository: Path,
    title: str | None,
    base_ref: str | None,
    branch: str | None,
    setup_command: str | None,
) -> None:
    """Create a workspace from REPOSITORY."""
    result = _run(ctx, "workspace.create", _drop_none({
        "repositoryPath": str(repository),
        "title": title,
        "baseRef": base_ref,
        "branch": branch,
        "setupCommand": setup_command,
    }))
    ws = result["workspace"]
    click.echo(f"Created workspace {ws['id']} at {ws['path']} (branch {ws['branch']})")
    if "setupError" in result:
        click.echo(f"Setup command failed:\n{result['setupError']}", err=True)


@workspace_group.command("list")
@click.option("--status", type=click.Choice(["active", "archived"]), default=None)
@click.option("--json", "as_json", is_flag=True, help="Print raw JSON")
@click.pass_context
def workspace_list(ctx: click.Context, status: str | None, as_json: bool) -> None:
    """List known workspaces."""
    result = _run(ctx, "workspace.list", _drop_none({"status": status}))
    if as_json:
        _echo_json(result)
        return
    if not result["workspaces"]:
        click.echo("No workspaces.")
        return
    for ws in result["workspaces"]:
        click.echo(f"{ws['id']:<24} {ws['status']:<9} {ws['title']}  {ws['path']}")


@workspace_group.command("archive")
@click.argument("workspace")
@click.pass_context
def workspace_archive(ctx: click.Context, workspace: str) -> None:
    """Archive WORKSPACE (id or path)."""
    result = _run(ctx, "workspace.archive", {"workspace": workspace})
    click.echo(f"Archived {result['id']}")


@workspace_group.command("unarchive")
@click.argument("workspace")
@click.pass_context
def workspace_unarchive(ctx: click.Context, workspace: str) -> None:
    """Reactivate an archived WORKSPACE."""
    result = _run(ctx, "workspace.unarchive", {"workspace": workspace})
    click.echo(f"Unarchived {result['id']}")


@workspace_group.command("destroy")
@click.argument("workspace")
@click.option("--force/--no-force", default=True, help="Discard uncommitted changes")
@click.option("--yes", is_flag=True, help="Skip confirmation")
@click.pass_context
def workspace_destroy(ctx: click.Context, workspace: str, force: bool, yes: bool) -> None:
    """Remove WORKSPACE's worktree and directory."""
    if not yes:
        click.confirm(f"Destroy workspace {workspace}?", abort=True)
    result = _run(ctx, "workspace.destroy", {"workspace": workspace, "force": force})
    click.echo(f"Destroyed {result['id']}")


# ---------------------------------------------------------------------------
# server
# ---------------------------------------------------------------------------


@main.group("server")
def server_group() -> None:
    """Manage the per-workspace agent server."""


@server_group.command("start")
@click.argument("workspace")
@click.option("--wait", is_flag=True, help="Stay in the foreground and stop the server on Ctrl-C")
@click.pass_context
def server_start(ctx: click.Context, workspace: str, wait: bool) -> None:
    """Ensure an agent server is running for WORKSPACE."""
    info = _run(ctx, "server.get_or_start", {"workspace": workspace})
    click.echo(f"Agent server pid {info['pid']} at {info['url']}")
    if not wait:
        return
    ops = _context(ctx)
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        click.echo("Stopping agent server...")
    finally:
        ops.servers.stop_all()


@server_group.command("stop")
@click.argument("workspace")
@click.pass_context
def server_stop(ctx: click.Context, workspace: str) -> None:
    """Stop WORKSPACE's agent server."""
    _run(ctx, "server.stop", {"workspace": workspace})
    click.echo("Stopped")


@server_group.command("status")
@click.argument("workspace")
@click.pass_context
def server_status(ctx: click.Context, workspace: str) -> None:
    """Show whether WORKSPACE's agent server is alive."""
    status = _run(ctx, "server.status", {"workspace": workspace})
    info = status.get("info")
    if info:
        click.echo(f"{status['state']} pid={info['pid']} url={info['url']}")
    else:
        click.echo(status["state"])


# ---------------------------------------------------------------------------
# task
# ---------------------------------------------------------------------------


@main.group("task")
def task_group() -> None:
    """Inline task conversion and checkbox listing."""


@task_group.command("convert")
@click.argument("workspace")
@click.argument("note_id")
@click.pass_context
def task_convert(ctx: click.Context, workspace: str, note_id: str) -> None:
    """Turn @@@task blocks in NOTE_ID into linked task notes."""
    result = _run(ctx, "task.convert_inline", {"workspace": workspace, "noteId": note_id})
    click.echo(f"Converted {result['convertedCount']} task block(s)")
    for created in result["createdNoteIds"]:
        click.echo(f"  {created}")


@task_group.command("list")
@click.argument("workspace")
@click.argument("note_id")
@click.pass_context
def task_list(ctx: click.Context, workspace: str, note_id: str) -> None:
    """List checkbox tasks in NOTE_ID."""
    ops = _context(ctx)
    try:
        lines = ops.task_graph(ops.workspace_path(workspace)).list_tasks(note_id)
    except DeskError as exc:
        click.echo(f"Error: {exc}", err=True)
        raise SystemExit(1) from exc
    if not lines:
        click.echo("No tasks.")
        return
    for line in lines:
        click.echo(f"{line.line_number:>4}  [{line.status}] {line.text}")


# ---------------------------------------------------------------------------
# events
# ---------------------------------------------------------------------------


@main.group("events")
def events_group() -> None:
    """Read the workspace event log."""


@events_group.command("tail")
@click.argument("workspace")
@click.option("--limit", default=20, show_default=True, help="How many recent events to show")
@click.pass_context
def events_tail(ctx: click.Context, workspace: str, limit: int) -> None:
    """Print the most recent events of WORKSPACE, one JSON line each."""
    result = _run(ctx, "event.query", {"workspace": workspace, "limit": max(limit, 1)})
    for event in result["events"]:
        click.echo(json.dumps(event))


@events_group.command("query")
@click.argument("workspace")
@click.option("--type", "event_type", default=None, help="Exact event type")
@click.option("--actor-type", type=click.Choice(["user", "agent", "system"]), default=None)
@click.option("--actor-id", default=None)
@click.option("--path", default=None, help="Prefix match on data.path")
@click.option("--minutes", "minutes_ago", type=float, default=None, help="Only events this recent")
@click.option("--limit", type=int, default=None)
@click.pass_context
def events_query(
    ctx: click.Context,
    workspace: str,
    event_type: str | None,
    actor_type: str | None,
    actor_id: str | None,
    path: str | None,
    minutes_ago: float | None,
    limit: int | None,
) -> None:
    """Filter WORKSPACE's events."""
    result = _run(ctx, "event.query", _drop_none({
        "workspace": workspace,
        "eventType": event_type,
        "actorType": actor_type,
        "actorId": actor_id,
        "path": path,
        "minutesAgo": minutes_ago,
        "limit": limit,
    }))
    _echo_json(result)


# ---------------------------------------------------------------------------
# call
# ---------------------------------------------------------------------------


@main.command("call")
@click.argument("operation", type=click.Choice(sorted(OPERATIONS)))
@click.option("--args", "raw_args", default="{}", help="JSON object of operation arguments")
@click.pass_context
def call_command(ctx: click.Context, operation: str, raw_args: str) -> None:
    """Invoke a named OPERATION and print its JSON result."""
    try:
        args = json.loads(raw_args)
    except json.JSONDecodeError as exc:
        raise click.BadParameter(f"not valid JSON: {exc}", param_hint="--args") from exc
    if not isinstance(args, dict):
        raise click.BadParameter("must be a JSON object", param_hint="--args")
    _echo_json(_run(ctx, operation, args))


if __name__ == "__main__":
    main()
