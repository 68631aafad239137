"""Workspace lifecycle: create, archive, unarchive, destroy and list.

A workspace is a git worktree at ``<root>/<id>/<repo-name>`` on its own
branch, plus a ``.workspace`` state directory whose ``metadata.json`` marks
the directory as a workspace.
"""

from __future__ import annotations

import json
import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from attodesk.adapters.git import GitAdapter, parse_remote_url
from attodesk.adapters.process import ProcessResult, ProcessRunner, SubprocessRunner
from attodesk.config.schema import WorkspacesConfig
from attodesk.errors import InvalidInputError, NotFoundError, SchemaError
from attodesk.protocol.io import load_json, write_json_atomic
from attodesk.protocol.models import Workspace, state_layout, utc_now_iso
from attodesk.store.notes import NoteStore
from attodesk.workspace.naming import generate_workspace_id
from attodesk.workspace.registry import RegistryEntry, WorkspaceRegistry
from attodesk.workspace.worktree import create_worktree, remove_worktree, resolve_base_commit

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class WorkspaceCreateResult:
    workspace: Workspace
    setup: ProcessResult | None = None

    @property
    def setup_output(self) -> str | None:
        if self.setup is None or not self.setup.ok:
            return None
        return self.setup.output

    @property
    def setup_error(self) -> str | None:
        if self.setup is None or self.setup.ok:
            return None
        return self.setup.output or f"setup exited with code {self.setup.exit_code}"

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"workspace": self.workspace.to_dict()}
        if self.setup_output is not None:
            payload["setupOutput"] = self.setup_output
        if self.setup_error is not None:
            payload["setupError"] = self.setup_error
        return payload


class WorkspaceManager:
    def __init__(
        self,
        root: str | Path,
        config: WorkspacesConfig | None = None,
        *,
        git: GitAdapter | None = None,
        runner: ProcessRunner | None = None,
    ) -> None:
        self.root = Path(root).expanduser()
        self.config = config or WorkspacesConfig()
        self.git = git or GitAdapter()
        self.runner = runner or SubprocessRunner()
        self.registry = WorkspaceRegistry(self.root)

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create(
        self,
        repository_path: str | Path,
        title: str | None = None,
        base_ref: str | None = None,
        setup_command: str | None = None,
        branch: str | None = None,
    ) -> WorkspaceCreateResult:
        repo = Path(repository_path).expanduser().resolve()
        if not repo.is_dir():
            raise NotFoundError("repository", str(repo))

        known = {ws.id for ws in self.list()}
        known.update(p.name for p in self._container_dirs())
        workspace_id = generate_workspace_id(known)

        repo_name = repo.name
        path = self.root / workspace_id / repo_name
        ref = base_ref or self.config.default_base_ref
        branch_name = branch or f"{self.config.branch_prefix}{workspace_id}"

        base_sha = resolve_base_commit(self.git, repo, ref)
        create_worktree(self.git, repo, path, branch_name, ref)

        layout = state_layout(path, self.config.state_dir)
        layout["logs"].mkdir(parents=True, exist_ok=True)
        # Keep workspace state out of the worktree's git status.
        (layout["root"] / ".gitignore").write_text("*\n", encoding="utf-8")
        NoteStore(path, self.config.state_dir).get_or_create_spec()

        owner: str | None = None
        remote = self.git.remote_url(repo)
        if remote:
            owner, remote_name = parse_remote_url(remote)
            repo_name = remote_name or repo_name

        workspace = Workspace(
            id=workspace_id,
            title=(title or "").strip() or workspace_id,
            path=str(path),
            repository_path=str(repo),
            repository_name=repo_name,
            repository_owner=owner,
            branch=branch_name,
            base_ref=ref,
            base_commit_sha=base_sha,
            worktree_path=str(path),
        )
        self._write_marker(workspace)
        self.registry.add(RegistryEntry(workspace.id, workspace.path, workspace.repository_path))
        logger.info("Created workspace %s at %s", workspace.id, workspace.path)

        result = WorkspaceCreateResult(workspace=workspace)
        if setup_command:
            result.setup = self.runner.run(
                setup_command, cwd=path, timeout=self.config.setup_timeout_seconds
            )
            if not result.setup.ok:
                logger.warning(
                    "Setup command for %s exited with %d", workspace.id, result.setup.exit_code
                )
        return result

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def load(self, path: str | Path) -> Workspace:
        marker = state_layout(path, self.config.state_dir)["metadata"]
        if not marker.exists():
            raise NotFoundError("workspace", str(path))
        return Workspace.from_dict(load_json(marker))

    def get(self, workspace_id: str) -> Workspace:
        for workspace in self.list():
            if workspace.id == workspace_id:
                return workspace
        raise NotFoundError("workspace", workspace_id)

    def resolve(self, ref: str | Path | Workspace) -> Workspace:
        """Accept a workspace, a workspace path or a workspace id."""
        if isinstance(ref, Workspace):
            return ref
        candidate = Path(ref).expanduser()
        if state_layout(candidate, self.config.state_dir)["metadata"].exists():
            return self.load(candidate)
        return self.get(str(ref))

    def locate(self, ref: str | Path | Workspace | RegistryEntry) -> RegistryEntry:
        """Find what is left of a workspace, even when its worktree is gone.

        Tries the marker, the registry, a directory scan and finally a bare
        ``<root>/<id>`` container, in that order.
        """
        if isinstance(ref, RegistryEntry):
            return ref
        if isinstance(ref, Workspace):
            return RegistryEntry(ref.id, ref.worktree_path or ref.path, ref.repository_path)
        text = str(ref)
        candidate = Path(ref).expanduser()
        workspace = self._read_marker(candidate)
        if workspace is not None:
            return self.locate(workspace)
        for entry in self.registry.load():
            if entry.id == text or Path(entry.path) == candidate:
                return entry
        for workspace in self._scan():
            if workspace.id == text:
                return self.locate(workspace)
        container = self.root / text
        if text and not text.startswith(".") and Path(text).name == text and container.is_dir():
            children = sorted(p for p in container.iterdir() if p.is_dir())
            path = children[0] if children else container / text
            return RegistryEntry(text, str(path), "")
        raise NotFoundError("workspace", text)

    def list(self) -> list[Workspace]:
        entries = self.registry.load()
        if entries:
            return self._list_from_registry(entries)
        return self._scan()

    # ------------------------------------------------------------------
    # Status changes
    # ------------------------------------------------------------------

    def archive(self, ref: str | Path | Workspace) -> Workspace:
        workspace = self.resolve(ref)
        now = utc_now_iso()
        if workspace.status != "archived":
            workspace.status = "archived"
            workspace.archived_at = now
        workspace.updated_at = now
        self._write_marker(workspace)
        logger.info("Archived workspace %s", workspace.id)
        return workspace

    def unarchive(self, ref: str | Path | Workspace) -> Workspace:
        workspace = self.resolve(ref)
        workspace.status = "active"
        workspace.archived_at = None
        workspace.updated_at = utc_now_iso()
        self._write_marker(workspace)
        logger.info("Unarchived workspace %s", workspace.id)
        return workspace

    def destroy(self, ref: str | Path | Workspace | RegistryEntry, force: bool = True) -> None:
        entry = self.locate(ref)
        worktree = Path(entry.path)

        if not force and worktree.is_dir():
            status = self.git.status_porcelain(worktree)
            if status.ok and status.stdout.strip():
                raise InvalidInputError(
                    f"Workspace '{entry.id}' has uncommitted changes; use force to destroy it."
                )

        if entry.repository_path:
            remove_worktree(self.git, Path(entry.repository_path), worktree)

        container = worktree.parent
        if container.resolve().parent != self.root.resolve():
            logger.warning("Not removing %s: outside workspace root %s", container, self.root)
        elif container.exists():
            shutil.rmtree(container, ignore_errors=True)
        self.registry.remove(entry.id)
        logger.info("Destroyed workspace %s", entry.id)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _write_marker(self, workspace: Workspace) -> None:
        marker = state_layout(workspace.path, self.config.state_dir)["metadata"]
        write_json_atomic(marker, workspace.to_dict())

    def _read_marker(self, path: Path) -> Workspace | None:
        marker = state_layout(path, self.config.state_dir)["metadata"]
        if not marker.exists():
            return None
        try:
            return Workspace.from_dict(load_json(marker))
        except (OSError, json.JSONDecodeError, SchemaError) as exc:
            logger.warning("Skipping malformed workspace marker %s: %s", marker, exc)
            return None

    def _list_from_registry(self, entries: list[RegistryEntry]) -> list[Workspace]:
        workspaces: list[Workspace] = []
        live: list[RegistryEntry] = []
        for entry in entries:
            marker = state_layout(entry.path, self.config.state_dir)["metadata"]
            if not marker.exists():
                logger.info("Pruning orphaned registry entry %s", entry.id)
                continue
            live.append(entry)
            workspace = self._read_marker(Path(entry.path))
            if workspace is not None:
                workspaces.append(workspace)
        if len(live) != len(entries):
            self.registry.save(live)
        return workspaces

    def _container_dirs(self) -> list[Path]:
        if not self.root.is_dir():
            return []
        return sorted(p for p in self.root.iterdir() if p.is_dir())

    def _scan(self) -> list[Workspace]:
        workspaces: list[Workspace] = []
        for container in self._container_dirs():
            for child in sorted(container.iterdir()):
                if not child.is_dir():
                    continue
                workspace = self._read_marker(child)
                if workspace is not None:
                    workspaces.append(workspace)
        return workspaces
