"""Git worktree lifecycle for workspaces."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from attodesk.adapters.git import GitAdapter
from attodesk.errors import InvalidBaseRefError, WorktreeCreationError

log = logging.getLogger(__name__)


def resolve_base_commit(git: GitAdapter, repo_root: Path, base_ref: str) -> str:
    """Return the commit sha *base_ref* points at, or raise InvalidBaseRefError."""
    result = git.rev_parse(base_ref, repo_root)
    sha = result.stdout.strip()
    if not result.ok or not sha:
        raise InvalidBaseRefError(base_ref, str(repo_root), output=result.diagnostic)
    return sha


def create_worktree(
    git: GitAdapter,
    repo_root: Path,
    path: Path,
    branch_name: str,
    base_ref: str,
) -> None:
    """Add a worktree at *path*; a failed add leaves no directory behind."""
    created_parent = not path.parent.exists()
    path.parent.mkdir(parents=True, exist_ok=True)
    result = git.worktree_add(path, branch_name, base_ref, repo_root)
    if not result.ok:
        if created_parent:
            shutil.rmtree(path.parent, ignore_errors=True)
        raise WorktreeCreationError(str(path), result.diagnostic, result.exit_code)
    log.info("Created worktree %s on branch %s from %s", path, branch_name, base_ref)


def remove_worktree(git: GitAdapter, repo_root: Path, path: Path) -> bool:
    """Force-remove a worktree; prune bookkeeping if git refuses.

    Never raises: the worktree may already have been deleted by hand.
    """
    if not Path(repo_root).is_dir():
        log.warning("Repository %s is gone; skipping worktree removal", repo_root)
        return False
    result = git.worktree_remove(path, repo_root, force=True)
    if result.ok:
        return True
    log.warning("git worktree remove %s failed: %s", path, result.diagnostic)
    git.worktree_prune(repo_root)
    return False
