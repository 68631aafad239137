"""Thin synchronous git wrapper."""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class GitResult:
    stdout: str
    stderr: str
    exit_code: int

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    @property
    def diagnostic(self) -> str:
        """Best text to show a user when the command failed."""
        return (self.stderr or self.stdout).strip()


@dataclass(slots=True, frozen=True)
class WorktreeInfo:
    worktree: str
    head: str = ""
    branch: str = ""
    bare: bool = False
    detached: bool = False


class GitAdapter:
    """Issues git commands and returns raw text plus exit code."""

    def __init__(self, binary: str = "git") -> None:
        self._binary = binary

    def run(self, args: Sequence[str], cwd: str | Path) -> GitResult:
        try:
            proc = subprocess.run(
                [self._binary, *args],
                cwd=cwd,
                capture_output=True,
                text=True,
            )
        except OSError as exc:
            return GitResult(stdout="", stderr=str(exc), exit_code=127)
        return GitResult(
            stdout=(proc.stdout or "").rstrip(),
            stderr=(proc.stderr or "").strip(),
            exit_code=proc.returncode,
        )

    # ------------------------------------------------------------------
    # Convenience wrappers
    # ------------------------------------------------------------------

    def rev_parse(self, ref: str, cwd: str | Path) -> GitResult:
        return self.run(["rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}"], cwd)

    def is_repository(self, cwd: str | Path) -> bool:
        return self.run(["rev-parse", "--git-dir"], cwd).ok

    def worktree_add(self, path: str | Path, branch: str, base_ref: str, cwd: str | Path) -> GitResult:
        return self.run(["worktree", "add", str(path), "-b", branch, base_ref], cwd)

    def worktree_remove(self, path: str | Path, cwd: str | Path, *, force: bool = False) -> GitResult:
        args = ["worktree", "remove", str(path)]
        if force:
            args.append("--force")
        return self.run(args, cwd)

    def worktree_prune(self, cwd: str | Path) -> GitResult:
        result = self.run(["worktree", "prune"], cwd)
        if not result.ok:
            logger.warning("git worktree prune failed: %s", result.diagnostic)
        return result

    def worktree_list(self, cwd: str | Path) -> list[WorktreeInfo]:
        result = self.run(["worktree", "list", "--porcelain"], cwd)
        if not result.ok:
            return []
        return parse_worktree_porcelain(result.stdout)

    def remote_url(self, cwd: str | Path, remote: str = "origin") -> str | None:
        result = self.run(["remote", "get-url", remote], cwd)
        if not result.ok or not result.stdout.strip():
            return None
        return result.stdout.strip()

    def status_porcelain(self, cwd: str | Path) -> GitResult:
        return self.run(["status", "--porcelain"], cwd)

    def current_branch(self, cwd: str | Path) -> str | None:
        result = self.run(["rev-parse", "--abbrev-ref", "HEAD"], cwd)
        return result.stdout.strip() if result.ok else None

    def rename_branch(self, old: str, new: str, cwd: str | Path) -> GitResult:
        return self.run(["branch", "-m", old, new], cwd)

    def delete_branch(self, branch: str, cwd: str | Path) -> GitResult:
        return self.run(["branch", "-D", branch], cwd)


def parse_worktree_porcelain(output: str) -> list[WorktreeInfo]:
    """Parse ``git worktree list --porcelain`` output.

    Blocks are separated by blank lines::

        worktree /path/to/worktree
        HEAD abc123...
        branch refs/heads/name      (or "detached" / "bare")
    """
    results: list[WorktreeInfo] = []
    block: dict[str, object] = {}

    def flush() -> None:
        if block.get("worktree"):
            results.append(WorktreeInfo(**block))  # type: ignore[arg-type]
        block.clear()

    for line in output.splitlines():
        line = line.strip()
        if not line:
            flush()
            continue
        if line.startswith("worktree "):
            block["worktree"] = line[len("worktree "):]
        elif line.startswith("HEAD "):
            block["head"] = line[len("HEAD "):]
        elif line.startswith("branch "):
            block["branch"] = line[len("branch "):]
        elif line == "bare":
            block["bare"] = True
        elif line == "detached":
            block["detached"] = True
    flush()
    return results


def parse_remote_url(url: str) -> tuple[str | None, str | None]:
    """Return ``(owner, name)`` from an https or ssh git remote URL."""
    cleaned = url.strip().rstrip("/")
    if cleaned.endswith(".git"):
        cleaned = cleaned[: -len(".git")]
    parts = [p for p in cleaned.split("/") if p]
    if len(parts) < 2:
        # git@host:name with no owner segment
        if ":" in cleaned and "/" not in cleaned.split(":", 1)[1]:
            return None, cleaned.split(":", 1)[1] or None
        return None, None
    name = parts[-1]
    owner = parts[-2]
    if ":" in owner:
        owner = owner.rsplit(":", 1)[-1]
    return owner or None, name or None
