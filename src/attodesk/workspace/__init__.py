"""Workspace lifecycle on top of git worktrees."""

from attodesk.workspace.manager import WorkspaceCreateResult, WorkspaceManager
from attodesk.workspace.naming import ADJECTIVES, ANIMALS, generate_workspace_id
from attodesk.workspace.registry import RegistryEntry, WorkspaceRegistry

__all__ = [
    "ADJECTIVES",
    "ANIMALS",
    "RegistryEntry",
    "WorkspaceCreateResult",
    "WorkspaceManager",
    "WorkspaceRegistry",
    "generate_workspace_id",
]
