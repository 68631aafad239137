"""Attodesk: coordinates coding agents across isolated git worktree workspaces."""

__version__ = "0.1.0"
