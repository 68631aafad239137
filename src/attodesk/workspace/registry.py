"""Index of known workspaces at ``<root>/registry.json``.

The registry is a lookup accelerator.  The ``metadata.json`` marker inside
each workspace stays authoritative, so a missing or damaged registry only
costs a directory scan.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from attodesk.protocol.io import load_json, write_json_atomic

logger = logging.getLogger(__name__)

REGISTRY_FILE = "registry.json"


@dataclass(slots=True, frozen=True)
class RegistryEntry:
    id: str
    path: str
    repository_path: str

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "path": self.path, "repositoryPath": self.repository_path}


class WorkspaceRegistry:
    def __init__(self, root: str | Path) -> None:
        self.path = Path(root) / REGISTRY_FILE

    def load(self) -> list[RegistryEntry]:
        if not self.path.exists():
            return []
        try:
            raw = load_json(self.path)
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring unreadable workspace registry %s: %s", self.path, exc)
            return []
        items = raw.get("workspaces") if isinstance(raw, dict) else None
        if not isinstance(items, list):
            return []
        entries: list[RegistryEntry] = []
        for item in items:
            if not isinstance(item, dict):
                continue
            ws_id, path = item.get("id"), item.get("path")
            if isinstance(ws_id, str) and isinstance(path, str):
                entries.append(
                    RegistryEntry(ws_id, path, str(item.get("repositoryPath") or ""))
                )
        return entries

    def save(self, entries: list[RegistryEntry]) -> None:
        write_json_atomic(self.path, {"workspaces": [e.to_dict() for e in entries]})

    def add(self, entry: RegistryEntry) -> None:
        entries = [e for e in self.load() if e.id != entry.id]
        entries.append(entry)
        self.save(entries)

    def remove(self, workspace_id: str) -> bool:
        entries = self.load()
        remaining = [e for e in entries if e.id != workspace_id]
        if len(remaining) == len(entries):
            return False
        self.save(remaining)
        return True
