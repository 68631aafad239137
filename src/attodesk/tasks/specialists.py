"""Specialist profiles: markdown files with YAML front matter.

::

    ---
    name: Reviewer
    description: Reviews diffs for correctness
    defaultModel: some-model
    ---
    You are a careful reviewer...

The body becomes the agent's system prompt.  A user file overrides a
builtin file with the same stem.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from attodesk.errors import InvalidInputError, NotFoundError

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Specialist:
    id: str
    name: str
    description: str
    system_prompt: str
    source: str  # "builtin" | "user"
    default_model: str | None = None
    model_tier: str | None = None
    role_reminder: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "defaultModel": self.default_model,
            "modelTier": self.model_tier,
            "source": self.source,
        }


def parse_specialist(specialist_id: str, text: str, source: str) -> Specialist | None:
    """Return None when the front matter is missing or lacks name/description."""
    if not text.startswith("---"):
        return None
    parts = text.split("\n---", 1)
    if len(parts) != 2:
        return None
    header = parts[0][3:]
    body = parts[1].lstrip("-").lstrip("\r\n")
    try:
        meta = yaml.safe_load(header) or {}
    except yaml.YAMLError as exc:
        logger.warning("Bad front matter in specialist %s: %s", specialist_id, exc)
        return None
    if not isinstance(meta, dict) or not meta.get("name") or not meta.get("description"):
        return None
    return Specialist(
        id=specialist_id,
        name=str(meta["name"]),
        description=str(meta["description"]),
        system_prompt=body.strip(),
        source=source,
        default_model=meta.get("defaultModel"),
        model_tier=meta.get("modelTier"),
        role_reminder=meta.get("roleReminder"),
    )


class SpecialistRegistry:
    def __init__(self, builtin_dir: str | Path | None = None, user_dir: str | Path | None = None) -> None:
        self.builtin_dir = Path(builtin_dir) if builtin_dir else None
        self.user_dir = Path(user_dir) if user_dir else None

    def _scan(self, directory: Path | None, source: str) -> dict[str, Specialist]:
        found: dict[str, Specialist] = {}
        if directory is None or not directory.is_dir():
            return found
        for path in sorted(directory.glob("*.md")):
            spec = parse_specialist(path.stem, path.read_text(encoding="utf-8"), source)
            if spec is not None:
                found[spec.id] = spec
        return found

    def list(self) -> list[Specialist]:
        merged = self._scan(self.builtin_dir, "builtin")
        merged.update(self._scan(self.user_dir, "user"))
        return list(merged.values())

    def get(self, specialist_id: str) -> Specialist:
        for directory, source in ((self.user_dir, "user"), (self.builtin_dir, "builtin")):
            if directory is None:
                continue
            path = directory / f"{specialist_id}.md"
            if not path.is_file():
                continue
            spec = parse_specialist(specialist_id, path.read_text(encoding="utf-8"), source)
            if spec is not None:
                return spec
        raise NotFoundError("specialist", specialist_id)

    def add(self, specialist_id: str, content: str) -> Path:
        if self.user_dir is None:
            raise InvalidInputError("No user specialists directory configured.")
        if parse_specialist(specialist_id, content, "user") is None:
            raise InvalidInputError("Specialist file needs front matter with name and description.")
        self.user_dir.mkdir(parents=True, exist_ok=True)
        path = self.user_dir / f"{specialist_id}.md"
        path.write_text(content, encoding="utf-8")
        return path

    def remove(self, specialist_id: str) -> None:
        user_file = self.user_dir / f"{specialist_id}.md" if self.user_dir else None
        if user_file is not None and user_file.exists():
            user_file.unlink()
            return
        if self.builtin_dir is not None and (self.builtin_dir / f"{specialist_id}.md").exists():
            raise InvalidInputError(f"Cannot remove built-in specialist {specialist_id!r}.")
        raise NotFoundError("specialist", specialist_id)
