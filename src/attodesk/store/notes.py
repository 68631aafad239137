"""Note documents: one JSON file per note under ``<state>/notes``.

Saves are whole-file writes with no concurrency token.  Two writers racing
on the same note resolve as last-writer-wins; callers re-read a note right
before each small edit.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path

from attodesk.errors import AmbiguousMatchError, InvalidInputError, NotFoundError, SchemaError
from attodesk.protocol.io import load_json, remove_file, write_json_atomic
from attodesk.protocol.ids import random_id
from attodesk.protocol.models import (
    DEFAULT_STATE_DIR,
    Note,
    TaskMetadata,
    parse_iso,
    state_layout,
)

logger = logging.getLogger(__name__)

SPEC_NOTE_ID = "spec"
SPEC_NOTE_TITLE = "Spec"
SPEC_NOTE_TEMPLATE = "## Goal\n\n_Describe the goal of this workspace._\n"

_HEADING_RE = re.compile(r"^#{1,6}\s")
_SAFE_ID_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")


def check_note_id(note_id: str) -> str:
    """Reject ids that could escape the notes directory."""
    if not _SAFE_ID_RE.match(note_id):
        raise InvalidInputError(f"Invalid note id {note_id!r}.")
    return note_id


def format_with_line_numbers(content: str) -> str:
    lines = content.split("\n")
    width = len(str(len(lines)))
    return "\n".join(f"{str(i + 1).rjust(width)} | {line}" for i, line in enumerate(lines))


class NoteStore:
    """Durable storage for the notes of one workspace."""

    def __init__(self, workspace_path: str | Path, state_dir: str = DEFAULT_STATE_DIR) -> None:
        self.workspace_path = Path(workspace_path)
        self.notes_dir = state_layout(self.workspace_path, state_dir)["notes"]

    def _path(self, note_id: str) -> Path:
        return self.notes_dir / f"{check_note_id(note_id)}.json"

    # ------------------------------------------------------------------
    # Basic persistence
    # ------------------------------------------------------------------

    def load(self, note_id: str) -> Note | None:
        path = self._path(note_id)
        if not path.exists():
            return None
        return Note.from_dict(load_json(path))

    def get(self, note_id: str) -> Note:
        note = self.load(note_id)
        if note is None:
            raise NotFoundError("note", note_id)
        return note

    def save(self, note: Note) -> None:
        write_json_atomic(self._path(note.id), note.to_dict())

    def list_notes(self, tag: str | None = None) -> list[Note]:
        if not self.notes_dir.is_dir():
            return []
        notes: list[Note] = []
        for entry in sorted(self.notes_dir.iterdir()):
            if entry.suffix != ".json":
                continue
            try:
                note = Note.from_dict(load_json(entry))
            except (OSError, json.JSONDecodeError, SchemaError) as exc:
                logger.warning("Skipping unreadable note %s: %s", entry.name, exc)
                continue
            if tag is not None and tag not in note.tags:
                continue
            notes.append(note)
        notes.sort(key=lambda n: parse_iso(n.updated_at), reverse=True)
        return notes

    def delete(self, note_id: str) -> None:
        if note_id == SPEC_NOTE_ID:
            raise InvalidInputError("Cannot delete the spec note.")
        if not remove_file(self._path(note_id)):
            raise NotFoundError("note", note_id)

    def create(
        self,
        title: str,
        content: str = "",
        tags: list[str] | None = None,
        task_metadata: TaskMetadata | None = None,
    ) -> Note:
        note = Note(
            id=random_id(),
            title=title,
            content=content,
            tags=list(tags or []),
            task_metadata=task_metadata,
        )
        self.save(note)
        return note

    def get_or_create_spec(self) -> Note:
        existing = self.load(SPEC_NOTE_ID)
        if existing is not None:
            return existing
        spec = Note(id=SPEC_NOTE_ID, title=SPEC_NOTE_TITLE, content=SPEC_NOTE_TEMPLATE, tags=["spec"])
        self.save(spec)
        return spec

    # ------------------------------------------------------------------
    # Editing
    # ------------------------------------------------------------------

    def set_content(self, note_id: str, content: str) -> Note:
        note = self.get(note_id)
        note.content = content
        note.touch()
        self.save(note)
        return note

    def add_content(
        self,
        note_id: str,
        content: str,
        *,
        heading: str | None = None,
        position: str = "end",
    ) -> Note:
        """Insert *content* at ``end``, ``start`` or ``after:<heading line>``."""
        note = self.get(note_id)
        text = f"{heading}\n{content}" if heading else content

        if position == "start":
            note.content = f"{text}\n{note.content}" if note.content else text
        elif position == "end":
            note.content = f"{note.content}\n{text}" if note.content else text
        elif position.startswith("after:"):
            target = position[len("after:"):]
            lines = note.content.split("\n")
            try:
                heading_index = next(i for i, line in enumerate(lines) if line.strip() == target)
            except StopIteration:
                raise NotFoundError("heading", target) from None
            insert_at = heading_index + 1
            for i in range(heading_index + 1, len(lines)):
                if _HEADING_RE.match(lines[i]):
                    break
                insert_at = i + 1
            lines.insert(insert_at, text)
            note.content = "\n".join(lines)
        else:
            raise InvalidInputError(
                f'Invalid position "{position}". Use "end", "start", or "after:HEADING".'
            )

        note.touch()
        self.save(note)
        return note

    def replace_text(self, note_id: str, old_text: str, new_text: str) -> Note:
        note = self.get(note_id)
        count = note.content.count(old_text) if old_text else 0
        if count == 0:
            raise NotFoundError("text", old_text, message="old_text not found in note content.")
        if count > 1:
            raise AmbiguousMatchError(old_text, count, what="old_text")
        note.content = note.content.replace(old_text, new_text, 1)
        note.touch()
        self.save(note)
        return note

    def replace_lines(self, note_id: str, start: int, end: int, new_content: str) -> Note:
        note = self.get(note_id)
        lines = note.content.split("\n")
        if start < 1 or end < start or end > len(lines):
            raise InvalidInputError(
                f"Invalid line range {start}-{end}. Note has {len(lines)} lines."
            )
        replacement = [] if new_content == "" else new_content.split("\n")
        lines[start - 1:end] = replacement
        note.content = "\n".join(lines)
        note.touch()
        self.save(note)
        return note

    def update_metadata(
        self,
        note_id: str,
        *,
        title: str | None = None,
        tags: list[str] | None = None,
    ) -> Note:
        note = self.get(note_id)
        if title is not None:
            note.title = title
        if tags is not None:
            note.tags = [t.strip() for t in tags if t.strip()]
        note.touch()
        self.save(note)
        return note
