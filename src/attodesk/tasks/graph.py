"""Task graph engine: inline task conversion, prerequisites, delegation and
checkbox edits over a workspace's notes.

Every mutation re-reads the note it changes right before saving.  When an
event log is attached, mutations are recorded as ``task:*`` / ``note:*``
events.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any

from attodesk.adapters.agents import AgentConversation, AgentOptions
from attodesk.errors import AmbiguousMatchError, InvalidInputError, NotFoundError
from attodesk.events.log import EventLog
from attodesk.protocol.models import SYSTEM_ACTOR, Actor, Note, TaskDependency, TaskMetadata
from attodesk.store.notes import NoteStore, format_with_line_numbers
from attodesk.tasks.checkboxes import (
    CheckboxLine,
    format_checkbox,
    iter_checkboxes,
    parse_checkbox_line,
    task_link,
)
from attodesk.tasks.specialists import SpecialistRegistry
from attodesk.tasks.view import TaskGraphView

logger = logging.getLogger(__name__)

UNTITLED_TASK = "Untitled Task"
TASK_TAG = "task"

_TASK_BLOCK_RE = re.compile(
    r"^@@@task[ \t]*\n(?P<at>.*?)^@@@[ \t]*$"
    r"|^```task[ \t]*\n(?P<fence>.*?)^```[ \t]*$",
    re.MULTILINE | re.DOTALL,
)
_TITLE_RE = re.compile(r"^#\s+(.+?)\s*$")


@dataclass(slots=True)
class ConversionResult:
    note_id: str
    converted_count: int = 0
    created_note_ids: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "noteId": self.note_id,
            "convertedCount": self.converted_count,
            "createdNoteIds": list(self.created_note_ids),
        }


@dataclass(slots=True)
class DelegationResult:
    agent_id: str
    task_note_id: str
    agent_name: str

    def to_dict(self) -> dict[str, Any]:
        return {"agentId": self.agent_id, "taskNoteId": self.task_note_id, "agentName": self.agent_name}


def split_task_block(body: str) -> tuple[str, str]:
    """Return ``(title, content)`` for the inside of one task block."""
    lines = body.strip("\n").split("\n")
    title = UNTITLED_TASK
    if lines:
        match = _TITLE_RE.match(lines[0].strip())
        if match:
            title = match.group(1)
            lines = lines[1:]
    return title, "\n".join(lines).strip()


def build_initial_message(note: Note, instructions: str | None = None) -> str:
    message = f"# Task: {note.title}\n\n{note.content}"
    if instructions:
        message += f"\n\n## Additional Instructions\n{instructions}"
    return message


class TaskGraph:
    def __init__(
        self,
        notes: NoteStore,
        *,
        events: EventLog | None = None,
        conversation: AgentConversation | None = None,
        specialists: SpecialistRegistry | None = None,
    ) -> None:
        self.notes = notes
        self.events = events
        self.conversation = conversation
        self.specialists = specialists

    # ------------------------------------------------------------------
    # Inline task blocks
    # ------------------------------------------------------------------

    def convert_inline_tasks(self, note_id: str, actor: Actor = SYSTEM_ACTOR) -> ConversionResult:
        note = self.notes.get(note_id)
        matches = list(_TASK_BLOCK_RE.finditer(note.content))
        result = ConversionResult(note_id=note_id)
        if not matches:
            return result

        content = note.content
        created: list[str] = []
        # Last to first keeps earlier offsets valid.
        for match in reversed(matches):
            body = match.group("at") if match.group("at") is not None else match.group("fence")
            title, task_content = split_task_block(body or "")
            task_note = self.notes.create(
                title,
                task_content,
                tags=[TASK_TAG],
                task_metadata=TaskMetadata(status="not_started"),
            )
            created.append(task_note.id)
            checkbox = format_checkbox(task_link(title, task_note.id))
            content = content[: match.start()] + checkbox + content[match.end():]
            self._record("task:created", actor, {"noteId": task_note.id, "parentNoteId": note_id})

        note = self.notes.get(note_id)
        note.content = content
        note.touch()
        self.notes.save(note)

        result.created_note_ids = list(reversed(created))
        result.converted_count = len(created)
        self._record("note:updated", actor, {"noteId": note_id, "convertedCount": len(created)})
        logger.info("Converted %d inline task(s) in note %s", len(created), note_id)
        return result

    # ------------------------------------------------------------------
    # Task metadata
    # ------------------------------------------------------------------

    def mark_as_task(
        self,
        note_id: str,
        status: str = "not_started",
        acceptance_criteria: list[str] | None = None,
        actor: Actor = SYSTEM_ACTOR,
    ) -> Note:
        _require_status(status)
        note = self.notes.get(note_id)
        previous = note.task_metadata
        note.task_metadata = TaskMetadata(
            status=status,
            acceptance_criteria=list(acceptance_criteria) if acceptance_criteria else None,
            assigned_agents=previous.assigned_agents if previous else None,
            dependencies=previous.dependencies if previous else None,
        )
        if TASK_TAG not in note.tags:
            note.tags.append(TASK_TAG)
        note.touch()
        self.notes.save(note)
        self._record("task:status_changed", actor, {"noteId": note_id, "status": status})
        return note

    def set_task_status(self, note_id: str, status: str, actor: Actor = SYSTEM_ACTOR) -> Note:
        _require_status(status)
        note = self.notes.get(note_id)
        if note.task_metadata is None:
            note.task_metadata = TaskMetadata(status=status)
        else:
            note.task_metadata.status = status
        note.touch()
        self.notes.save(note)
        self._record("task:status_changed", actor, {"noteId": note_id, "status": status})
        return note

    def get_task(self, note_id: str) -> dict[str, Any]:
        note = self.notes.get(note_id)
        return {
            "id": note.id,
            "title": note.title,
            "content": format_with_line_numbers(note.content),
            "taskMetadata": note.task_metadata.to_dict() if note.task_metadata else None,
            "tags": list(note.tags),
        }

    def create_prerequisite(
        self,
        dependent_note_id: str,
        title: str,
        content: str = "",
        status: str = "not_started",
        actor: Actor = SYSTEM_ACTOR,
    ) -> Note:
        _require_status(status)
        # Fail before creating anything when the dependent is missing.
        self.notes.get(dependent_note_id)
        prerequisite = self.notes.create(
            title,
            content,
            tags=[TASK_TAG],
            task_metadata=TaskMetadata(status=status),
        )

        dependent = self.notes.get(dependent_note_id)
        if dependent.task_metadata is None:
            dependent.task_metadata = TaskMetadata(status="not_started")
        if dependent.task_metadata.dependencies is None:
            dependent.task_metadata.dependencies = []
        dependent.task_metadata.dependencies.append(
            TaskDependency(prerequisite_note_id=prerequisite.id, status="pending")
        )
        dependent.touch()
        self.notes.save(dependent)

        self._record(
            "task:created",
            actor,
            {"noteId": prerequisite.id, "dependentNoteId": dependent_note_id},
        )
        return prerequisite

    def assign_agent(self, note_id: str, agent_id: str, actor: Actor = SYSTEM_ACTOR) -> Note:
        note = self.notes.get(note_id)
        if note.task_metadata is None:
            note.task_metadata = TaskMetadata(status="not_started")
        agents = note.task_metadata.assigned_agents or []
        if agent_id in agents:
            return note
        note.task_metadata.assigned_agents = [*agents, agent_id]
        note.touch()
        self.notes.save(note)
        self._record("task:assigned", actor, {"noteId": note_id, "agentId": agent_id})
        return note

    def delegate(
        self,
        task_note_id: str,
        specialist_id: str | None = None,
        instructions: str | None = None,
        actor: Actor = SYSTEM_ACTOR,
    ) -> DelegationResult:
        if self.conversation is None:
            raise InvalidInputError("No agent conversation is attached; cannot delegate.")
        note = self.notes.get(task_note_id)

        options = AgentOptions(label=note.title)
        if specialist_id:
            if self.specialists is None:
                raise InvalidInputError("Specialist registry is not available.")
            specialist = self.specialists.get(specialist_id)
            options.specialist_id = specialist_id
            options.system_prompt = specialist.system_prompt
            options.model = specialist.default_model

        workspace_path = str(self.notes.workspace_path)
        handle = self.conversation.create_agent(workspace_path, options)
        self.conversation.send_message(
            workspace_path, handle.agent_id, build_initial_message(note, instructions)
        )

        note = self.notes.get(task_note_id)
        if note.task_metadata is None:
            note.task_metadata = TaskMetadata(status="not_started")
        note.task_metadata.assigned_agents = [*(note.task_metadata.assigned_agents or []), handle.agent_id]
        if note.task_metadata.status == "not_started":
            note.task_metadata.status = "in_progress"
        note.touch()
        self.notes.save(note)

        self._record(
            "task:delegated",
            actor,
            {"noteId": task_note_id, "agentId": handle.agent_id, "specialistId": specialist_id},
        )
        logger.info("Delegated task %s to agent %s", task_note_id, handle.agent_id)
        return DelegationResult(agent_id=handle.agent_id, task_note_id=task_note_id, agent_name=handle.label)

    # ------------------------------------------------------------------
    # Checkbox lines
    # ------------------------------------------------------------------

    def list_tasks(self, note_id: str) -> list[CheckboxLine]:
        return iter_checkboxes(self.notes.get(note_id).content)

    def update_task(
        self,
        note_id: str,
        line_number: int,
        new_text: str | None = None,
        status: str | None = None,
        actor: Actor = SYSTEM_ACTOR,
    ) -> CheckboxLine:
        note = self.notes.get(note_id)
        lines = note.content.split("\n")
        if line_number < 1 or line_number > len(lines):
            raise InvalidInputError(
                f"Line {line_number} is out of range. Note has {len(lines)} lines."
            )
        current = parse_checkbox_line(lines[line_number - 1], line_number)
        if current is None:
            raise InvalidInputError(f"Line {line_number} is not a task checkbox.")

        updated = CheckboxLine(
            line_number=line_number,
            indent=current.indent,
            status=status or current.status,
            text=new_text if new_text is not None else current.text,
        )
        lines[line_number - 1] = updated.render()
        note.content = "\n".join(lines)
        note.touch()
        self.notes.save(note)
        self._record(
            "task:updated",
            actor,
            {"noteId": note_id, "lineNumber": line_number, "status": updated.status},
        )
        return parse_checkbox_line(lines[line_number - 1], line_number) or updated

    def update_task_status(
        self,
        note_id: str,
        task_text: str,
        status: str,
        actor: Actor = SYSTEM_ACTOR,
    ) -> CheckboxLine:
        format_checkbox("", status)  # validates the status
        note = self.notes.get(note_id)
        candidates = [c for c in iter_checkboxes(note.content) if task_text in c.text]
        if not candidates:
            raise NotFoundError(
                "task",
                task_text,
                message=f"No task checkbox matching {task_text!r} in note '{note_id}'.",
            )
        if len(candidates) > 1:
            raise AmbiguousMatchError(task_text, len(candidates), what="task text")
        return self.update_task(note_id, candidates[0].line_number, status=status, actor=actor)

    # ------------------------------------------------------------------
    # Graph view
    # ------------------------------------------------------------------

    def dependency_graph(self) -> TaskGraphView:
        return TaskGraphView.from_notes(self.notes.list_notes())

    def ready_tasks(self) -> list[str]:
        return [n.note_id for n in self.dependency_graph().ready()]

    def blocked_tasks(self) -> list[str]:
        return [n.note_id for n in self.dependency_graph().blocked()]

    def find_cycles(self) -> list[list[str]]:
        return self.dependency_graph().find_cycles()

    def _record(self, event_type: str, actor: Actor, data: dict[str, Any]) -> None:
        if self.events is not None:
            self.events.append(event_type, actor, data)


def _require_status(status: str) -> None:
    if not status or not status.strip():
        raise InvalidInputError("Task status must not be empty.")
