"""Tests for the task graph engine."""

from __future__ import annotations

from pathlib import Path

import pytest

from attodesk.errors import AmbiguousMatchError, InvalidInputError, NotFoundError
from attodesk.events.log import EventLog
from attodesk.protocol.models import Actor, TaskDependency
from attodesk.store.notes import NoteStore
from attodesk.tasks.graph import TaskGraph, build_initial_message, split_task_block
from attodesk.tasks.specialists import SpecialistRegistry

USER = Actor(type="user", id="u1")


@pytest.fixture
def events(workspace_dir: Path) -> EventLog:
    return EventLog(workspace_dir)


@pytest.fixture
def graph(notes: NoteStore, events: EventLog, conversation) -> TaskGraph:  # type: ignore[no-untyped-def]
    return TaskGraph(notes, events=events, conversation=conversation)


class TestInlineConversion:
    def test_two_blocks_become_linked_checkboxes(self, graph: TaskGraph, notes: NoteStore, events: EventLog) -> None:
        note = notes.create(
            "Plan",
            "Intro\n@@@task\n# Add login\nUse OAuth.\n@@@\nmiddle\n```task\nWrite tests\n```\nend",
        )
        result = graph.convert_inline_tasks(note.id, USER)
        assert result.converted_count == 2
        first, second = result.created_note_ids

        login = notes.get(first)
        assert login.title == "Add login"
        assert login.content == "Use OAuth."
        assert login.tags == ["task"]
        assert login.task_metadata is not None and login.task_metadata.status == "not_started"
        assert notes.get(second).title == "Untitled Task"
        assert notes.get(second).content == "Write tests"

        assert notes.get(note.id).content == (
            f"Intro\n- [ ] [Add login](intent://local/task/{first})\nmiddle\n"
            f"- [ ] [Untitled Task](intent://local/task/{second})\nend"
        )
        types = [e.type for e in events.read()]
        assert types.count("task:created") == 2
        assert types[-1] == "note:updated"

    def test_no_blocks_is_a_no_op(self, graph: TaskGraph, notes: NoteStore) -> None:
        note = notes.create("Plan", "nothing here")
        result = graph.convert_inline_tasks(note.id)
        assert result.converted_count == 0
        assert notes.get(note.id).updated_at == note.updated_at

    def test_split_task_block(self) -> None:
        assert split_task_block("\n# Title\nbody\n") == ("Title", "body")
        assert split_task_block("body only") == ("Untitled Task", "body only")


class TestPrerequisites:
    def test_initialises_dependent_metadata(self, graph: TaskGraph, notes: NoteStore) -> None:
        dependent = notes.create("Ship")
        prereq = graph.create_prerequisite(dependent.id, "Design", "sketch it")
        meta = notes.get(dependent.id).task_metadata
        assert meta is not None
        assert meta.status == "not_started"
        assert [(d.prerequisite_note_id, d.status) for d in meta.dependencies or []] == [(prereq.id, "pending")]
        assert graph.ready_tasks() == [prereq.id]
        assert graph.blocked_tasks() == [dependent.id]

    def test_missing_dependent_creates_nothing(self, graph: TaskGraph, notes: NoteStore) -> None:
        with pytest.raises(NotFoundError):
            graph.create_prerequisite("ghost", "Design")
        assert notes.list_notes() == []

    def test_done_prerequisite_unblocks(self, graph: TaskGraph, notes: NoteStore) -> None:
        dependent = notes.create("Ship")
        prereq = graph.create_prerequisite(dependent.id, "Design")
        graph.set_task_status(prereq.id, "done")
        assert graph.ready_tasks() == [dependent.id]

    def test_cycles_are_allowed_and_reported(self, graph: TaskGraph, notes: NoteStore) -> None:
        a = notes.create("A")
        b = graph.create_prerequisite(a.id, "B")
        graph.create_prerequisite(b.id, "C")
        c_id = notes.get(b.id).task_metadata.dependencies[0].prerequisite_note_id  # type: ignore[union-attr,index]
        # Close the loop by hand: C depends on A.
        c = notes.get(c_id)
        c.task_metadata.dependencies = [TaskDependency(a.id)]  # type: ignore[union-attr]
        notes.save(c)
        assert len(graph.find_cycles()) == 1


class TestMetadata:
    def test_mark_as_task_keeps_assignments(self, graph: TaskGraph, notes: NoteStore) -> None:
        note = notes.create("Refactor")
        graph.assign_agent(note.id, "agent-9")
        graph.assign_agent(note.id, "agent-9")
        marked = graph.mark_as_task(note.id, "in_progress", ["tests pass"])
        assert marked.task_metadata is not None
        assert marked.task_metadata.assigned_agents == ["agent-9"]
        assert marked.task_metadata.acceptance_criteria == ["tests pass"]
        assert "task" in marked.tags

    def test_empty_status_rejected(self, graph: TaskGraph, notes: NoteStore) -> None:
        note = notes.create("Refactor")
        with pytest.raises(InvalidInputError):
            graph.set_task_status(note.id, "  ")

    def test_get_task_numbers_lines(self, graph: TaskGraph, notes: NoteStore) -> None:
        note = notes.create("Refactor", "one\ntwo")
        assert graph.get_task(note.id)["content"] == "1 | one\n2 | two"


class TestDelegation:
    def test_delegate_sends_task_and_moves_to_in_progress(
        self, graph: TaskGraph, notes: NoteStore, conversation, events: EventLog  # type: ignore[no-untyped-def]
    ) -> None:
        note = notes.create("Add login", "Use OAuth.", task_metadata=None)
        result = graph.delegate(note.id, instructions="Keep it small.")
        assert result.agent_id == "agent-1"
        assert result.agent_name == "Add login"
        assert conversation.messages == [
            ("agent-1", "# Task: Add login\n\nUse OAuth.\n\n## Additional Instructions\nKeep it small.")
        ]
        meta = notes.get(note.id).task_metadata
        assert meta is not None
        assert meta.status == "in_progress"
        assert meta.assigned_agents == ["agent-1"]
        assert events.read()[-1].type == "task:delegated"

    def test_delegate_with_specialist(self, notes: NoteStore, conversation, tmp_path: Path) -> None:  # type: ignore[no-untyped-def]
        user_dir = tmp_path / "specialists"
        registry = SpecialistRegistry(None, user_dir)
        registry.add("reviewer", "---\nname: Reviewer\ndescription: d\ndefaultModel: m1\n---\nReview.")
        graph = TaskGraph(notes, conversation=conversation, specialists=registry)
        note = notes.create("Review PR")
        graph.delegate(note.id, specialist_id="reviewer")
        options = conversation.created[0]
        assert options.system_prompt == "Review."
        assert options.model == "m1"
        assert options.specialist_id == "reviewer"

    def test_delegate_keeps_non_initial_status(self, graph: TaskGraph, notes: NoteStore) -> None:
        note = notes.create("Fix")
        graph.set_task_status(note.id, "blocked")
        graph.delegate(note.id)
        assert notes.get(note.id).task_metadata.status == "blocked"  # type: ignore[union-attr]

    def test_delegate_without_conversation(self, notes: NoteStore) -> None:
        note = notes.create("Fix")
        with pytest.raises(InvalidInputError):
            TaskGraph(notes).delegate(note.id)

    def test_build_initial_message_without_instructions(self, notes: NoteStore) -> None:
        note = notes.create("T", "body")
        assert build_initial_message(note) == "# Task: T\n\nbody"


class TestCheckboxEdits:
    CONTENT = "# Todo\n- [ ] write docs\n  - [ ] write tests\nnot a task"

    def test_update_task_line(self, graph: TaskGraph, notes: NoteStore) -> None:
        note = notes.create("N", self.CONTENT)
        updated = graph.update_task(note.id, 3, status="in-progress")
        assert updated.status == "in-progress"
        assert notes.get(note.id).content.split("\n")[2] == "  - [/] write tests"
        graph.update_task(note.id, 2, new_text="write better docs")
        assert notes.get(note.id).content.split("\n")[1] == "- [ ] write better docs"

    def test_update_task_bad_lines(self, graph: TaskGraph, notes: NoteStore) -> None:
        note = notes.create("N", self.CONTENT)
        with pytest.raises(InvalidInputError):
            graph.update_task(note.id, 4, status="done")
        with pytest.raises(InvalidInputError):
            graph.update_task(note.id, 99, status="done")

    def test_update_task_status_by_text(self, graph: TaskGraph, notes: NoteStore) -> None:
        note = notes.create("N", self.CONTENT)
        line = graph.update_task_status(note.id, "tests", "done")
        assert line.line_number == 3
        assert line.status == "done"
        with pytest.raises(AmbiguousMatchError):
            graph.update_task_status(note.id, "write", "done")
        with pytest.raises(NotFoundError):
            graph.update_task_status(note.id, "deploy", "done")

    def test_list_tasks(self, graph: TaskGraph, notes: NoteStore) -> None:
        note = notes.create("N", self.CONTENT)
        assert [t.text for t in graph.list_tasks(note.id)] == ["write docs", "write tests"]
