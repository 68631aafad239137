"""Tests for checkbox line parsing."""

from __future__ import annotations

import pytest

from attodesk.errors import InvalidInputError
from attodesk.tasks.checkboxes import format_checkbox, iter_checkboxes, parse_checkbox_line, task_link


def test_parse_statuses_and_indent() -> None:
    assert parse_checkbox_line("- [ ] write docs").status == "todo"
    assert parse_checkbox_line("- [/] write docs").status == "in-progress"
    nested = parse_checkbox_line("    - [x] ship it", 4)
    assert nested is not None
    assert nested.status == "done"
    assert nested.indent == "    "
    assert nested.line_number == 4


@pytest.mark.parametrize("line", ["- [X] caps", "* [ ] star", "-[ ] tight", "plain text", "- [ ]"])
def test_non_checkbox_lines(line: str) -> None:
    assert parse_checkbox_line(line) is None


def test_linked_task_id() -> None:
    line = "- [ ] " + task_link("Add login", "abc-123")
    parsed = parse_checkbox_line(line)
    assert parsed is not None
    assert parsed.linked_task_id == "abc-123"
    assert parsed.to_dict()["linkedTaskId"] == "abc-123"


def test_render_keeps_indent() -> None:
    parsed = parse_checkbox_line("  - [ ] item")
    assert parsed is not None
    assert parsed.render() == "  - [ ] item"
    assert format_checkbox("item", "done", "  ") == "  - [x] item"


def test_unknown_status() -> None:
    with pytest.raises(InvalidInputError):
        format_checkbox("item", "blocked")


def test_iter_checkboxes_line_numbers() -> None:
    content = "# Plan\n- [ ] one\ntext\n  - [x] two"
    assert [(c.line_number, c.text) for c in iter_checkboxes(content)] == [(2, "one"), (4, "two")]
