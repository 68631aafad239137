"""Checkbox task lines embedded in note prose.

::

    - [ ] todo
    - [/] in progress
    - [x] done, optionally linking [Title](intent://local/task/<note-id>)
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

from attodesk.errors import InvalidInputError

CHECKBOX_RE = re.compile(r"^(\s*)-\s+\[([ x/])\]\s+(.*)$")
TASK_LINK_RE = re.compile(r"\[.*?\]\(intent://local/task/([^)]+)\)")

MARKER_TO_STATUS = {" ": "todo", "/": "in-progress", "x": "done"}
STATUS_TO_MARKER = {v: k for k, v in MARKER_TO_STATUS.items()}
CHECKBOX_STATUSES = tuple(STATUS_TO_MARKER)


@dataclass(slots=True, frozen=True)
class CheckboxLine:
    line_number: int  # 1-based
    indent: str
    status: str
    text: str
    linked_task_id: str | None = None

    def render(self) -> str:
        return format_checkbox(self.text, self.status, self.indent)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "lineNumber": self.line_number,
            "status": self.status,
            "text": self.text,
        }
        if self.linked_task_id:
            payload["linkedTaskId"] = self.linked_task_id
        return payload


def parse_checkbox_line(line: str, line_number: int = 0) -> CheckboxLine | None:
    match = CHECKBOX_RE.match(line)
    if match is None:
        return None
    indent, marker, text = match.groups()
    link = TASK_LINK_RE.search(text)
    return CheckboxLine(
        line_number=line_number,
        indent=indent,
        status=MARKER_TO_STATUS[marker],
        text=text,
        linked_task_id=link.group(1) if link else None,
    )


def format_checkbox(text: str, status: str = "todo", indent: str = "") -> str:
    marker = STATUS_TO_MARKER.get(status)
    if marker is None:
        raise InvalidInputError(
            f"Unknown checkbox status {status!r}. Use one of: {', '.join(CHECKBOX_STATUSES)}."
        )
    return f"{indent}- [{marker}] {text}"


def task_link(title: str, note_id: str) -> str:
    return f"[{title}](intent://local/task/{note_id})"


def iter_checkboxes(content: str) -> list[CheckboxLine]:
    found: list[CheckboxLine] = []
    for index, line in enumerate(content.split("\n"), start=1):
        parsed = parse_checkbox_line(line, index)
        if parsed is not None:
            found.append(parsed)
    return found
