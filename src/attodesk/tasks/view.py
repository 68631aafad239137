"""Read-only dependency view over a workspace's task notes.

Level definition::

    level[n] = 0                                 if n has no prerequisites
    level[n] = 1 + max(level[p] for p in prereqs) otherwise

Nodes caught in a cycle keep ``level == -1``.  Cycles are reported, never
rejected.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Any

from attodesk.protocol.models import Note

DONE_STATUSES = frozenset({"done", "completed"})


@dataclass(slots=True)
class TaskNode:
    note_id: str
    title: str
    status: str
    level: int = -1
    depends_on: list[str] = field(default_factory=list)
    depended_by: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "noteId": self.note_id,
            "title": self.title,
            "status": self.status,
            "level": self.level,
            "dependsOn": list(self.depends_on),
            "dependedBy": list(self.depended_by),
        }


class TaskGraphView:
    """Directed graph of task notes, prerequisite -> dependent."""

    def __init__(self) -> None:
        self._nodes: dict[str, TaskNode] = {}

    @classmethod
    def from_notes(cls, notes: list[Note]) -> TaskGraphView:
        view = cls()
        for note in notes:
            meta = note.task_metadata
            if meta is None:
                continue
            deps = [d.prerequisite_note_id for d in meta.dependencies or []]
            view._nodes[note.id] = TaskNode(
                note_id=note.id,
                title=note.title,
                status=meta.status,
                depends_on=list(dict.fromkeys(deps)),
            )
        for node in view._nodes.values():
            for dep_id in node.depends_on:
                dep = view._nodes.get(dep_id)
                if dep and node.note_id not in dep.depended_by:
                    dep.depended_by.append(node.note_id)
        view.compute_levels()
        return view

    def __len__(self) -> int:
        return len(self._nodes)

    def get(self, note_id: str) -> TaskNode | None:
        return self._nodes.get(note_id)

    @property
    def nodes(self) -> list[TaskNode]:
        return list(self._nodes.values())

    def compute_levels(self) -> None:
        in_degree = {tid: 0 for tid in self._nodes}
        for node in self._nodes.values():
            node.level = -1
            for dep_id in node.depends_on:
                if dep_id in self._nodes:
                    in_degree[node.note_id] += 1

        queue: deque[str] = deque()
        for tid, deg in in_degree.items():
            if deg == 0:
                self._nodes[tid].level = 0
                queue.append(tid)

        while queue:
            tid = queue.popleft()
            node = self._nodes[tid]
            for child_id in node.depended_by:
                child = self._nodes[child_id]
                child.level = max(child.level, node.level + 1)
                in_degree[child_id] -= 1
                if in_degree[child_id] == 0:
                    queue.append(child_id)

    def is_done(self, note_id: str) -> bool:
        node = self._nodes.get(note_id)
        return node is not None and node.status in DONE_STATUSES

    def ready(self) -> list[TaskNode]:
        """``not_started`` tasks whose prerequisites are all done."""
        return [
            n for n in self._nodes.values()
            if n.status == "not_started" and all(self.is_done(d) for d in n.depends_on)
        ]

    def blocked(self) -> list[TaskNode]:
        return [
            n for n in self._nodes.values()
            if n.status not in DONE_STATUSES and not all(self.is_done(d) for d in n.depends_on)
        ]

    def find_cycles(self) -> list[list[str]]:
        """Each cycle once, as the list of note ids along it."""
        cycles: list[list[str]] = []
        seen: set[frozenset[str]] = set()
        color: dict[str, int] = {tid: 0 for tid in self._nodes}  # 0 new, 1 on stack, 2 done
        stack: list[str] = []

        def visit(tid: str) -> None:
            color[tid] = 1
            stack.append(tid)
            for dep_id in self._nodes[tid].depends_on:
                if dep_id not in self._nodes:
                    continue
                if color[dep_id] == 1:
                    cycle = stack[stack.index(dep_id):]
                    key = frozenset(cycle)
                    if key not in seen:
                        seen.add(key)
                        cycles.append(list(cycle))
                elif color[dep_id] == 0:
                    visit(dep_id)
            stack.pop()
            color[tid] = 2

        for tid in self._nodes:
            if color[tid] == 0:
                visit(tid)
        return cycles

    def execution_order(self) -> list[list[str]]:
        """Note ids grouped by level; cyclic nodes are omitted."""
        leveled = [n for n in self._nodes.values() if n.level >= 0]
        if not leveled:
            return []
        levels: list[list[str]] = [[] for _ in range(max(n.level for n in leveled) + 1)]
        for node in leveled:
            levels[node.level].append(node.note_id)
        return levels

    def to_dict(self) -> dict[str, Any]:
        return {
            "nodes": [n.to_dict() for n in self._nodes.values()],
            "levels": self.execution_order(),
            "cycles": self.find_cycles(),
        }
