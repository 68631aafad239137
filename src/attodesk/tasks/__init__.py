"""Task notes, inline task conversion, checkboxes and delegation."""

from attodesk.tasks.checkboxes import (
    CheckboxLine,
    format_checkbox,
    iter_checkboxes,
    parse_checkbox_line,
    task_link,
)
from attodesk.tasks.graph import ConversionResult, DelegationResult, TaskGraph, build_initial_message
from attodesk.tasks.specialists import Specialist, SpecialistRegistry
from attodesk.tasks.view import TaskGraphView, TaskNode

__all__ = [
    "CheckboxLine",
    "ConversionResult",
    "DelegationResult",
    "Specialist",
    "SpecialistRegistry",
    "TaskGraph",
    "TaskGraphView",
    "TaskNode",
    "build_initial_message",
    "format_checkbox",
    "iter_checkboxes",
    "parse_checkbox_line",
    "task_link",
]
