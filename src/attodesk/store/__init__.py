"""Per-workspace note and comment documents."""

from attodesk.store.comments import CommentStore, ThreadSummary, locate_anchor
from attodesk.store.notes import SPEC_NOTE_ID, NoteStore, format_with_line_numbers

__all__ = [
    "CommentStore",
    "NoteStore",
    "SPEC_NOTE_ID",
    "ThreadSummary",
    "format_with_line_numbers",
    "locate_anchor",
]
