"""Anchored comment threads, one JSON array file per note."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from attodesk.errors import AmbiguousMatchError, InvalidInputError, NotFoundError, SchemaError
from attodesk.protocol.io import load_json, write_json_atomic
from attodesk.protocol.ids import random_id
from attodesk.protocol.models import (
    COMMENT_STATUSES,
    COMMENT_TYPES,
    DEFAULT_STATE_DIR,
    Comment,
    Note,
    parse_iso,
    state_layout,
    utc_now_iso,
)
from attodesk.store.notes import check_note_id

logger = logging.getLogger(__name__)

MAX_SUGGESTIONS = 3


@dataclass(slots=True)
class ThreadSummary:
    thread_id: str
    status: str
    comment_count: int
    anchored_text: str | None
    first_comment: str
    author: str
    created_at: str
    last_activity: str
    comments: list[Comment] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "threadId": self.thread_id,
            "status": self.status,
            "commentCount": self.comment_count,
            "anchoredText": self.anchored_text,
            "firstComment": self.first_comment,
            "author": self.author,
            "createdAt": self.created_at,
            "lastActivity": self.last_activity,
        }
        if self.comments:
            payload["comments"] = [c.to_dict() for c in self.comments]
        return payload


def thread_status(comments: list[Comment]) -> str:
    if any(c.status == "open" for c in comments):
        return "open"
    if comments and all(c.status == "resolved" for c in comments):
        return "resolved"
    return "pending"


def find_suggestions(content: str, search_context: str) -> list[str]:
    """Lines sharing at least half of the words of *search_context*."""
    words = search_context.split()
    if not words:
        return []
    threshold = -(-len(words) // 2)
    suggestions: list[str] = []
    for line in content.split("\n"):
        if not line.strip():
            continue
        if sum(1 for w in words if w in line) >= threshold:
            suggestions.append(line.strip())
        if len(suggestions) == MAX_SUGGESTIONS:
            break
    return suggestions


def locate_anchor(note: Note, comment: Comment) -> int | None:
    """Offset of the comment's anchored text in the current note content.

    Returns None when the text was edited away or now occurs more than once.
    """
    if not comment.section:
        return None
    if note.content.count(comment.section) != 1:
        return None
    return note.content.index(comment.section)


class CommentStore:
    """Comments for the notes of one workspace."""

    def __init__(self, workspace_path: str | Path, state_dir: str = DEFAULT_STATE_DIR) -> None:
        self.workspace_path = Path(workspace_path)
        self.comments_dir = state_layout(self.workspace_path, state_dir)["comments"]

    def _path(self, note_id: str) -> Path:
        return self.comments_dir / f"{check_note_id(note_id)}.json"

    def load(self, note_id: str) -> list[Comment]:
        path = self._path(note_id)
        if not path.exists():
            return []
        try:
            raw = load_json(path)
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Unreadable comments file %s: %s", path, exc)
            return []
        if not isinstance(raw, list):
            logger.warning("Comments file %s is not an array", path)
            return []
        comments: list[Comment] = []
        for item in raw:
            try:
                comments.append(Comment.from_dict(item))
            except SchemaError as exc:
                logger.warning("Skipping malformed comment in %s: %s", path, exc)
        return comments

    def save(self, note_id: str, comments: list[Comment]) -> None:
        write_json_atomic(self._path(note_id), [c.to_dict() for c in comments])

    def add(
        self,
        note: Note,
        text: str,
        *,
        search_context: str,
        comment_target: str,
        author: str = "Agent",
        author_type: str = "agent",
        comment_type: str = "comment",
        parent_id: str | None = None,
    ) -> Comment:
        """Anchor a new comment to *comment_target* inside *search_context*."""
        if comment_type not in COMMENT_TYPES:
            raise InvalidInputError(f"Unknown comment type {comment_type!r}.")
        if not search_context:
            raise InvalidInputError("search_context must not be empty.")

        count = note.content.count(search_context)
        if count == 0:
            suggestions = find_suggestions(note.content, search_context)
            hint = ""
            if suggestions:
                hint = " Similar lines: " + "; ".join(f'"{s}"' for s in suggestions)
            raise NotFoundError(
                "context",
                search_context,
                message=f"search_context was not found in note '{note.id}'.{hint}",
                details={"suggestions": suggestions},
            )
        if count > 1:
            raise AmbiguousMatchError(search_context, count, what="search_context")

        target_count = search_context.count(comment_target) if comment_target else 0
        if target_count == 0:
            raise InvalidInputError(
                f"comment_target {comment_target!r} is not a substring of search_context."
            )
        if target_count > 1:
            raise AmbiguousMatchError(comment_target, target_count, what="comment_target")

        comments = self.load(note.id)
        thread_id: str | None = None
        if parent_id is not None:
            parent = next((c for c in comments if c.id == parent_id), None)
            if parent is None:
                raise NotFoundError("comment", parent_id)
            thread_id = parent.thread_id

        comment_id = random_id()
        comment = Comment(
            id=comment_id,
            note_id=note.id,
            content=text,
            author=author,
            author_type=author_type,  # type: ignore[arg-type]
            type=comment_type,  # type: ignore[arg-type]
            status="open",
            thread_id=thread_id or comment_id,
            parent_id=parent_id,
            section=comment_target,
        )
        comments.append(comment)
        self.save(note.id, comments)
        return comment

    def thread(
        self,
        note_id: str,
        thread_id: str | None = None,
        comment_id: str | None = None,
    ) -> list[Comment]:
        comments = self.load(note_id)
        resolved = self._resolve_thread_id(comments, thread_id, comment_id)
        thread = [c for c in comments if c.thread_id == resolved]
        if not thread:
            raise NotFoundError("thread", resolved)
        thread.sort(key=lambda c: parse_iso(c.created_at))
        return thread

    def reply(
        self,
        note_id: str,
        text: str,
        *,
        thread_id: str | None = None,
        comment_id: str | None = None,
        author: str = "Agent",
        author_type: str = "agent",
        comment_type: str = "comment",
    ) -> Comment:
        if comment_type not in COMMENT_TYPES:
            raise InvalidInputError(f"Unknown comment type {comment_type!r}.")
        existing = self.thread(note_id, thread_id=thread_id, comment_id=comment_id)
        latest = existing[-1]
        reply = Comment(
            id=random_id(),
            note_id=note_id,
            content=text,
            author=author,
            author_type=author_type,  # type: ignore[arg-type]
            type=comment_type,  # type: ignore[arg-type]
            status="open",
            thread_id=latest.thread_id,
            parent_id=latest.id,
            section=latest.section,
        )
        comments = self.load(note_id)
        comments.append(reply)
        self.save(note_id, comments)
        return reply

    def threads(
        self,
        note_id: str,
        status: str | None = None,
        include_comments: bool = False,
    ) -> list[ThreadSummary]:
        grouped: dict[str, list[Comment]] = {}
        for comment in self.load(note_id):
            grouped.setdefault(comment.thread_id, []).append(comment)

        summaries: list[ThreadSummary] = []
        for tid, members in grouped.items():
            members.sort(key=lambda c: parse_iso(c.created_at))
            summary = ThreadSummary(
                thread_id=tid,
                status=thread_status(members),
                comment_count=len(members),
                anchored_text=members[0].section,
                first_comment=members[0].content,
                author=members[0].author,
                created_at=members[0].created_at,
                last_activity=members[-1].updated_at,
                comments=members if include_comments else [],
            )
            if status is not None and summary.status != status:
                continue
            summaries.append(summary)
        summaries.sort(key=lambda s: parse_iso(s.created_at))
        return summaries

    def set_status(self, note_id: str, comment_id: str, status: str) -> Comment:
        if status not in COMMENT_STATUSES:
            raise InvalidInputError(f"Unknown comment status {status!r}.")
        comments = self.load(note_id)
        for comment in comments:
            if comment.id == comment_id:
                comment.status = status  # type: ignore[assignment]
                comment.updated_at = utc_now_iso()
                self.save(note_id, comments)
                return comment
        raise NotFoundError("comment", comment_id)

    def delete(self, note_id: str, comment_id: str) -> None:
        comments = self.load(note_id)
        remaining = [c for c in comments if c.id != comment_id]
        if len(remaining) == len(comments):
            raise NotFoundError("comment", comment_id)
        self.save(note_id, remaining)

    @staticmethod
    def _resolve_thread_id(
        comments: list[Comment],
        thread_id: str | None,
        comment_id: str | None,
    ) -> str:
        if thread_id:
            return thread_id
        if comment_id:
            for comment in comments:
                if comment.id == comment_id:
                    return comment.thread_id
            raise NotFoundError("comment", comment_id)
        raise InvalidInputError("Either thread_id or comment_id is required.")
