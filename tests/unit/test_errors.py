"""Tests for the error hierarchy."""

from __future__ import annotations

from attodesk.errors import (
    AmbiguousMatchError,
    DeskError,
    ErrorCategory,
    InvalidInputError,
    NotFoundError,
    PortExhaustedError,
    WorktreeCreationError,
)


def test_not_found_message_and_category() -> None:
    err = NotFoundError("note", "abc")
    assert str(err) == "Note 'abc' was not found."
    assert err.category == ErrorCategory.NOT_FOUND
    assert isinstance(err, DeskError)


def test_ambiguous_is_invalid_input() -> None:
    err = AmbiguousMatchError("foo", 3)
    assert isinstance(err, InvalidInputError)
    assert err.to_dict()["details"] == {"needle": "foo", "count": 3}
    assert err.to_dict()["category"] == "invalid_input"


def test_worktree_error_carries_git_output() -> None:
    err = WorktreeCreationError("/ws/x", "fatal: already exists\n", 128)
    assert err.output == "fatal: already exists\n"
    assert err.exit_code == 128
    assert str(err).endswith("fatal: already exists")


def test_port_exhausted_details() -> None:
    assert PortExhaustedError(1, 2).details == {"start": 1, "end": 2}
