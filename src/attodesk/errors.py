"""Attodesk error hierarchy."""

from __future__ import annotations

from enum import StrEnum
from typing import Any


class ErrorCategory(StrEnum):
    """Category of error for classification and handling."""

    NOT_FOUND = "not_found"
    INVALID_INPUT = "invalid_input"
    EXTERNAL_TOOL = "external_tool"
    BINARY_NOT_FOUND = "binary_not_found"
    PORT_EXHAUSTION = "port_exhaustion"
    SCHEMA = "schema"
    INTERNAL = "internal"


class DeskError(Exception):
    """Base error for all attodesk exceptions."""

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory = ErrorCategory.INTERNAL,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.category = category
        self.details: dict[str, Any] = details or {}

    def __repr__(self) -> str:
        return f"{type(self).__name__}({str(self)!r}, category={self.category!r})"

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": type(self).__name__,
            "category": str(self.category),
            "message": str(self),
            "details": dict(self.details),
        }


class NotFoundError(DeskError):
    """A note, comment, thread, workspace, subscription or specialist is missing."""

    def __init__(self, kind: str, identifier: str, *, message: str | None = None, **kwargs: Any) -> None:
        super().__init__(
            message or f"{kind.capitalize()} '{identifier}' was not found.",
            category=ErrorCategory.NOT_FOUND,
            **kwargs,
        )
        self.kind = kind
        self.identifier = identifier


class InvalidInputError(DeskError):
    """Caller-supplied input cannot be applied."""

    def __init__(self, message: str, **kwargs: Any) -> None:
        super().__init__(message, category=ErrorCategory.INVALID_INPUT, **kwargs)


class AmbiguousMatchError(InvalidInputError):
    """A text lookup matched more than one candidate."""

    def __init__(self, needle: str, count: int, *, what: str = "text") -> None:
        super().__init__(
            f"{what.capitalize()} {needle!r} matched {count} times. Be more specific.",
            details={"needle": needle, "count": count},
        )
        self.needle = needle
        self.count = count


class ExternalToolError(DeskError):
    """A git or process invocation exited non-zero where that is fatal."""

    def __init__(
        self,
        message: str,
        *,
        output: str = "",
        exit_code: int | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, category=ErrorCategory.EXTERNAL_TOOL, **kwargs)
        self.output = output
        self.exit_code = exit_code


class InvalidBaseRefError(ExternalToolError):
    """The requested base ref does not resolve to a commit."""

    def __init__(self, base_ref: str, repository_path: str, *, output: str = "") -> None:
        super().__init__(
            f"Could not resolve base ref '{base_ref}' in repository '{repository_path}'.",
            output=output,
            details={"base_ref": base_ref, "repository_path": repository_path},
        )
        self.base_ref = base_ref


class WorktreeCreationError(ExternalToolError):
    """``git worktree add`` failed; ``output`` holds git's diagnostic text."""

    def __init__(self, path: str, output: str, exit_code: int | None = None) -> None:
        super().__init__(
            f"Failed to create worktree at '{path}': {output.strip()}",
            output=output,
            exit_code=exit_code,
            details={"path": path},
        )


class ServerLaunchError(ExternalToolError):
    """The agent server process could not be launched."""


class BinaryNotFoundError(DeskError):
    """The agent server binary is neither configured nor on PATH."""

    def __init__(self, binary: str) -> None:
        super().__init__(
            f"{binary} binary not found. Install it or set agent_server.binary_path in the attodesk config.",
            category=ErrorCategory.BINARY_NOT_FOUND,
            details={"binary": binary},
        )
        self.binary = binary


class PortExhaustedError(DeskError):
    """No free port is left in the configured range."""

    def __init__(self, start: int, end: int) -> None:
        super().__init__(
            f"No free port available in range {start}-{end}.",
            category=ErrorCategory.PORT_EXHAUSTION,
            details={"start": start, "end": end},
        )


class SchemaError(DeskError):
    """A persisted document does not match its record schema."""

    def __init__(self, record: str, message: str) -> None:
        super().__init__(f"Invalid {record} document: {message}", category=ErrorCategory.SCHEMA)
        self.record = record
