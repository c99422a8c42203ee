"""Exception taxonomy shared by the engine and its front ends."""

from __future__ import annotations

from typing import Optional


class CodeAnalysisError(Exception):
    """Base class for every error raised by the engine."""


class InvalidInputError(CodeAnalysisError, ValueError):
    """A required argument is missing or malformed.

    Raised before any work is done, so no snapshot is ever built from
    rejected input.
    """


class NotFoundError(CodeAnalysisError, LookupError):
    """The requested file is not part of the snapshot."""


class ParseError(CodeAnalysisError):
    """A single file could not be parsed.

    Absorbed by the analyzer: the file contributes zero entities and a
    ``parse-error`` issue instead of aborting the batch.
    """

    def __init__(
        self,
        path: str,
        message: str,
        line: int = 1,
        column: int = 0,
    ) -> None:
        self.path = path
        self.line = line
        self.column = column
        super().__init__(f"{path}:{line}:{column}: {message}")
        self.reason = message


class InvariantViolation(CodeAnalysisError, RuntimeError):
    """The snapshot violates one of its structural guarantees.

    This means a graph builder is broken; it is never absorbed.
    """

    def __init__(self, message: str, detail: Optional[str] = None) -> None:
        self.detail = detail
        super().__init__(message if detail is None else f"{message}: {detail}")
