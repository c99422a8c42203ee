"""codeanalysis — structural analysis of TypeScript / JavaScript codebases."""

from __future__ import annotations

__version__ = "0.1.0"

from .analyzer import analyze
from .errors import (
    CodeAnalysisError,
    InvalidInputError,
    InvariantViolation,
    NotFoundError,
    ParseError,
)
from .snapshot import CodebaseSnapshot

__all__ = [
    "__version__",
    "analyze",
    "CodebaseSnapshot",
    "CodeAnalysisError",
    "InvalidInputError",
    "InvariantViolation",
    "NotFoundError",
    "ParseError",
]
