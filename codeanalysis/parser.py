"""Source parsing built on Tree-sitter grammars for TypeScript and JavaScript.

Downstream modules never touch Tree-sitter directly: every tree is exposed
through :class:`SyntaxNode`, so another :class:`Parser` implementation can be
swapped in as long as it yields the same node types.
"""

from __future__ import annotations

import importlib
import logging
import posixpath
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Tuple

from .errors import ParseError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Language <-> file-extension mapping
# ---------------------------------------------------------------------------
LANGUAGE_MAP: Dict[str, str] = {
    ".ts": "typescript",
    ".mts": "typescript",
    ".cts": "typescript",
    ".tsx": "tsx",
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
}

DEFAULT_LANGUAGE = "typescript"
SUPPORTED_EXTENSIONS = frozenset(LANGUAGE_MAP)

# language -> (grammar module, factory returning the Language capsule)
_GRAMMARS: Dict[str, Tuple[str, str]] = {
    "typescript": ("tree_sitter_typescript", "language_typescript"),
    "tsx": ("tree_sitter_typescript", "language_tsx"),
    "javascript": ("tree_sitter_javascript", "language"),
}


def language_for(path: str) -> str:
    """Grammar used for *path*; unknown extensions parse as TypeScript."""
    ext = posixpath.splitext(path)[1].lower()
    return LANGUAGE_MAP.get(ext, DEFAULT_LANGUAGE)


# ===================================================================
# Grammar-agnostic syntax tree
# ===================================================================

class SyntaxNode:
    """Read-only view over one grammar node.

    Points are ``(line, column)`` with 1-based lines and 0-based character
    columns, so multi-byte text does not skew reported positions.
    """

    __slots__ = ("_node", "_source")

    def __init__(self, node: Any, source: bytes) -> None:
        self._node = node
        self._source = source

    def __repr__(self) -> str:
        line, col = self.start_point
        return f"<SyntaxNode {self.type} {line}:{col}>"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, SyntaxNode) and self._node == other._node

    def __hash__(self) -> int:
        return hash((self._node.start_byte, self._node.end_byte, self._node.type))

    @property
    def type(self) -> str:
        return self._node.type

    @property
    def text(self) -> str:
        return self._source[self._node.start_byte:self._node.end_byte].decode("utf-8", errors="replace")

    @property
    def start_point(self) -> Tuple[int, int]:
        return self._point(self._node.start_byte, self._node.start_point)

    @property
    def end_point(self) -> Tuple[int, int]:
        return self._point(self._node.end_byte, self._node.end_point)

    @property
    def is_named(self) -> bool:
        return self._node.is_named

    @property
    def has_error(self) -> bool:
        return self._node.has_error

    @property
    def is_missing(self) -> bool:
        return self._node.is_missing

    @property
    def is_error(self) -> bool:
        return self._node.is_error or self._node.is_missing

    @property
    def children(self) -> List["SyntaxNode"]:
        return [SyntaxNode(c, self._source) for c in self._node.children]

    @property
    def named_children(self) -> List["SyntaxNode"]:
        return [SyntaxNode(c, self._source) for c in self._node.named_children]

    @property
    def parent(self) -> Optional["SyntaxNode"]:
        parent = self._node.parent
        return SyntaxNode(parent, self._source) if parent is not None else None

    def field(self, name: str) -> Optional["SyntaxNode"]:
        child = self._node.child_by_field_name(name)
        return SyntaxNode(child, self._source) if child is not None else None

    def walk(self) -> Iterator["SyntaxNode"]:
        """Pre-order traversal of this node and all descendants."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def _point(self, byte_offset: int, ts_point: Any) -> Tuple[int, int]:
        row, byte_col = ts_point[0], ts_point[1]
        line_start = byte_offset - byte_col
        col = len(self._source[line_start:byte_offset].decode("utf-8", errors="replace"))
        return row + 1, col


@dataclass
class SyntaxTree:
    path: str
    language: str
    root: SyntaxNode

    def first_error(self) -> Optional[SyntaxNode]:
        """Return the earliest error or missing-token node, if any."""
        if not self.root.has_error:
            return None
        stack = [self.root]
        while stack:
            node = stack.pop()
            if node.is_error:
                return node
            stack.extend(reversed([c for c in node.children if c.has_error or c.is_error]))
        return self.root


# ===================================================================
# Abstract Parser Interface
# ===================================================================

class Parser(ABC):
    """Abstract base class for source parsers."""

    @abstractmethod
    def parse(self, path: str, text: str) -> SyntaxTree:
        """Parse *text* of the file at *path*, raising :class:`ParseError`."""
        ...

    @abstractmethod
    def supports(self, path: str) -> bool:
        """Return True if this parser can handle *path*."""
        ...


# ===================================================================
# Tree-sitter Parser
# ===================================================================

class TreeSitterParser(Parser):
    """TypeScript / TSX / JavaScript parser built on Tree-sitter.

    Tree-sitter recovers from syntax errors and always yields a tree. With
    ``tolerant=False`` (the default) a tree containing error nodes is
    rejected with :class:`ParseError`; with ``tolerant=True`` the recovered
    tree is returned and extraction works on whatever was recognised.
    """

    def __init__(self, tolerant: bool = False) -> None:
        self.tolerant = tolerant
        self._parsers: Dict[str, Any] = {}

    def supports(self, path: str) -> bool:
        try:
            self._parser_for(language_for(path))
        except ParseError:
            return False
        return True

    def parse(self, path: str, text: str) -> SyntaxTree:
        language = language_for(path)
        parser = self._parser_for(language, path)
        source = text.encode("utf-8", errors="replace")
        ts_tree = parser.parse(source)
        tree = SyntaxTree(path=path, language=language, root=SyntaxNode(ts_tree.root_node, source))

        error = tree.first_error()
        if error is not None:
            line, col = error.start_point
            if not self.tolerant:
                kind = "missing token" if error.is_missing else "unexpected input"
                raise ParseError(path, f"syntax error ({kind})", line, col)
            logger.debug("Tolerating syntax error in %s at %d:%d", path, line, col)
        return tree

    def _parser_for(self, language: str, path: str = "") -> Any:
        cached = self._parsers.get(language)
        if cached is not None:
            return cached

        from tree_sitter import Language, Parser as TSParser

        mod_name, factory = _GRAMMARS[language]
        try:
            mod = importlib.import_module(mod_name)
            ts_lang = Language(getattr(mod, factory)())
        except (ImportError, AttributeError) as exc:
            raise ParseError(
                path or language,
                f"grammar '{mod_name}' unavailable for {language}: {exc}",
            ) from exc

        parser = TSParser(ts_lang)
        self._parsers[language] = parser
        logger.debug("Loaded tree-sitter parser for %s", language)
        return parser
