"""Call-site collection and best-effort callee resolution."""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from .errors import InvalidInputError, InvariantViolation
from .extractor import Declaration
from .models import (
    CALLABLE_KINDS,
    CallEdge,
    CallTarget,
    EntityRef,
    Location,
    Resolved,
    Unresolved,
)
from .parser import SyntaxNode

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CallSite:
    name: str
    line: int
    column: int


def collect_call_sites(decl: Declaration) -> List[CallSite]:
    """Return every named call made directly in *decl*'s body, in source order."""
    sites: List[CallSite] = []
    for node in decl.walk_body():
        if node.type != "call_expression":
            continue
        fn = node.field("function")
        if fn is None:
            continue
        name = callee_name(fn)
        if name:
            line, col = node.start_point
            sites.append(CallSite(name, line, col))
    return sites


def callee_name(fn: SyntaxNode) -> Optional[str]:
    """Resolve a call's function node to a dotted name (``this.a.b``).

    Calls through a returned function (``make()()``) have no name; the inner
    ``make()`` is collected as its own call site.
    """
    if fn.type in ("identifier", "this", "super"):
        return fn.text
    if fn.type == "member_expression":
        parts: List[str] = []
        current: Optional[SyntaxNode] = fn
        while current is not None and current.type == "member_expression":
            prop = current.field("property")
            if prop is not None:
                parts.append(prop.text)
            current = current.field("object")
        if current is not None and current.type in ("identifier", "this", "super"):
            parts.append(current.text)
        return ".".join(reversed(parts)) if parts else None
    if fn.type == "non_null_expression" and fn.named_children:
        return callee_name(fn.named_children[0])
    return None


class CallResolver:
    """Bind raw callee names to entities.

    Preference order: an entity with the exact qualified name in the
    caller's file (trying enclosing function scopes first, and
    ``this.x`` as ``Class.x``), then the single entity with that qualified
    name anywhere, else the name is kept unresolved.
    """

    def __init__(self, entities: Sequence[Tuple[EntityRef, str]]) -> None:
        self._by_file: Dict[Tuple[str, str], List[EntityRef]] = defaultdict(list)
        self._by_name: Dict[str, List[EntityRef]] = defaultdict(list)
        self._callable_scopes: Set[Tuple[str, str]] = set()
        for ref, kind in entities:
            self._by_file[(ref.file_path, ref.qualified_name)].append(ref)
            self._by_name[ref.qualified_name].append(ref)
            if kind in CALLABLE_KINDS:
                self._callable_scopes.add((ref.file_path, ref.qualified_name))

    def resolve(self, caller: EntityRef, class_name: Optional[str], raw: str) -> CallTarget:
        file_path = caller.file_path
        for candidate in self._local_candidates(caller, class_name, raw):
            refs = self._by_file.get((file_path, candidate))
            if refs:
                return Resolved(refs[0])

        global_refs = self._by_name.get(raw, [])
        if len(global_refs) == 1:
            return Resolved(global_refs[0])
        if len(global_refs) > 1:
            logger.debug("Ambiguous call '%s' from %s: %d candidates", raw, caller, len(global_refs))
        return Unresolved(raw)

    def _local_candidates(self, caller: EntityRef, class_name: Optional[str], raw: str) -> Iterable[str]:
        if raw.startswith("this.") and raw.count(".") == 1:
            if class_name:
                yield f"{class_name}.{raw[5:]}"
            return
        if "." not in raw:
            parts = caller.qualified_name.split(".")
            for i in range(len(parts), 0, -1):
                scope = ".".join(parts[:i])
                if (caller.file_path, scope) in self._callable_scopes:
                    yield f"{scope}.{raw}"
        yield raw


def build_call_edges(
    declarations: Sequence[Tuple[EntityRef, Declaration]],
    resolver: CallResolver,
) -> List[CallEdge]:
    """Produce caller -> callee edges for every declaration with a body."""
    edges: List[CallEdge] = []
    for ref, decl in declarations:
        for site in collect_call_sites(decl):
            edges.append(CallEdge(
                caller=ref,
                callee=resolver.resolve(ref, decl.class_name, site.name),
                raw_callee=site.name,
                location=Location(ref.file_path, site.line, site.column),
            ))
    return edges


class CallGraph:
    """Precomputed caller / callee indexes over a fixed set of edges."""

    def __init__(self, edges: Sequence[CallEdge], entities: Iterable[EntityRef]) -> None:
        known = set(entities)
        for edge in edges:
            if edge.caller not in known:
                raise InvariantViolation("Call edge references a caller outside the snapshot", str(edge.caller))
            if isinstance(edge.callee, Resolved) and edge.callee.entity not in known:
                raise InvariantViolation("Call edge resolves to an entity outside the snapshot", str(edge.callee.entity))

        self.edges: Tuple[CallEdge, ...] = tuple(edges)
        self._by_callee: Dict[str, List[CallEdge]] = defaultdict(list)
        self._by_member: Dict[str, List[CallEdge]] = defaultdict(list)
        self._by_caller: Dict[str, List[CallEdge]] = defaultdict(list)
        for edge in self.edges:
            for name in edge.callee_names():
                self._by_callee[name].append(edge)
            for name in dict.fromkeys(edge.callee_names() + edge.member_names()):
                self._by_member[name].append(edge)
            self._by_caller[edge.caller.qualified_name].append(edge)

    def find_callers(
        self,
        name: str,
        file_path: Optional[str] = None,
        match_member: bool = False,
    ) -> List[CallEdge]:
        """Edges whose resolved or raw callee equals *name*.

        *file_path* keeps only callers located in that file. With
        *match_member*, *name* also matches the last segment of a dotted
        callee, so ``save`` finds ``this.repo.save``.
        """
        _require_name(name)
        index = self._by_member if match_member else self._by_callee
        edges = index.get(name, [])
        if file_path is not None:
            edges = [e for e in edges if e.caller.file_path == file_path]
        return list(edges)

    def find_callees(self, name: str) -> List[CallEdge]:
        """Edges whose caller has the qualified name *name*."""
        _require_name(name)
        return list(self._by_caller.get(name, []))

    @property
    def unresolved_count(self) -> int:
        return sum(1 for e in self.edges if not e.callee.is_resolved)


def _require_name(name: str) -> None:
    if not isinstance(name, str) or not name.strip():
        raise InvalidInputError("A function name is required")
