"""Immutable codebase snapshot and the queries served from it."""

from __future__ import annotations

import fnmatch
import logging
from collections import Counter
from typing import Dict, Iterable, List, Optional, Sequence

from .call_graph import CallGraph
from .dependency_graph import DependencyGraph
from .errors import InvalidInputError, InvariantViolation
from .models import (
    ENTITY_KINDS,
    SEVERITIES,
    CallEdge,
    Entity,
    EntityRef,
    Issue,
    SourceFile,
    Summary,
)

logger = logging.getLogger(__name__)

_GLOB_CHARS = set("*?[")


class CodebaseSnapshot:
    """Files, entities and both graphs produced by one ``analyze`` call.

    Nothing here mutates after construction, so a snapshot can be shared
    freely between readers. Re-analysis builds a new snapshot.
    """

    def __init__(
        self,
        files: Sequence[SourceFile],
        entities: Sequence[Entity],
        call_graph: CallGraph,
        dependency_graph: DependencyGraph,
        file_issues: Iterable[Issue] = (),
    ) -> None:
        self._files: Dict[str, SourceFile] = {}
        for source in files:
            self._files[source.path] = source
        self._entities: tuple = tuple(entities)
        self._by_ref: Dict[EntityRef, Entity] = {e.ref: e for e in self._entities}
        self._by_name: Dict[str, List[Entity]] = {}
        for entity in self._entities:
            self._by_name.setdefault(entity.qualified_name, []).append(entity)
        self.call_graph = call_graph
        self.dependency_graph = dependency_graph
        self._file_issues: tuple = tuple(file_issues)
        self._check_invariants()

    def _check_invariants(self) -> None:
        if len(self._by_ref) != len(self._entities):
            raise InvariantViolation("Duplicate entity identity in snapshot")
        for source in self._files.values():
            for ref in source.entities:
                entity = self._by_ref.get(ref)
                if entity is None or entity.file_path != source.path:
                    raise InvariantViolation("File lists an entity it does not declare", str(ref))

    # ------------------------------------------------------------------
    # Basic accessors
    # ------------------------------------------------------------------

    @property
    def files(self) -> List[SourceFile]:
        return list(self._files.values())

    @property
    def entities(self) -> List[Entity]:
        return list(self._entities)

    @property
    def issues(self) -> List[Issue]:
        """File-level issues followed by entity issues, in snapshot order."""
        result = list(self._file_issues)
        for entity in self._entities:
            result.extend(entity.issues)
        return result

    def get_file(self, path: str) -> Optional[SourceFile]:
        return self._files.get(path)

    def entities_in(self, path: str) -> List[Entity]:
        source = self._files.get(path)
        if source is None:
            return []
        return [self._by_ref[ref] for ref in source.entities]

    def resolve(self, ref: EntityRef) -> Optional[Entity]:
        return self._by_ref.get(ref)

    # ------------------------------------------------------------------
    # Query engine
    # ------------------------------------------------------------------

    def search_entities(self, pattern: str, kind: Optional[str] = None) -> List[Entity]:
        """Case-insensitive match over qualified names.

        Patterns containing ``*``, ``?`` or ``[`` are globs matched against
        the whole name; anything else is a substring test. An empty pattern
        matches every entity.
        """
        if pattern is None or not isinstance(pattern, str):
            raise InvalidInputError("pattern is required")
        if kind is not None and kind not in ENTITY_KINDS:
            raise InvalidInputError(f"Unknown entity kind '{kind}', expected one of {', '.join(ENTITY_KINDS)}")

        needle = pattern.lower()
        if _GLOB_CHARS & set(needle):
            def matches(name: str) -> bool:
                return fnmatch.fnmatchcase(name.lower(), needle)
        else:
            def matches(name: str) -> bool:
                return needle in name.lower()

        return [
            e for e in self._entities
            if (kind is None or e.kind == kind) and matches(e.qualified_name)
        ]

    def get_entity(self, name: str) -> Optional[Entity]:
        """First entity by snapshot order with qualified name *name*.

        Names can repeat across files; use :meth:`find_entities` to see all
        of them.
        """
        if not isinstance(name, str) or not name.strip():
            raise InvalidInputError("functionName is required")
        matches = self._by_name.get(name)
        if not matches:
            return None
        if len(matches) > 1:
            logger.debug("'%s' is declared %d times; returning the first", name, len(matches))
        return matches[0]

    def find_entities(self, name: str) -> List[Entity]:
        return list(self._by_name.get(name, []))

    def find_callers(
        self,
        name: str,
        file_path: Optional[str] = None,
        match_member: bool = False,
    ) -> List[CallEdge]:
        return self.call_graph.find_callers(name, file_path, match_member)

    def find_callees(self, name: str) -> List[CallEdge]:
        return self.call_graph.find_callees(name)

    def get_dependents(self, file_path: str) -> List[str]:
        return self.dependency_graph.get_dependents(file_path)

    def get_dependencies(self, file_path: str) -> List[str]:
        return self.dependency_graph.get_dependencies(file_path)

    def find_circular_dependencies(self) -> List[List[str]]:
        return self.dependency_graph.find_circular_dependencies()

    def get_codebase_summary(self) -> Summary:
        by_kind = Counter(e.kind for e in self._entities)
        issues = self.issues
        by_severity = Counter(i.severity for i in issues)
        scores = [e.complexity for e in self._entities if e.complexity is not None]
        average = round(sum(scores) / len(scores), 2) if scores else 0.0

        return Summary(
            total_files=len(self._files),
            total_entities=len(self._entities),
            entities_by_kind={k: by_kind.get(k, 0) for k in ENTITY_KINDS},
            average_complexity=average,
            total_issues=len(issues),
            issues_by_severity={s: by_severity.get(s, 0) for s in SEVERITIES},
            total_dependency_edges=len(self.dependency_graph.edges),
            total_cycles=len(self.find_circular_dependencies()),
            total_call_edges=len(self.call_graph.edges),
            unresolved_calls=self.call_graph.unresolved_count,
            parse_failures=sum(1 for f in self._files.values() if f.parse_error is not None),
        )
