"""File-level dependency graph: specifier resolution, adjacency and cycles."""

from __future__ import annotations

import logging
import posixpath
from collections import defaultdict
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from .errors import InvalidInputError, InvariantViolation, NotFoundError
from .models import DependencyEdge, ImportStatement

logger = logging.getLogger(__name__)

RESOLVE_EXTENSIONS = (".ts", ".tsx", ".d.ts", ".js", ".jsx", ".mjs", ".cjs", ".mts", ".cts")
_ESM_SUBSTITUTES = {
    ".js": (".ts", ".tsx"),
    ".jsx": (".tsx",),
    ".mjs": (".mts",),
    ".cjs": (".cts",),
}


# ===================================================================
# Specifier resolution
# ===================================================================

def normalize_path(path: str) -> str:
    """Canonical POSIX form used as the file key (``./a/../b.ts`` -> ``b.ts``)."""
    normalized = posixpath.normpath(path.replace("\\", "/"))
    return "" if normalized == "." else normalized


class SpecifierResolver:
    """Map import specifiers to analyzed file paths.

    Relative specifiers are resolved against the importing file's
    directory; bare specifiers go through the configured path aliases.
    Anything else is an external module.
    """

    def __init__(self, file_paths: Iterable[str], aliases: Optional[Mapping[str, str]] = None) -> None:
        self._files: Dict[str, str] = {normalize_path(p): p for p in file_paths}
        # Longest alias prefix wins.
        self._aliases: List[Tuple[str, str]] = sorted(
            (aliases or {}).items(), key=lambda item: len(item[0]), reverse=True,
        )

    def resolve(self, from_file: str, specifier: str) -> Optional[str]:
        if specifier.startswith((".", "/")):
            if specifier.startswith("/"):
                base = specifier.lstrip("/")
            else:
                base = posixpath.join(posixpath.dirname(normalize_path(from_file)), specifier)
            return self._lookup(normalize_path(base))
        for prefix, target in self._aliases:
            if specifier.startswith(prefix):
                return self._lookup(normalize_path(target + specifier[len(prefix):]))
        return None

    def _lookup(self, base: str) -> Optional[str]:
        for candidate in self._candidates(base):
            found = self._files.get(candidate)
            if found is not None:
                return found
        return None

    @staticmethod
    def _candidates(base: str) -> Iterable[str]:
        yield base
        for ext in RESOLVE_EXTENSIONS:
            yield base + ext
        stem, ext = posixpath.splitext(base)
        for substitute in _ESM_SUBSTITUTES.get(ext, ()):
            yield stem + substitute
        for ext in RESOLVE_EXTENSIONS:
            yield posixpath.join(base, "index" + ext)


def build_dependency_edges(
    imports: Mapping[str, Sequence[ImportStatement]],
    resolver: SpecifierResolver,
) -> List[DependencyEdge]:
    """One edge per module reference, in file then statement order."""
    edges: List[DependencyEdge] = []
    for from_file, statements in imports.items():
        for stmt in statements:
            target = resolver.resolve(from_file, stmt.specifier)
            edges.append(DependencyEdge(
                from_file=from_file,
                to_file=target if target is not None else stmt.specifier,
                kind=stmt.kind,
                specifier=stmt.specifier,
                external=target is None,
            ))
    return edges


# ===================================================================
# Graph
# ===================================================================

class DependencyGraph:
    """Nodes are analyzed files; external targets stay on edges only."""

    def __init__(self, nodes: Sequence[str], edges: Sequence[DependencyEdge], max_cycles: int = 0) -> None:
        self.max_cycles = max_cycles
        self.nodes: Tuple[str, ...] = tuple(nodes)
        node_set = set(self.nodes)
        for edge in edges:
            if edge.from_file not in node_set:
                raise InvariantViolation("Dependency edge starts outside the snapshot", edge.from_file)
        self.edges: Tuple[DependencyEdge, ...] = tuple(edges)

        self.adjacency: Dict[str, List[str]] = {node: [] for node in self.nodes}
        self._dependents: Dict[str, List[str]] = defaultdict(list)
        self._dependencies: Dict[str, List[str]] = defaultdict(list)
        for edge in self.edges:
            if not edge.external and edge.to_file not in self.adjacency[edge.from_file]:
                self.adjacency[edge.from_file].append(edge.to_file)
            if edge.from_file not in self._dependents[edge.to_file]:
                self._dependents[edge.to_file].append(edge.from_file)
            if edge.to_file not in self._dependencies[edge.from_file]:
                self._dependencies[edge.from_file].append(edge.to_file)

        self._cycles: Optional[List[List[str]]] = None

    def get_dependents(self, file_path: str) -> List[str]:
        """Files with an edge pointing at *file_path*."""
        self._require_known(file_path)
        return list(self._dependents.get(file_path, []))

    def get_dependencies(self, file_path: str) -> List[str]:
        """Targets (files or external modules) referenced by *file_path*."""
        self._require_known(file_path)
        return list(self._dependencies.get(file_path, []))

    def find_circular_dependencies(self) -> List[List[str]]:
        if self._cycles is None:
            self._cycles = find_cycles(self.nodes, self.adjacency, self.max_cycles)
        return [list(cycle) for cycle in self._cycles]

    def _require_known(self, file_path: str) -> None:
        if not isinstance(file_path, str) or not file_path.strip():
            raise InvalidInputError("filePath is required")
        if file_path not in self.adjacency and file_path not in self._dependents:
            raise NotFoundError(f"File not found in analyzed codebase: {file_path}")


# ===================================================================
# Cycle detection
# ===================================================================

def strongly_connected_components(
    nodes: Sequence[str],
    adjacency: Mapping[str, Sequence[str]],
) -> List[List[str]]:
    """Tarjan's algorithm, iterative so deep import chains cannot overflow."""
    index: Dict[str, int] = {}
    lowlink: Dict[str, int] = {}
    on_stack: Set[str] = set()
    stack: List[str] = []
    components: List[List[str]] = []
    counter = 0

    for root in nodes:
        if root in index:
            continue
        work: List[Tuple[str, int]] = [(root, 0)]
        while work:
            v, i = work.pop()
            if i == 0:
                index[v] = lowlink[v] = counter
                counter += 1
                stack.append(v)
                on_stack.add(v)
            successors = adjacency.get(v, ())
            if i < len(successors):
                work.append((v, i + 1))
                w = successors[i]
                if w not in index:
                    work.append((w, 0))
                elif w in on_stack:
                    lowlink[v] = min(lowlink[v], index[w])
                continue
            if lowlink[v] == index[v]:
                component: List[str] = []
                while True:
                    w = stack.pop()
                    on_stack.discard(w)
                    component.append(w)
                    if w == v:
                        break
                components.append(component)
            if work:
                parent = work[-1][0]
                lowlink[parent] = min(lowlink[parent], lowlink[v])
    return components


def find_cycles(
    nodes: Sequence[str],
    adjacency: Mapping[str, Sequence[str]],
    limit: int = 0,
) -> List[List[str]]:
    """Return every elementary cycle exactly once.

    Each cycle is an ordered list of file paths starting at its earliest
    node in *nodes* order, without repeating the closing node. Rotations
    are therefore reported once. The search runs a path-stack DFS inside
    each strongly connected component, only through nodes ordered after
    the start node.

    A positive *limit* stops the search once that many cycles are found.
    """
    order = {node: i for i, node in enumerate(nodes)}
    cycles: List[List[str]] = []

    components = strongly_connected_components(nodes, adjacency)
    members_of: Dict[str, Set[str]] = {}
    for component in components:
        members = set(component)
        for node in component:
            members_of[node] = members

    for start in nodes:
        members = members_of.get(start, set())
        successors = adjacency.get(start, ())
        if len(members) == 1 and start not in successors:
            continue
        allowed = {n for n in members if order[n] >= order[start]}
        path = [start]
        on_path = {start}
        work: List[Tuple[str, int]] = [(start, 0)]
        while work:
            v, i = work.pop()
            nexts = [w for w in adjacency.get(v, ()) if w in allowed]
            if i >= len(nexts):
                path.pop()
                on_path.discard(v)
                continue
            work.append((v, i + 1))
            w = nexts[i]
            if w == start:
                cycles.append(list(path))
                if limit and len(cycles) >= limit:
                    logger.warning("Stopped cycle search after %d cycles (max_cycles)", limit)
                    return cycles
            elif w not in on_path:
                path.append(w)
                on_path.add(w)
                work.append((w, 0))

    logger.debug("Found %d circular dependencies across %d files", len(cycles), len(nodes))
    return cycles
