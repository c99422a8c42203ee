"""End-to-end analysis: files in, immutable snapshot out."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set, Tuple

from .call_graph import CallGraph, CallResolver, build_call_edges
from .complexity import calculate_complexity
from .config import AnalysisConfig
from .dependency_graph import (
    DependencyGraph,
    SpecifierResolver,
    build_dependency_edges,
)
from .errors import InvalidInputError, ParseError
from .extractor import Declaration, Extraction, extract
from .issue_detector import IssueDetector, parse_error_issue
from .models import (
    Entity,
    EntityRef,
    FileResult,
    ImportStatement,
    Issue,
    SourceFile,
    Summary,
)
from .parser import Parser, TreeSitterParser, language_for
from .snapshot import CodebaseSnapshot

logger = logging.getLogger(__name__)


@dataclass
class AnalysisResult:
    """What ``analyze`` returns: per-file results plus the snapshot to query."""

    snapshot: CodebaseSnapshot
    per_file: List[FileResult] = field(default_factory=list)

    @property
    def dependency_graph(self) -> DependencyGraph:
        return self.snapshot.dependency_graph

    @property
    def circular_dependencies(self) -> List[List[str]]:
        return self.snapshot.find_circular_dependencies()

    @property
    def summary(self) -> Summary:
        return self.snapshot.get_codebase_summary()

    def to_dict(self) -> Dict[str, Any]:
        graph = self.dependency_graph
        return {
            "results": [r.to_dict() for r in self.per_file],
            "dependencyGraph": {
                "nodes": list(graph.nodes),
                "edges": [e.to_dict() for e in graph.edges],
                "circularDependencies": self.circular_dependencies,
            },
            "summary": self.summary.to_dict(),
        }


def validate_files(files: Any) -> List[Tuple[str, str]]:
    """Check the ``[{path, content}]`` input and return ``(path, content)`` pairs."""
    if files is None or isinstance(files, (str, bytes, Mapping)) or not isinstance(files, Iterable):
        raise InvalidInputError("Files array is required")

    pairs: List[Tuple[str, str]] = []
    seen: Set[str] = set()
    for i, item in enumerate(files):
        if isinstance(item, Mapping):
            path, content = item.get("path"), item.get("content")
        else:
            path, content = getattr(item, "path", None), getattr(item, "content", None)
        if not isinstance(path, str) or not path.strip():
            raise InvalidInputError(f"files[{i}].path must be a non-empty string")
        if not isinstance(content, str):
            raise InvalidInputError(f"files[{i}].content must be a string")
        if path in seen:
            raise InvalidInputError(f"Duplicate file path: {path}")
        seen.add(path)
        pairs.append((path, content))
    return pairs


class CodeAnalyzer:
    """Runs the parse -> extract -> score -> link pipeline."""

    def __init__(self, config: Optional[AnalysisConfig] = None, parser: Optional[Parser] = None) -> None:
        self.config = config or AnalysisConfig()
        self.parser = parser or TreeSitterParser(tolerant=self.config.tolerant_parsing)
        self.detector = IssueDetector(self.config)

    def analyze(self, files: Any) -> AnalysisResult:
        pairs = validate_files(files)
        logger.debug("Analyzing %d files", len(pairs))

        sources: List[SourceFile] = []
        entities: List[Entity] = []
        results: List[FileResult] = []
        file_issues: List[Issue] = []
        linked: List[Tuple[EntityRef, Declaration]] = []
        imports: Dict[str, List[ImportStatement]] = {}

        for path, content in pairs:
            result = FileResult(file_path=path)
            results.append(result)
            try:
                if not self.parser.supports(path):
                    raise ParseError(path, f"no {language_for(path)} grammar available")
                extraction = extract(self.parser.parse(path, content))
            except ParseError as exc:
                logger.warning("Failed to parse %s: %s", path, exc.reason)
                issue = parse_error_issue(exc)
                result.parse_error = exc.reason
                result.issues.append(issue)
                file_issues.append(issue)
                imports[path] = []
                sources.append(SourceFile(
                    path=path, text=content, language=language_for(path), parse_error=exc.reason,
                ))
                continue

            file_entities = self._build_entities(path, extraction, linked)
            entities.extend(file_entities)
            result.entities = file_entities
            result.issues = [i for e in file_entities for i in e.issues]
            result.imports = list(extraction.imports)
            imports[path] = list(extraction.imports)
            sources.append(SourceFile(
                path=path,
                text=content,
                language=language_for(path),
                entities=tuple(e.ref for e in file_entities),
                imports=tuple(extraction.imports),
            ))

        resolver = CallResolver([(e.ref, e.kind) for e in entities])
        call_graph = CallGraph(build_call_edges(linked, resolver), (e.ref for e in entities))

        specifiers = SpecifierResolver([p for p, _ in pairs], self.config.path_aliases)
        dependency_graph = DependencyGraph(
            [p for p, _ in pairs],
            build_dependency_edges(imports, specifiers),
            max_cycles=self.config.max_cycles,
        )

        snapshot = CodebaseSnapshot(sources, entities, call_graph, dependency_graph, file_issues)
        logger.info(
            "Analyzed %d files: %d entities, %d call edges, %d dependency edges",
            len(sources), len(entities), len(call_graph.edges), len(dependency_graph.edges),
        )
        return AnalysisResult(snapshot=snapshot, per_file=results)

    def _build_entities(
        self,
        path: str,
        extraction: Extraction,
        linked: List[Tuple[EntityRef, Declaration]],
    ) -> List[Entity]:
        entities: List[Entity] = []
        seen: Set[EntityRef] = set()
        for decl in extraction.declarations:
            ref = EntityRef(path, decl.qualified_name, decl.range.start_line)
            if ref in seen:
                # e.g. a getter/setter pair on one line shares name and line
                logger.debug("Skipping duplicate declaration %s", ref)
                continue
            seen.add(ref)
            complexity = calculate_complexity(decl)
            issues = self.detector.detect(ref, decl.kind, decl.range, decl.signature, complexity)
            entities.append(Entity(
                qualified_name=decl.qualified_name,
                kind=decl.kind,
                file_path=path,
                range=decl.range,
                signature=decl.signature,
                complexity=complexity,
                issues=tuple(issues),
            ))
            linked.append((ref, decl))
        return entities


def analyze(files: Any, config: Optional[AnalysisConfig] = None) -> AnalysisResult:
    """Analyze ``[{"path": ..., "content": ...}]`` and return a fresh snapshot."""
    return CodeAnalyzer(config).analyze(files)
