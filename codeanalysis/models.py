"""Core data models produced by analysis and served by the snapshot."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

# Entity kinds
FUNCTION = "function"
CLASS = "class"
INTERFACE = "interface"
VARIABLE = "variable"
METHOD = "method"

ENTITY_KINDS = (FUNCTION, CLASS, INTERFACE, VARIABLE, METHOD)
CALLABLE_KINDS = (FUNCTION, METHOD)

# Dependency edge kinds
IMPORT = "import"
EXPORT = "export"
DYNAMIC_IMPORT = "dynamic-import"
RE_EXPORT = "re-export"

DEPENDENCY_KINDS = (IMPORT, EXPORT, DYNAMIC_IMPORT, RE_EXPORT)

# Issue severities
INFO = "info"
WARNING = "warning"
ERROR = "error"

SEVERITIES = (INFO, WARNING, ERROR)


@dataclass(frozen=True)
class SourceRange:
    """Declaration span; lines are 1-based, columns 0-based characters."""

    start_line: int
    start_column: int
    end_line: int
    end_column: int

    @property
    def line_count(self) -> int:
        return self.end_line - self.start_line + 1


@dataclass(frozen=True)
class Location:
    file_path: str
    line: int
    column: int


@dataclass(frozen=True)
class Signature:
    parameters: Tuple[str, ...] = ()
    return_type: Optional[str] = None
    is_async: bool = False

    @property
    def parameter_count(self) -> int:
        return len(self.parameters)

    def render(self, name: str) -> str:
        text = f"{name}({', '.join(self.parameters)})"
        if self.return_type:
            text += f": {self.return_type}"
        return f"async {text}" if self.is_async else text


@dataclass(frozen=True)
class EntityRef:
    """Identity of an entity: names may collide across files, refs never do."""

    file_path: str
    qualified_name: str
    start_line: int

    def __str__(self) -> str:
        return f"{self.file_path}:{self.qualified_name}@{self.start_line}"


@dataclass(frozen=True)
class Issue:
    rule: str
    severity: str
    message: str
    location: Location
    entity: Optional[EntityRef] = None


@dataclass(frozen=True)
class Entity:
    qualified_name: str
    kind: str
    file_path: str
    range: SourceRange
    signature: Optional[Signature] = None
    complexity: Optional[int] = None
    issues: Tuple[Issue, ...] = ()

    @property
    def name(self) -> str:
        """Declared identifier without the class prefix."""
        return self.qualified_name.rsplit(".", 1)[-1]

    @property
    def ref(self) -> EntityRef:
        return EntityRef(self.file_path, self.qualified_name, self.range.start_line)

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["issues"] = [_issue_dict(i) for i in self.issues]
        if self.signature is not None:
            payload["signature"]["parameter_count"] = self.signature.parameter_count
            payload["signature"]["text"] = self.signature.render(self.name)
        return payload


@dataclass(frozen=True)
class Resolved:
    """Call target bound to a concrete entity in the snapshot."""

    entity: EntityRef

    @property
    def name(self) -> str:
        return self.entity.qualified_name

    @property
    def is_resolved(self) -> bool:
        return True


@dataclass(frozen=True)
class Unresolved:
    """Call target kept by name because no unambiguous entity matched."""

    name: str

    @property
    def is_resolved(self) -> bool:
        return False


CallTarget = Union[Resolved, Unresolved]


@dataclass(frozen=True)
class CallEdge:
    caller: EntityRef
    callee: CallTarget
    raw_callee: str
    location: Location

    def callee_names(self) -> Tuple[str, ...]:
        """Resolved qualified name and raw callee text, without repeats."""
        return tuple(dict.fromkeys((self.callee.name, self.raw_callee)))

    def member_names(self) -> Tuple[str, ...]:
        """Last segment of each dotted callee name (``save`` for ``this.repo.save``)."""
        return tuple(dict.fromkeys(n.rsplit(".", 1)[-1] for n in self.callee_names() if "." in n))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "caller": asdict(self.caller),
            "callee": self.callee.name,
            "resolved": self.callee.is_resolved,
            "callee_entity": (
                asdict(self.callee.entity) if isinstance(self.callee, Resolved) else None
            ),
            "raw_callee": self.raw_callee,
            "location": asdict(self.location),
        }


@dataclass(frozen=True)
class ImportStatement:
    """A module reference written in a file, before path resolution."""

    specifier: str
    kind: str
    line: int
    names: Tuple[str, ...] = ()


@dataclass(frozen=True)
class DependencyEdge:
    from_file: str
    to_file: str
    kind: str
    specifier: str
    external: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "from": self.from_file,
            "to": self.to_file,
            "type": self.kind,
            "specifier": self.specifier,
            "external": self.external,
        }


@dataclass(frozen=True)
class SourceFile:
    path: str
    text: str
    language: str
    entities: Tuple[EntityRef, ...] = ()
    imports: Tuple[ImportStatement, ...] = ()
    parse_error: Optional[str] = None


@dataclass
class FileResult:
    """Per-file portion of an ``analyze`` response."""

    file_path: str
    entities: List[Entity] = field(default_factory=list)
    issues: List[Issue] = field(default_factory=list)
    imports: List[ImportStatement] = field(default_factory=list)
    parse_error: Optional[str] = None

    @property
    def complexity(self) -> int:
        return sum(e.complexity or 0 for e in self.entities)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "filePath": self.file_path,
            "entities": [e.to_dict() for e in self.entities],
            "issues": [_issue_dict(i) for i in self.issues],
            "imports": [asdict(i) for i in self.imports],
            "complexity": self.complexity,
            "parseError": self.parse_error,
        }


@dataclass
class Summary:
    total_files: int = 0
    total_entities: int = 0
    entities_by_kind: Dict[str, int] = field(default_factory=dict)
    average_complexity: float = 0.0
    total_issues: int = 0
    issues_by_severity: Dict[str, int] = field(default_factory=dict)
    total_dependency_edges: int = 0
    total_cycles: int = 0
    total_call_edges: int = 0
    unresolved_calls: int = 0
    parse_failures: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _issue_dict(issue: Issue) -> Dict[str, Any]:
    return {
        "rule": issue.rule,
        "severity": issue.severity,
        "message": issue.message,
        "location": asdict(issue.location),
        "entity": asdict(issue.entity) if issue.entity is not None else None,
    }
