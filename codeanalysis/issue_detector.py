"""Heuristic code-quality rules evaluated per entity."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from .config import AnalysisConfig
from .errors import ParseError
from .models import (
    CALLABLE_KINDS,
    CLASS,
    ERROR,
    INFO,
    WARNING,
    EntityRef,
    Issue,
    Location,
    Signature,
    SourceRange,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RuleContext:
    """Everything a rule may inspect about one entity."""

    ref: EntityRef
    kind: str
    range: SourceRange
    signature: Optional[Signature]
    complexity: Optional[int]
    config: AnalysisConfig

    @property
    def location(self) -> Location:
        return Location(self.ref.file_path, self.range.start_line, self.range.start_column)

    def issue(self, rule: str, severity: str, message: str) -> Issue:
        return Issue(rule=rule, severity=severity, message=message, location=self.location, entity=self.ref)


Rule = Callable[[RuleContext], List[Issue]]


def high_complexity(ctx: RuleContext) -> List[Issue]:
    limit = ctx.config.max_complexity
    if ctx.complexity is None or ctx.complexity <= limit:
        return []
    return [ctx.issue(
        "high-complexity",
        WARNING,
        f"High complexity: '{ctx.ref.qualified_name}' scores {ctx.complexity} (limit {limit})",
    )]


def too_many_parameters(ctx: RuleContext) -> List[Issue]:
    limit = ctx.config.max_parameters
    if ctx.signature is None or ctx.signature.parameter_count <= limit:
        return []
    return [ctx.issue(
        "too-many-parameters",
        INFO,
        f"Too many parameters: '{ctx.ref.qualified_name}' takes "
        f"{ctx.signature.parameter_count} (limit {limit})",
    )]


def long_body(ctx: RuleContext) -> List[Issue]:
    if ctx.kind in CALLABLE_KINDS:
        rule, noun, limit = "long-function", "function", ctx.config.max_function_lines
    elif ctx.kind == CLASS:
        rule, noun, limit = "long-class", "class", ctx.config.max_class_lines
    else:
        return []
    lines = ctx.range.line_count
    if lines <= limit:
        return []
    return [ctx.issue(
        rule,
        INFO,
        f"Long {noun}: '{ctx.ref.qualified_name}' spans {lines} lines (limit {limit})",
    )]


DEFAULT_RULES: Sequence[Rule] = (high_complexity, too_many_parameters, long_body)


class IssueDetector:
    """Run independent rules over entities and concatenate their findings."""

    def __init__(self, config: AnalysisConfig, rules: Optional[Sequence[Rule]] = None) -> None:
        self.config = config
        self.rules: List[Rule] = list(DEFAULT_RULES if rules is None else rules)

    def register(self, rule: Rule) -> None:
        self.rules.append(rule)

    def detect(
        self,
        ref: EntityRef,
        kind: str,
        range_: SourceRange,
        signature: Optional[Signature],
        complexity: Optional[int],
    ) -> List[Issue]:
        ctx = RuleContext(ref, kind, range_, signature, complexity, self.config)
        issues: List[Issue] = []
        for rule in self.rules:
            try:
                issues.extend(rule(ctx))
            except (AttributeError, TypeError, ValueError) as exc:
                logger.warning(
                    "Rule %s skipped %s: %s",
                    getattr(rule, "__name__", rule), ref, exc,
                )
        return issues


def parse_error_issue(error: ParseError) -> Issue:
    """File-level issue recorded for a file that could not be parsed."""
    return Issue(
        rule="parse-error",
        severity=ERROR,
        message=f"Could not parse file: {error.reason}",
        location=Location(error.path, error.line, error.column),
    )
