"""Cyclomatic complexity of function-like declarations."""

from __future__ import annotations

from typing import Optional

from .extractor import Declaration
from .models import CALLABLE_KINDS
from .parser import SyntaxNode

BASE_COMPLEXITY = 1

# Each of these nodes is one decision point. ``else if`` parses as an
# ``if_statement`` nested in the ``else_clause`` and is counted there.
DECISION_NODES = frozenset({
    "if_statement",
    "ternary_expression",
    "switch_case",
    "catch_clause",
    "for_statement",
    "for_in_statement",
    "while_statement",
    "do_statement",
})

LOGICAL_OPERATORS = frozenset({"&&", "||", "??"})
LOGICAL_ASSIGNMENTS = frozenset({"&&=", "||=", "??="})


def is_decision_point(node: SyntaxNode) -> bool:
    if node.type in DECISION_NODES:
        return True
    if node.type == "binary_expression":
        operator = node.field("operator")
        return operator is not None and operator.type in LOGICAL_OPERATORS
    if node.type == "augmented_assignment_expression":
        operator = node.field("operator")
        return operator is not None and operator.type in LOGICAL_ASSIGNMENTS
    return False


def calculate_complexity(decl: Declaration) -> Optional[int]:
    """Return ``1 + decision points`` for functions and methods, else None.

    Nested named function declarations are scored on their own and do not
    add to the enclosing function; inline callbacks do.
    """
    if decl.kind not in CALLABLE_KINDS:
        return None
    return BASE_COMPLEXITY + sum(1 for node in decl.walk_body() if is_decision_point(node))
