"""Declaration and module-reference extraction from TypeScript / JavaScript trees."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Set, Tuple

from .models import (
    CLASS,
    DYNAMIC_IMPORT,
    EXPORT,
    FUNCTION,
    IMPORT,
    INTERFACE,
    METHOD,
    RE_EXPORT,
    VARIABLE,
    ImportStatement,
    Signature,
    SourceRange,
)
from .parser import SyntaxNode, SyntaxTree

logger = logging.getLogger(__name__)

FUNCTION_DECLARATIONS = {"function_declaration", "generator_function_declaration"}
CLASS_DECLARATIONS = {"class_declaration", "abstract_class_declaration"}
INTERFACE_DECLARATIONS = {"interface_declaration", "type_alias_declaration"}
VARIABLE_DECLARATIONS = {"lexical_declaration", "variable_declaration"}
FUNCTION_VALUES = {"arrow_function", "function_expression", "function", "generator_function"}
FIELD_DEFINITIONS = {"public_field_definition", "field_definition"}

# Nodes whose bodies belong to another scope when searching for nested
# named functions.
_SCOPE_BOUNDARIES = CLASS_DECLARATIONS | {"class", "method_definition"}

ANONYMOUS_DEFAULT = "default"


@dataclass
class Declaration:
    """A declaration found in one file, still attached to its syntax node.

    ``body`` is the subtree analysed for calls and complexity; ``excluded``
    holds the subtrees inside it that are separate declarations.
    """

    qualified_name: str
    kind: str
    node: SyntaxNode
    body: Optional[SyntaxNode] = None
    signature: Optional[Signature] = None
    excluded: Set[SyntaxNode] = field(default_factory=set)

    @property
    def class_name(self) -> Optional[str]:
        if self.kind != METHOD:
            return None
        return self.qualified_name.split(".", 1)[0]

    @property
    def range(self) -> SourceRange:
        start_line, start_col = self.node.start_point
        end_line, end_col = self.node.end_point
        return SourceRange(start_line, start_col, end_line, end_col)

    def walk_body(self) -> Iterator[SyntaxNode]:
        """Pre-order walk of ``body`` that skips nested declarations."""
        if self.body is None:
            return
        stack = [self.body]
        while stack:
            node = stack.pop()
            if node in self.excluded:
                continue
            yield node
            stack.extend(reversed(node.children))


@dataclass
class Extraction:
    declarations: List[Declaration] = field(default_factory=list)
    imports: List[ImportStatement] = field(default_factory=list)


def extract(tree: SyntaxTree) -> Extraction:
    """Return the ordered declarations and module references of *tree*."""
    result = Extraction()
    for statement in tree.root.named_children:
        _extract_statement(statement, result.declarations)
    result.declarations.sort(key=lambda d: (d.node.start_point, d.qualified_name))
    result.imports = extract_imports(tree.root)
    logger.debug(
        "Extracted %d declarations and %d module references from %s",
        len(result.declarations), len(result.imports), tree.path,
    )
    return result


# ===================================================================
# Declarations
# ===================================================================

def _extract_statement(statement: SyntaxNode, out: List[Declaration]) -> None:
    node = statement
    if statement.type == "export_statement":
        inner = statement.field("declaration")
        if inner is None:
            inner = statement.field("value")
        if inner is None:
            return
        node = inner

    if node.type in FUNCTION_DECLARATIONS or (
        node.type in FUNCTION_VALUES and node is not statement
    ):
        name = _name_of(node) or ANONYMOUS_DEFAULT
        _add_function(name, FUNCTION, node, node, out)
    elif node.type in CLASS_DECLARATIONS or (node.type == "class" and node is not statement):
        _add_class(node, out)
    elif node.type in INTERFACE_DECLARATIONS:
        name = _name_of(node)
        if name:
            out.append(Declaration(qualified_name=name, kind=INTERFACE, node=node))
    elif node.type in VARIABLE_DECLARATIONS:
        for declarator in node.named_children:
            if declarator.type == "variable_declarator":
                _add_variable(declarator, out)


def _add_function(
    qualified_name: str,
    kind: str,
    node: SyntaxNode,
    fn: SyntaxNode,
    out: List[Declaration],
) -> Declaration:
    """Record a function-like declaration and its named nested functions.

    *node* supplies the reported range, *fn* the parameters and body (they
    differ for ``const f = () => ...`` and arrow-valued class fields).
    """
    decl = Declaration(
        qualified_name=qualified_name,
        kind=kind,
        node=node,
        body=fn.field("body"),
        signature=_signature(fn),
    )
    out.append(decl)
    if decl.body is not None:
        for nested in _nested_function_declarations(decl.body):
            nested_name = _name_of(nested)
            if not nested_name:
                continue
            decl.excluded.add(nested)
            _add_function(f"{qualified_name}.{nested_name}", FUNCTION, nested, nested, out)
    return decl


def _nested_function_declarations(body: SyntaxNode) -> Iterator[SyntaxNode]:
    """Named functions declared in *body*, including named callbacks.

    Anonymous callbacks are searched through, since their code belongs to
    the enclosing function.
    """
    stack = list(reversed(body.children))
    while stack:
        node = stack.pop()
        if node.type in FUNCTION_DECLARATIONS:
            yield node
            continue
        if node.type in FUNCTION_VALUES and node.field("name") is not None:
            yield node
            continue
        if node.type in _SCOPE_BOUNDARIES:
            continue
        stack.extend(reversed(node.children))


def _add_class(node: SyntaxNode, out: List[Declaration]) -> None:
    class_name = _name_of(node) or ANONYMOUS_DEFAULT
    decl = Declaration(qualified_name=class_name, kind=CLASS, node=node, body=node.field("body"))
    out.append(decl)
    if decl.body is None:
        return

    for member in decl.body.named_children:
        if member.type == "method_definition":
            name = _member_name(member)
            if name:
                decl.excluded.add(member)
                _add_function(f"{class_name}.{name}", METHOD, member, member, out)
        elif member.type == "abstract_method_signature":
            name = _member_name(member)
            if name:
                out.append(Declaration(
                    qualified_name=f"{class_name}.{name}",
                    kind=METHOD,
                    node=member,
                    signature=_signature(member),
                ))
        elif member.type in FIELD_DEFINITIONS:
            value = member.field("value")
            name = _member_name(member)
            if name and value is not None and value.type in FUNCTION_VALUES:
                decl.excluded.add(member)
                _add_function(f"{class_name}.{name}", METHOD, member, value, out)


def _add_variable(declarator: SyntaxNode, out: List[Declaration]) -> None:
    name_node = declarator.field("name")
    if name_node is None or name_node.type != "identifier":
        # Destructuring patterns declare several bindings without a single name.
        return
    name = name_node.text
    value = declarator.field("value")
    if value is not None and value.type in FUNCTION_VALUES:
        _add_function(name, FUNCTION, declarator, value, out)
        return
    out.append(Declaration(qualified_name=name, kind=VARIABLE, node=declarator, body=value))


def _name_of(node: SyntaxNode) -> Optional[str]:
    name = node.field("name")
    return name.text if name is not None else None


def _member_name(member: SyntaxNode) -> Optional[str]:
    name = member.field("name") or member.field("property")
    return name.text if name is not None else None


# ===================================================================
# Signatures
# ===================================================================

def _signature(fn: SyntaxNode) -> Signature:
    params: List[str] = []
    formal = fn.field("parameters")
    if formal is not None:
        for param in formal.named_children:
            name = _parameter_name(param)
            if name and name != "this":
                params.append(name)
    else:
        single = fn.field("parameter")
        if single is not None:
            params.append(single.text)

    return_type = None
    annotation = fn.field("return_type")
    if annotation is not None:
        return_type = annotation.text.lstrip(":").strip() or None

    is_async = any(child.type == "async" for child in fn.children)
    return Signature(parameters=tuple(params), return_type=return_type, is_async=is_async)


def _parameter_name(param: SyntaxNode) -> Optional[str]:
    kind = param.type
    if kind == "comment":
        return None
    if kind in ("required_parameter", "optional_parameter"):
        pattern = param.field("pattern")
        if pattern is None:
            return None
        name = _parameter_name(pattern)
        return f"{name}?" if kind == "optional_parameter" and name else name
    if kind == "assignment_pattern":
        left = param.field("left")
        return _parameter_name(left) if left is not None else None
    if kind == "rest_pattern":
        inner = param.named_children
        return "..." + (_parameter_name(inner[0]) or "") if inner else "..."
    return param.text


# ===================================================================
# Module references
# ===================================================================

def extract_imports(root: SyntaxNode) -> List[ImportStatement]:
    """Collect static, re-exported, required and dynamic module references."""
    refs: List[ImportStatement] = []
    for node in root.walk():
        if node.type == "import_statement":
            ref = _static_import(node)
        elif node.type == "export_statement" and node.field("source") is not None:
            ref = _export_from(node)
        elif node.type == "call_expression":
            ref = _call_reference(node)
        else:
            continue
        if ref is not None:
            refs.append(ref)
    return refs


def _static_import(node: SyntaxNode) -> Optional[ImportStatement]:
    source = node.field("source")
    names: Tuple[str, ...] = ()
    if source is None:
        # TypeScript ``import x = require("y")``
        for child in node.named_children:
            if child.type == "import_require_clause":
                source = child.field("source")
                ident = child.named_children[0] if child.named_children else None
                names = (ident.text,) if ident is not None and ident.type == "identifier" else ()
    else:
        for child in node.named_children:
            if child.type == "import_clause":
                names = _import_clause_names(child)
    specifier = _string_value(source)
    if specifier is None:
        return None
    return ImportStatement(specifier=specifier, kind=IMPORT, line=node.start_point[0], names=names)


def _import_clause_names(clause: SyntaxNode) -> Tuple[str, ...]:
    names: List[str] = []
    for part in clause.named_children:
        if part.type == "identifier":
            names.append(part.text)
        elif part.type == "namespace_import":
            names.append(part.text)
        elif part.type == "named_imports":
            for spec in part.named_children:
                if spec.type == "import_specifier":
                    name = spec.field("name")
                    names.append(name.text if name is not None else spec.text)
    return tuple(names)


def _export_from(node: SyntaxNode) -> Optional[ImportStatement]:
    specifier = _string_value(node.field("source"))
    if specifier is None:
        return None
    clause = next((c for c in node.named_children if c.type == "export_clause"), None)
    if clause is None:
        # ``export * from`` / ``export * as ns from``
        return ImportStatement(specifier=specifier, kind=EXPORT, line=node.start_point[0], names=("*",))
    names = []
    for spec in clause.named_children:
        if spec.type == "export_specifier":
            name = spec.field("name")
            names.append(name.text if name is not None else spec.text)
    return ImportStatement(specifier=specifier, kind=RE_EXPORT, line=node.start_point[0], names=tuple(names))


def _call_reference(node: SyntaxNode) -> Optional[ImportStatement]:
    fn = node.field("function")
    if fn is None:
        return None
    if fn.type == "import":
        kind = DYNAMIC_IMPORT
    elif fn.type == "identifier" and fn.text == "require":
        kind = IMPORT
    else:
        return None
    args = node.field("arguments")
    if args is None or not args.named_children:
        return None
    specifier = _string_value(args.named_children[0])
    if specifier is None:
        # Computed specifiers cannot be mapped to a file.
        return None
    return ImportStatement(specifier=specifier, kind=kind, line=node.start_point[0])


def _string_value(node: Optional[SyntaxNode]) -> Optional[str]:
    if node is None:
        return None
    if node.type == "string":
        return node.text[1:-1]
    if node.type == "template_string" and not any(
        c.type == "template_substitution" for c in node.named_children
    ):
        return node.text[1:-1]
    return None
