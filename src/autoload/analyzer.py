"""PHP source analysis down to the statements relevant for class indexing.

The statement tree is a closed set of shapes: class declarations, braced
namespace blocks, unbraced namespace declarations (owning the statements that
follow them in the file) and everything else. The default analyzer builds
that tree from a tree-sitter PHP parse.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, List, Optional, Protocol, Tuple, Union

logger = logging.getLogger(__name__)

NAMESPACE_SEPARATOR = "\\"


class AnalyzerUnavailable(RuntimeError):
    """The PHP grammar could not be loaded."""


class SourceParseFailure(Exception):
    """A single source file could not be analyzed."""

    def __init__(self, path: str, reason: str):
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.reason = reason


@dataclass(frozen=True)
class ClassDeclaration:
    name: str

    def accept(self, visitor: "StatementVisitor", prefix: str) -> None:
        visitor.visit_class(self, prefix)


@dataclass(frozen=True)
class BracedNamespace:
    """``namespace Name { ... }``; ``name`` is None for the global block."""
    name: Optional[str]
    body: Tuple["Statement", ...] = ()

    def accept(self, visitor: "StatementVisitor", prefix: str) -> None:
        visitor.visit_braced_namespace(self, prefix)


@dataclass(frozen=True)
class UnbracedNamespace:
    """``namespace Name;`` together with the statements up to the next namespace."""
    name: str
    statements: Tuple["Statement", ...] = ()

    def accept(self, visitor: "StatementVisitor", prefix: str) -> None:
        visitor.visit_unbraced_namespace(self, prefix)


@dataclass(frozen=True)
class OtherStatement:
    kind: str = ""

    def accept(self, visitor: "StatementVisitor", prefix: str) -> None:
        visitor.visit_other(self, prefix)


Statement = Union[ClassDeclaration, BracedNamespace, UnbracedNamespace, OtherStatement]


class StatementVisitor:
    """Recursive-descent walk over a statement tree, threading the namespace prefix.

    Namespace blocks descend into their statements by default; subclasses
    override the hooks they care about.
    """

    def visit(self, statements: Iterable[Statement], prefix: str = "") -> None:
        for statement in statements:
            statement.accept(self, prefix)

    def visit_class(self, statement: ClassDeclaration, prefix: str) -> None:
        pass

    def visit_braced_namespace(self, statement: BracedNamespace, prefix: str) -> None:
        inner = prefix if statement.name is None else f"{prefix}{statement.name}{NAMESPACE_SEPARATOR}"
        self.visit(statement.body, inner)

    def visit_unbraced_namespace(self, statement: UnbracedNamespace, prefix: str) -> None:
        self.visit(statement.statements, f"{prefix}{statement.name}{NAMESPACE_SEPARATOR}")

    def visit_other(self, statement: OtherStatement, prefix: str) -> None:
        pass


class SourceAnalyzer(Protocol):
    """Turns raw source bytes into a statement tree."""

    def parse(self, source: bytes, path: str = "<string>") -> List[Statement]:
        """Raises SourceParseFailure when the source cannot be analyzed."""
        ...


class TreeSitterPhpAnalyzer:
    """SourceAnalyzer backed by the tree-sitter PHP grammar."""

    def __init__(self, parser: Any = None):
        if parser is None:
            try:
                from tree_sitter_language_pack import get_parser  # pylint: disable=import-outside-toplevel

                parser = get_parser("php")
            except Exception as e:  # pylint: disable=broad-exception-caught
                raise AnalyzerUnavailable(
                    f"Failed to load tree-sitter grammar for PHP: {e}\n"
                    "Please try: pip install --force-reinstall tree-sitter-language-pack"
                ) from e
        self._parser = parser

    def parse(self, source: bytes, path: str = "<string>") -> List[Statement]:
        try:
            tree = self._parser.parse(source)
        except Exception as e:  # pylint: disable=broad-exception-caught
            raise SourceParseFailure(path, f"parser error: {e}") from e

        root = tree.root_node
        if root.has_error:
            raise SourceParseFailure(path, f"syntax error near line {_first_error_line(root)}")
        return _statements(root.named_children)


def _first_error_line(node: Any) -> int:
    stack = [node]
    while stack:
        current = stack.pop()
        if current.type == "ERROR" or current.is_missing:
            return current.start_point[0] + 1
        stack.extend(reversed(current.children))
    return node.start_point[0] + 1


def _text(node: Any) -> str:
    return node.text.decode("utf-8")


def _statements(nodes: List[Any]) -> List[Statement]:
    """Convert sibling nodes, folding unbraced namespaces over their followers."""
    statements: List[Statement] = []
    pending: Optional[Tuple[str, List[Statement]]] = None

    for node in nodes:
        if node.type == "namespace_definition":
            if pending is not None:
                statements.append(UnbracedNamespace(pending[0], tuple(pending[1])))
                pending = None
            name_node = node.child_by_field_name("name")
            body = node.child_by_field_name("body")
            if body is None:
                if name_node is None:
                    statements.append(OtherStatement(node.type))
                    continue
                pending = (_text(name_node), [])
                continue
            name = _text(name_node) if name_node is not None else None
            statements.append(BracedNamespace(name, tuple(_statements(body.named_children))))
            continue

        statement = _statement(node)
        if pending is not None:
            pending[1].append(statement)
        else:
            statements.append(statement)

    if pending is not None:
        statements.append(UnbracedNamespace(pending[0], tuple(pending[1])))
    return statements


def _statement(node: Any) -> Statement:
    if node.type == "class_declaration":
        name_node = node.child_by_field_name("name")
        if name_node is not None:
            return ClassDeclaration(_text(name_node))
    return OtherStatement(node.type)
