# Lowered statement/expression view over the tree-sitter Rust AST.
#
# Rules match on these nodes instead of raw tree-sitter nodes so that shapes
# like `expr?` look the way the compiler desugars them. Every node keeps its
# originating tree-sitter node (opaque, excluded from equality) for services
# such as the trait resolver that need the surrounding scope.

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Iterator, Optional, Sequence, Union

from tree_sitter import Node as TSNode

from iocheck.context import FileContext, get_line_col
from iocheck.paths import TRY_INTO_RESULT


@dataclass(frozen=True)
class Span:
    """Byte range plus 1-based start/end positions of a syntax node."""

    start_byte: int
    end_byte: int
    line: int
    column: int
    end_line: int
    end_column: int

    @classmethod
    def of(cls, node: TSNode) -> "Span":
        line, column = get_line_col(node)
        end_row, end_col = node.end_point
        return cls(
            start_byte=node.start_byte,
            end_byte=node.end_byte,
            line=line,
            column=column,
            end_line=end_row + 1,
            end_column=end_col + 1,
        )


class StmtKind(enum.Enum):
    SEMI = "semi"
    EXPR = "expr"
    LOCAL = "local"
    ITEM = "item"
    OTHER = "other"


class MatchSource(enum.Enum):
    NORMAL = "normal"
    TRY_DESUGAR = "try_desugar"


@dataclass(frozen=True)
class MethodCall:
    name: str
    receiver: "Expr"
    args: tuple["Expr", ...]
    span: Span
    node: Any = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class Call:
    callee: "Expr"
    args: tuple["Expr", ...]
    span: Span
    node: Any = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class Match:
    scrutinee: "Expr"
    source: MatchSource
    span: Span
    node: Any = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class Path:
    segments: tuple[str, ...]
    span: Span
    node: Any = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class Other:
    kind: str
    span: Span
    node: Any = field(default=None, compare=False, repr=False)


Expr = Union[MethodCall, Call, Match, Path, Other]


@dataclass(frozen=True)
class Stmt:
    kind: StmtKind
    expr: Optional[Expr]
    span: Span
    node: Any = field(default=None, compare=False, repr=False)


def is_try(expr: Expr) -> bool:
    """True if expr is the desugared form of the `?` operator."""
    return isinstance(expr, Match) and expr.source is MatchSource.TRY_DESUGAR


def match_qpath(expr: Expr, segments: Sequence[str]) -> bool:
    """True if expr is a path whose trailing segments equal segments."""
    if not isinstance(expr, Path) or not segments:
        return False
    if len(expr.segments) < len(segments):
        return False
    return expr.segments[-len(segments):] == tuple(segments)


# --- lowering -------------------------------------------------------------

ITEM_NODE_TYPES = frozenset(
    {
        "function_item",
        "function_signature_item",
        "struct_item",
        "enum_item",
        "union_item",
        "impl_item",
        "trait_item",
        "type_item",
        "const_item",
        "static_item",
        "mod_item",
        "use_declaration",
        "extern_crate_declaration",
        "foreign_mod_item",
        "macro_definition",
        "associated_type",
    }
)

OTHER_STMT_NODE_TYPES = frozenset(
    {"attribute_item", "inner_attribute_item", "empty_statement"}
)

_COMMENT_NODE_TYPES = frozenset({"line_comment", "block_comment", "comment"})


def _first_named(node: TSNode) -> Optional[TSNode]:
    for child in node.named_children:
        if child.type not in _COMMENT_NODE_TYPES:
            return child
    return None


def path_segments(ctx: FileContext, node: TSNode) -> Optional[tuple[str, ...]]:
    """
    Return the segments of an identifier, `self`, or `a::b::c` path node.

    Generic arguments inside the path (`Vec::<u8>::new`) are dropped.
    Returns None for anything that is not a path.
    """
    if node.type in ("identifier", "self", "super", "crate", "type_identifier"):
        return (ctx.text(node),)
    if node.type == "generic_type":
        inner = node.child_by_field_name("type")
        return path_segments(ctx, inner) if inner is not None else None
    if node.type in ("scoped_identifier", "scoped_type_identifier"):
        name = node.child_by_field_name("name")
        if name is None:
            return None
        prefix: tuple[str, ...] = ()
        path = node.child_by_field_name("path")
        if path is not None:
            head = path_segments(ctx, path)
            if head is None:
                return None
            prefix = head
        return prefix + (ctx.text(name),)
    return None


def lower_expr(ctx: FileContext, node: TSNode) -> Expr:
    """Lower one tree-sitter expression node."""
    span = Span.of(node)

    if node.type == "parenthesized_expression":
        inner = _first_named(node)
        if inner is not None:
            return lower_expr(ctx, inner)
        return Other(kind=node.type, span=span, node=node)

    if node.type == "try_expression":
        inner = _first_named(node)
        if inner is None:
            return Other(kind=node.type, span=span, node=node)
        operand = lower_expr(ctx, inner)
        conversion = Call(
            callee=Path(segments=TRY_INTO_RESULT, span=operand.span),
            args=(operand,),
            span=operand.span,
            node=inner,
        )
        return Match(scrutinee=conversion, source=MatchSource.TRY_DESUGAR, span=span, node=node)

    if node.type == "match_expression":
        value = node.child_by_field_name("value")
        if value is None:
            return Other(kind=node.type, span=span, node=node)
        return Match(
            scrutinee=lower_expr(ctx, value),
            source=MatchSource.NORMAL,
            span=span,
            node=node,
        )

    if node.type == "call_expression":
        return _lower_call(ctx, node, span)

    segments = path_segments(ctx, node)
    if segments is not None:
        return Path(segments=segments, span=span, node=node)

    return Other(kind=node.type, span=span, node=node)


def _lower_args(ctx: FileContext, node: Optional[TSNode]) -> tuple[Expr, ...]:
    if node is None:
        return ()
    return tuple(
        lower_expr(ctx, arg)
        for arg in node.named_children
        if arg.type not in _COMMENT_NODE_TYPES and arg.type != "attribute_item"
    )


def _lower_call(ctx: FileContext, node: TSNode, span: Span) -> Expr:
    function = node.child_by_field_name("function")
    args = _lower_args(ctx, node.child_by_field_name("arguments"))
    if function is None:
        return Other(kind=node.type, span=span, node=node)

    # recv.name::<T>(..) keeps the field expression under generic_function
    target = function
    if target.type == "generic_function":
        inner = target.child_by_field_name("function")
        if inner is not None:
            target = inner

    if target.type == "field_expression":
        value = target.child_by_field_name("value")
        name = target.child_by_field_name("field")
        if value is not None and name is not None and name.type == "field_identifier":
            return MethodCall(
                name=ctx.text(name),
                receiver=lower_expr(ctx, value),
                args=args,
                span=span,
                node=node,
            )

    return Call(callee=lower_expr(ctx, target), args=args, span=span, node=node)


def lower_stmt(ctx: FileContext, node: TSNode) -> Stmt:
    """Lower one statement-position node of a block."""
    span = Span.of(node)

    if node.type == "expression_statement":
        inner = _first_named(node)
        has_semi = any(child.type == ";" for child in node.children)
        kind = StmtKind.SEMI if has_semi else StmtKind.EXPR
        expr = lower_expr(ctx, inner) if inner is not None else None
        return Stmt(kind=kind, expr=expr, span=span, node=node)

    if node.type == "let_declaration":
        value = node.child_by_field_name("value")
        expr = lower_expr(ctx, value) if value is not None else None
        return Stmt(kind=StmtKind.LOCAL, expr=expr, span=span, node=node)

    if node.type in ITEM_NODE_TYPES:
        return Stmt(kind=StmtKind.ITEM, expr=None, span=span, node=node)

    return Stmt(kind=StmtKind.OTHER, expr=None, span=span, node=node)


def is_statement_node(node: TSNode) -> bool:
    """True for block children that are statements (not the trailing value)."""
    return (
        node.type == "expression_statement"
        or node.type == "let_declaration"
        or node.type in ITEM_NODE_TYPES
        or node.type in OTHER_STMT_NODE_TYPES
    )


def block_statements(ctx: FileContext, block: TSNode) -> Iterator[Stmt]:
    """
    Yield the lowered statements of a block in source order.

    The block's trailing value expression (no `;`) is not a statement and
    is not yielded.
    """
    for child in block.named_children:
        if is_statement_node(child):
            yield lower_stmt(ctx, child)
