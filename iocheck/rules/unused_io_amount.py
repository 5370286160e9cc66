# Unused I/O amount detection: flags Read::read / Write::write calls whose byte
# count is discarded.
#
# `read`, `read_vectored`, `write` and `write_vectored` may process fewer bytes
# than the buffer holds and return how many they did. Propagating the error
# with `?` or forcing success with `.unwrap()` and dropping the count silently
# truncates data. `read_exact` / `write_all` handle the whole buffer.
#
# Only the two common discard shapes are recognized; results bound to a
# variable, chained further, or discarded with `let _ =` are not followed.

from __future__ import annotations

import logging
import re
from typing import Any, Iterator, Optional

from tree_sitter import Node as TSNode

from iocheck.context import FileContext
from iocheck.findings.models import Finding
from iocheck.findings.sink import DiagnosticSink
from iocheck.hir import (
    Call,
    Expr,
    Match,
    MethodCall,
    Stmt,
    StmtKind,
    block_statements,
    is_try,
    match_qpath,
)
from iocheck.paths import IO_READ, IO_WRITE, TRY_INTO_RESULT
from iocheck.resolver import ScopeResolver, TraitResolver
from iocheck.rules.base import Rule

logger = logging.getLogger(__name__)

LINT_NAME = "unused_io_amount"

UNWRAP_METHODS = frozenset({"expect", "unwrap", "unwrap_or", "unwrap_or_else"})

READ_EXACT_MSG = "read amount is not handled. Use the exact-fill read operation instead"
READ_MSG = "read amount is not handled"
WRITE_ALL_MSG = "written amount is not handled. Use the exact-fill write operation instead"
WRITE_MSG = "written amount is not handled"


def filter_statement(stmt: Stmt) -> Optional[Expr]:
    """Return the expression of a statement evaluated only for its effect."""
    if stmt.kind in (StmtKind.SEMI, StmtKind.EXPR):
        return stmt.expr
    return None


def match_shape(expr: Expr) -> Optional[Expr]:
    """
    Return the call whose result expr discards, if expr is a known discard shape.

    `call?` lowers to a try-desugared match over `Try::into_result(call)`;
    the call is the conversion's single argument. `call.unwrap()` and its
    siblings discard the receiver's payload.
    """
    if isinstance(expr, Match) and is_try(expr):
        res = expr.scrutinee
        if isinstance(res, Call):
            if match_qpath(res.callee, TRY_INTO_RESULT) and len(res.args) == 1:
                return res.args[0]
            return None
        return res

    if isinstance(expr, MethodCall) and expr.name in UNWRAP_METHODS:
        return expr.receiver

    return None


def classify(call: Expr, resolver: TraitResolver) -> Optional[str]:
    """Message for a discarded partial-transfer call, or None."""
    if not isinstance(call, MethodCall):
        return None

    read_trait = resolver.method_dispatches_through(call, IO_READ)
    write_trait = resolver.method_dispatches_through(call, IO_WRITE)

    if read_trait and call.name == "read":
        return READ_EXACT_MSG
    if read_trait and call.name == "read_vectored":
        return READ_MSG
    if write_trait and call.name == "write":
        return WRITE_ALL_MSG
    if write_trait and call.name == "write_vectored":
        return WRITE_MSG
    return None


def classify_and_emit(
    call: Expr,
    expr: Expr,
    resolver: TraitResolver,
    sink: DiagnosticSink,
) -> Optional[Finding]:
    """Emit one diagnostic at expr when call is an unchecked partial transfer."""
    message = classify(call, resolver)
    if message is None:
        return None
    return sink.emit(expr.span, message, category=UnusedIoAmountRule.category)


def check_stmt(stmt: Stmt, resolver: TraitResolver, sink: DiagnosticSink) -> Optional[Finding]:
    """Run the statement filter, shape matcher and classifier on one statement."""
    expr = filter_statement(stmt)
    if expr is None:
        return None
    call = match_shape(expr)
    if call is None:
        return None
    return classify_and_emit(call, expr, resolver, sink)


# --- allow attributes -------------------------------------------------------


_LINT_ATTRIBUTE_RE = re.compile(r"^#!?\[\s*(?:allow|expect)\s*\((?P<args>.*)\)\s*\]$", re.DOTALL)

ALLOW_NAMES = frozenset({LINT_NAME, f"clippy::{LINT_NAME}"})


def _attribute_allows(context: FileContext, attr: TSNode) -> bool:
    """True for `#[allow(..)]` / `#[expect(..)]` whose arguments name the lint exactly."""
    m = _LINT_ATTRIBUTE_RE.match(context.text(attr).strip())
    if m is None:
        return False
    names = ("".join(arg.split()) for arg in m.group("args").split(","))
    return any(name in ALLOW_NAMES for name in names)


def _preceding_attributes(node: TSNode) -> Iterator[TSNode]:
    """Outer attributes written directly above node (`#[...]` siblings)."""
    sibling = node.prev_named_sibling
    while sibling is not None and sibling.type in ("attribute_item", "line_comment", "block_comment"):
        if sibling.type == "attribute_item":
            yield sibling
        sibling = sibling.prev_named_sibling


def is_allowed(context: FileContext, node: TSNode) -> bool:
    """
    True if an `#[allow(..)]` / `#![allow(..)]` naming the lint covers node.

    Checks outer attributes on node and each enclosing statement or item,
    and inner attributes of each enclosing block, module or file.
    """
    cur: Optional[TSNode] = node
    while cur is not None:
        if any(_attribute_allows(context, attr) for attr in _preceding_attributes(cur)):
            return True
        for child in cur.named_children:
            if child.type == "inner_attribute_item" and _attribute_allows(context, child):
                return True
        cur = cur.parent
    return False


def _walk(node: TSNode):
    """Yield every descendant of node in document order (DFS)."""
    yield node
    for child in node.children:
        yield from _walk(child)


class UnusedIoAmountRule(Rule):
    """Detects `read`/`write` calls whose transferred byte count is ignored."""

    id = "unused-io-amount"
    name = "Unused I/O amount"
    category = "correctness"
    description = "unused written/read amount"

    def run(self, context: FileContext, config: Any) -> list[Finding]:
        respect_allow = config is None or config.respect_allow_attributes

        resolver = ScopeResolver(context)
        sink = DiagnosticSink(context, self.id, severity=self.severity_override(config))
        for node in _walk(context.root_node):
            if node.type != "block":
                continue
            for stmt in block_statements(context, node):
                if respect_allow and stmt.kind in (StmtKind.SEMI, StmtKind.EXPR) and is_allowed(
                    context, stmt.node
                ):
                    logger.debug("Skipping allowed statement at %s:%d", context.path, stmt.span.line)
                    continue
                check_stmt(stmt, resolver, sink)
        return sink.findings
