# FileContext: one parsed Rust file (path, raw bytes, syntax tree) as seen by rules.

import logging
from pathlib import Path
from typing import Iterable, Optional

from tree_sitter import Node as TSNode
from tree_sitter import Parser, Tree

from iocheck.parser import create_parser, parse_bytes

logger = logging.getLogger(__name__)


def count_tree_stats(root: TSNode) -> tuple[int, int]:
    """
    Return (node count, function_item count) for the tree under root.

    Methods inside impl and trait blocks count as functions.
    """
    nodes = 0
    functions = 0
    cursor = root.walk()
    while True:
        nodes += 1
        if cursor.node.type == "function_item":
            functions += 1
        if cursor.goto_first_child():
            continue
        while not cursor.goto_next_sibling():
            if not cursor.goto_parent():
                return nodes, functions


class FileContext:
    """
    A Rust source file ready for analysis.

    `source` is kept as bytes because tree-sitter offsets are byte offsets;
    use text(node) or get_source_span() to slice it.
    """

    def __init__(
        self,
        path: Path,
        source: bytes,
        tree: Tree,
        *,
        has_parse_errors: bool = False,
    ) -> None:
        self.path = path
        self.source = source
        self.tree = tree
        self.has_parse_errors = has_parse_errors

    @property
    def root_node(self) -> TSNode:
        return self.tree.root_node

    def text(self, node: TSNode) -> str:
        return get_source_span(self, node)

    def __repr__(self) -> str:
        return f"FileContext(path={str(self.path)!r}, bytes={len(self.source)}, errors={self.has_parse_errors})"


def get_source_span(context: FileContext, node: TSNode) -> str:
    """Source text covered by node; invalid UTF-8 is replaced, never raised."""
    return context.source[node.start_byte : node.end_byte].decode("utf-8", errors="replace")


def get_line_col(node: TSNode, one_based: bool = True) -> tuple[int, int]:
    """Start position of node, 1-based by default (tree-sitter's own is 0-based)."""
    row, col = node.start_point
    offset = 1 if one_based else 0
    return row + offset, col + offset


def create_context(
    path: Path,
    parser: Optional[Parser] = None,
) -> Optional[FileContext]:
    """
    Read and parse path.

    Returns None (after logging an error) when the file cannot be read. A file
    with syntax errors still gets a context, flagged with has_parse_errors, so
    rules can inspect whatever tree-sitter recovered.
    """
    try:
        source = path.read_bytes()
    except OSError as e:
        logger.error("Failed to read file %s: %s", path, e)
        return None

    tree = parse_bytes(source, parser=parser or create_parser())
    has_errors = tree.root_node.has_error
    if has_errors:
        logger.warning("File %s parsed with syntax errors; AST may be incomplete", path)

    nodes, functions = count_tree_stats(tree.root_node)
    logger.info(
        "Parsed %s: %d nodes, %d function(s)%s",
        path,
        nodes,
        functions,
        " (with parse errors)" if has_errors else "",
    )
    return FileContext(path=path, source=source, tree=tree, has_parse_errors=has_errors)


def load_contexts(
    paths: Iterable[Path],
    parser: Optional[Parser] = None,
) -> list[FileContext]:
    """Contexts for every readable path, in input order, sharing one parser."""
    parser = parser or create_parser()
    contexts = (create_context(path, parser=parser) for path in paths)
    return [ctx for ctx in contexts if ctx is not None]
