# tree-sitter-rust bindings: one shared Language, parsers built on demand.

import logging
from pathlib import Path
from typing import Optional

import tree_sitter
import tree_sitter_rust

logger = logging.getLogger(__name__)

RUST_LANGUAGE = tree_sitter.Language(tree_sitter_rust.language())


def get_rust_language() -> tree_sitter.Language:
    return RUST_LANGUAGE


def create_parser() -> tree_sitter.Parser:
    """A fresh Parser for Rust. Parsers are cheap; share one per run."""
    return tree_sitter.Parser(RUST_LANGUAGE)


def parse_bytes(
    source: bytes,
    parser: Optional[tree_sitter.Parser] = None,
) -> tree_sitter.Tree:
    """
    Parse UTF-8 Rust source.

    tree-sitter always returns a tree; syntax errors show up as ERROR or
    MISSING nodes and root_node.has_error, which is logged as a warning.
    """
    tree = (parser or create_parser()).parse(source)
    root = tree.root_node
    if root.has_error:
        logger.warning("Parse completed with errors: root=%s, %d bytes", root.type, len(source))
    else:
        logger.debug("Parse succeeded: root=%s, %d bytes", root.type, len(source))
    return tree


def parse_file(path: Path, parser: Optional[tree_sitter.Parser] = None) -> Optional[tree_sitter.Tree]:
    """Parse a .rs file; None (logged) when it cannot be read."""
    try:
        source = path.read_bytes()
    except OSError as e:
        logger.error("Failed to read file %s: %s", path, e)
        return None
    tree = parse_bytes(source, parser=parser)
    logger.info("Parsed file %s: success=%s", path, not tree.root_node.has_error)
    return tree
