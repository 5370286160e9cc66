"""
Source discovery: collect the .rs files under a crate or workspace root.

Cargo's target/ directory, vendored code, VCS metadata and editor or cache
directories are pruned by name. Integration tests (tests/) and examples are
regular Rust code and are scanned.

    from iocheck.traversal import find_rust_files

    files = find_rust_files(Path("./my_crate"))
"""

import logging
from pathlib import Path
from typing import Callable, Iterator, Optional, Set

logger = logging.getLogger(__name__)

DEFAULT_IGNORE_DIRS: Set[str] = {
    # cargo
    "target",
    # vendored or foreign sources
    "vendor",
    "third_party",
    "node_modules",
    # VCS
    ".git",
    ".svn",
    ".hg",
    # editors
    ".vscode",
    ".idea",
    ".vs",
    # tooling caches
    "venv",
    ".venv",
    "__pycache__",
    ".cache",
    ".pytest_cache",
}


def is_rust_file(path: Path) -> bool:
    """
    >>> is_rust_file(Path("src/main.rs"))
    True
    >>> is_rust_file(Path("Cargo.toml"))
    False
    """
    return path.suffix.lower() == ".rs"


def should_ignore_directory(dir_path: Path, ignore_dirs: Set[str]) -> bool:
    """Prune by directory name only (case-sensitive), never by full path."""
    return dir_path.name in ignore_dirs


def _entries(directory: Path) -> Iterator[Path]:
    """Children of directory; unreadable directories are logged and yield nothing."""
    try:
        children = list(directory.iterdir())
    except PermissionError as e:
        logger.warning("Permission denied accessing directory %s: %s", directory, e)
        return
    except OSError as e:
        logger.warning("Error accessing directory %s: %s", directory, e)
        return
    yield from children


def find_source_files(
    root: Path,
    ignore_dirs: Optional[Set[str]] = None,
    follow_symlinks: bool = False,
    filter_fn: Optional[Callable[[Path], bool]] = None,
) -> list[Path]:
    """
    Return every .rs file below root, sorted, as absolute paths.

    Args:
        root: Directory to search.
        ignore_dirs: Directory names to prune; DEFAULT_IGNORE_DIRS when None.
        follow_symlinks: Descend into symlinked directories and accept
            symlinked files. Off by default.
        filter_fn: Extra predicate a file must satisfy to be returned.

    Raises:
        FileNotFoundError: root does not exist.
        NotADirectoryError: root is not a directory.
    """
    if ignore_dirs is None:
        ignore_dirs = DEFAULT_IGNORE_DIRS

    root = root.resolve()
    if not root.exists():
        logger.error("Root directory does not exist: %s", root)
        raise FileNotFoundError(f"Root directory does not exist: {root}")
    if not root.is_dir():
        logger.error("Root path is not a directory: %s", root)
        raise NotADirectoryError(f"Root path is not a directory: {root}")

    logger.info("Starting traversal from: %s", root)
    logger.debug("Traversal config: follow_symlinks=%s, ignore_dirs=%s", follow_symlinks, sorted(ignore_dirs))

    found: list[Path] = []
    pending = [root]
    while pending:
        directory = pending.pop()
        for entry in _entries(directory):
            if entry.is_symlink() and not follow_symlinks:
                logger.debug("Skipping symlink: %s", entry)
            elif entry.is_dir():
                if should_ignore_directory(entry, ignore_dirs):
                    logger.debug("Ignoring directory: %s", entry)
                else:
                    pending.append(entry)
            elif entry.is_file() and is_rust_file(entry):
                if filter_fn is not None and not filter_fn(entry):
                    logger.debug("Filtered out by custom filter: %s", entry)
                    continue
                found.append(entry)

    found.sort()
    logger.info("Traversal complete: found %d source file(s) in %s", len(found), root)
    return found


def find_rust_files(
    root: Path,
    ignore_dirs: Optional[Set[str]] = None,
    follow_symlinks: bool = False,
) -> list[Path]:
    """find_source_files() without a custom filter; what the CLI uses."""
    return find_source_files(root, ignore_dirs=ignore_dirs, follow_symlinks=follow_symlinks)
