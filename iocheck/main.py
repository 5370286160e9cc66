from __future__ import annotations

"""
Typer CLI entry point and orchestration of the analysis pipeline.

The CLI:
- Accepts a .rs file or a directory (walked with traversal.find_rust_files)
- Loads configuration (--config, else the nearest iocheck.toml, else defaults)
- Builds a FileContext for each file and runs every enabled rule on it
- Prints findings with Rich, or one grep-like line per finding with --plain

Exit status is 1 when any finding has severity "error" (or no rule is
enabled), 0 otherwise.
"""

import logging
from pathlib import Path
from typing import List, Optional, Sequence

import typer
from rich.logging import RichHandler

from iocheck.config import Config, ConfigError, find_config, get_default_config, get_enabled_rules, load_config
from iocheck.context import load_contexts
from iocheck.findings.models import Finding
from iocheck.parser import create_parser
from iocheck.reporting.console import format_plain, print_findings
from iocheck.traversal import find_rust_files

logger = logging.getLogger(__name__)

app = typer.Typer(help="IoCheck - finds unchecked partial reads and writes in Rust source files.")


def _configure_logging(level: str) -> None:
    if level.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
        raise typer.BadParameter(f"Unknown log level: {level}", param_hint="--log-level")
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
        force=True,
    )


def _collect_rust_files(target: Path) -> List[Path]:
    """
    Resolve a target path into a list of .rs files to analyze.

    - If target is a .rs file, return [target]
    - If target is a directory, use traversal.find_rust_files()
    - Otherwise, exit with an error.
    """
    if target.is_file():
        if target.suffix.lower() != ".rs":
            raise typer.BadParameter(f"Target file must have .rs extension, got: {target}")
        return [target]

    if target.is_dir():
        files = find_rust_files(target)
        if not files:
            logger.warning("No .rs files found under %s", target)
        return files

    raise typer.BadParameter(f"Target path is neither a file nor a directory: {target}")


def _resolve_config(target: Path, config_path: Optional[Path]) -> Config:
    """Explicit --config wins; otherwise the nearest iocheck.toml; otherwise defaults."""
    path = config_path if config_path is not None else find_config(target)
    if path is None:
        return get_default_config()
    try:
        return load_config(path)
    except ConfigError as exc:
        raise typer.BadParameter(str(exc), param_hint="--config") from exc


def analyze_files(files: Sequence[Path], config: Config) -> List[Finding]:
    """Run every enabled rule over files; unreadable files and failing rules are skipped."""
    rules = list(get_enabled_rules(config))
    all_findings: List[Finding] = []
    # unreadable files are logged and left out by load_contexts
    for ctx in load_contexts(files, parser=create_parser()):
        for rule in rules:
            try:
                rule_findings = rule.run(ctx, config)
            except Exception as exc:  # pragma: no cover
                logger.exception("Rule %s failed on %s: %s", rule.id, ctx.path, exc)
                continue
            all_findings.extend(rule_findings)
    return all_findings


@app.command()
def analyze(
    target: Path = typer.Argument(
        ...,
        exists=True,
        readable=True,
        resolve_path=True,
        help="Rust file or directory to analyze.",
    ),
    config_path: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        exists=True,
        dir_okay=False,
        resolve_path=True,
        help="TOML file with an [iocheck] table. Defaults to the nearest iocheck.toml.",
    ),
    plain: bool = typer.Option(False, "--plain", help="One line per finding, no colors or tables."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show remediation hints."),
    log_level: str = typer.Option("WARNING", "--log-level", help="Logging level (DEBUG, INFO, WARNING, ERROR)."),
) -> None:
    """
    Analyze a single Rust file or all .rs files under a directory.
    """
    _configure_logging(log_level)
    config = _resolve_config(target, config_path)
    files = _collect_rust_files(target)

    if not get_enabled_rules(config):
        typer.echo("No rules are enabled in the current configuration.")
        raise typer.Exit(code=1)

    findings = analyze_files(files, config)

    if plain:
        if not findings:
            typer.echo("No findings.")
        for f in findings:
            typer.echo(format_plain(f))
    else:
        root = target if target.is_dir() else target.parent
        print_findings(findings, analyzed_files=files, verbose=verbose, root=root)

    if any(f.severity == "error" for f in findings):
        raise typer.Exit(code=1)


def main() -> None:
    """Entry point for `python -m iocheck.main` and the `iocheck` script."""
    app()


if __name__ == "__main__":
    main()
