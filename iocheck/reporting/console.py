# Terminal reporting: Rich tables per file, a files overview and a severity tally.

from __future__ import annotations

from collections import Counter, defaultdict
from pathlib import Path
from typing import Iterable, Sequence

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from iocheck.findings.models import SEVERITIES, Finding

TITLE = "IoCheck Analysis"

# Shown under each file with --verbose, once per rule.
RULE_REMEDIATIONS: dict[str, str] = {
    "unused-io-amount": (
        "read/write may transfer fewer bytes than the buffer holds. "
        "Use read_exact / write_all, or loop on the returned count until the buffer is done."
    ),
}

SEVERITY_STYLE = {
    "error": "bold red",
    "warning": "bold yellow",
    "info": "bold blue",
}


def _style(severity: str) -> str:
    return SEVERITY_STYLE.get(severity.lower(), "bold white")


def format_plain(finding: Finding) -> str:
    """`path:line:col: SEVERITY [rule] message`, for --plain and editors."""
    loc = finding.location
    return f"{loc.path}:{loc.line}:{loc.column}: {finding.severity.upper()} [{finding.rule_id}] {finding.message}"


def _shorten_path(path: str | Path, root: Path | None = None) -> str:
    """Display form of path: relative to root if inside it, else from src/ or tests/ on."""
    if root is not None:
        try:
            return Path(path).relative_to(root).as_posix()
        except ValueError:
            pass
    posix = str(path).replace("\\", "/")
    for marker in ("/src/", "/tests/", "/examples/", "/benches/"):
        at = posix.find(marker)
        if at >= 0:
            return posix[at + 1 :]
    return posix


def _findings_table(findings: Iterable[Finding]) -> Table:
    table = Table(header_style="bold magenta", box=box.SIMPLE, padding=(0, 1))
    table.add_column("Line", justify="right", style="dim", width=5)
    table.add_column("Col", justify="right", style="dim", width=4)
    table.add_column("Severity", width=10)
    table.add_column("Rule", width=20)
    table.add_column("Message")
    for f in findings:
        table.add_row(
            str(f.location.line),
            str(f.location.column),
            Text(f.severity.upper(), style=_style(f.severity)),
            Text(f"[{f.rule_id}]", style="dim"),
            Text(f.message),
        )
    return table


def _print_file(
    path: str,
    findings: list[Finding],
    console: Console,
    root: Path | None,
    verbose: bool,
) -> None:
    console.print()
    console.print(
        Panel(Text(_shorten_path(path, root), style="bold cyan"), box=box.SIMPLE_HEAD, border_style="blue")
    )
    console.print(_findings_table(findings))

    for f in findings:
        if f.location.snippet:
            console.print(Text.assemble(("  |-- ", "dim"), f"{f.location.line}: ", f.location.snippet.strip()))

    if verbose:
        for rule_id in dict.fromkeys(f.rule_id for f in findings):
            hint = RULE_REMEDIATIONS.get(rule_id)
            if hint:
                console.print(Text.assemble(("  [Fix] ", "dim"), f"[{rule_id}] {hint}"))
    console.print()


def print_findings(
    findings: Sequence[Finding],
    analyzed_files: Sequence[Path] | None = None,
    verbose: bool = False,
    root: Path | None = None,
    console: Console | None = None,
) -> None:
    """
    Render findings grouped by file, ordered by position.

    With analyzed_files, a files overview (clean vs flagged) follows. Paths
    are displayed relative to root when given.
    """
    console = console or Console()

    if not findings:
        if analyzed_files:
            _print_files_overview([], analyzed_files, console, root)
        else:
            console.print(Panel("[green]No issues found.[/green]", title=TITLE, border_style="green", box=box.ROUNDED))
        return

    grouped: dict[str, list[Finding]] = defaultdict(list)
    for f in findings:
        grouped[str(f.location.path)].append(f)
    for path in sorted(grouped):
        ordered = sorted(grouped[path], key=lambda f: (f.location.line, f.location.column))
        _print_file(path, ordered, console, root, verbose)

    if analyzed_files:
        _print_files_overview(findings, analyzed_files, console, root)
    _print_tally(findings, console)


def _print_files_overview(
    findings: Sequence[Finding],
    analyzed_files: Sequence[Path],
    console: Console,
    root: Path | None = None,
) -> None:
    per_file = Counter(str(f.location.path) for f in findings)

    table = Table(title="Files Summary", header_style="bold cyan", box=box.ROUNDED, padding=(0, 1))
    table.add_column("File")
    table.add_column("Status", width=10)
    table.add_column("Findings", justify="right", width=8)

    # flagged files first, then clean ones, each alphabetically
    for p in sorted(analyzed_files, key=lambda p: (per_file[str(p)] == 0, str(p))):
        count = per_file[str(p)]
        status = Text("ISSUES", style="bold red") if count else Text("OK", style="bold green")
        table.add_row(_shorten_path(p, root), status, str(count))

    console.print()
    console.print(Panel(table, border_style="cyan", box=box.ROUNDED))


def _print_tally(findings: Sequence[Finding], console: Console) -> None:
    by_severity = Counter(f.severity.lower() for f in findings)
    total = len(findings)

    parts: list[Text] = [Text(f"{total} finding{'' if total == 1 else 's'}", style="bold")]
    for severity in SEVERITIES:
        if by_severity[severity]:
            parts.append(Text(f"{by_severity[severity]} {severity}", style=_style(severity)))

    console.print()
    console.print(
        Panel(
            Text(" | ").join(parts),
            title="Summary",
            border_style="yellow" if total else "green",
            box=box.ROUNDED,
        )
    )
