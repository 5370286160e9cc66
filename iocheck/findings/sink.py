# Diagnostic sink: turns (span, message) pairs emitted by a rule into Findings.

from __future__ import annotations

import logging
from typing import Optional

from iocheck.context import FileContext
from iocheck.findings.models import CATEGORY_SEVERITY, Finding, Location
from iocheck.hir import Span

logger = logging.getLogger(__name__)


class DiagnosticSink:
    """
    Collects the diagnostics one rule emits for one file.

    Severity follows the lint category (correctness issues are errors)
    unless an explicit severity is given, e.g. from a config override.
    """

    def __init__(
        self,
        context: FileContext,
        rule_id: str,
        severity: Optional[str] = None,
    ) -> None:
        self.context = context
        self.rule_id = rule_id
        self.severity = severity
        self.findings: list[Finding] = []

    def emit(self, span: Span, message: str, category: str = "correctness") -> Finding:
        severity = self.severity or CATEGORY_SEVERITY.get(category, "warning")
        snippet = self.context.source[span.start_byte : span.end_byte].decode(
            "utf-8", errors="replace"
        )
        finding = Finding(
            rule_id=self.rule_id,
            message=message,
            location=Location(
                path=self.context.path,
                line=span.line,
                column=span.column,
                end_line=span.end_line,
                end_column=span.end_column,
                snippet=snippet,
            ),
            severity=severity,
            category=category,
        )
        logger.debug(
            "%s:%d:%d: [%s] %s",
            self.context.path,
            span.line,
            span.column,
            self.rule_id,
            message,
        )
        self.findings.append(finding)
        return finding
