# Lint interface: every check subclasses Rule and implements run() over one file.

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from iocheck.config import Config
    from iocheck.context import FileContext
    from iocheck.findings.models import Finding


class Rule(ABC):
    """
    A single lint.

    Class attributes:
    - id: stable identifier used in output and config ("unused-io-amount")
    - name: display name ("Unused I/O amount")
    - category: lint group; maps to the default severity
    - description: one-line summary

    run() is called once per file with a parsed FileContext and the active
    Config (None means defaults).
    """

    id: str
    name: str
    category: str = "correctness"
    description: str = ""

    def severity_override(self, config: Optional["Config"]) -> Optional[str]:
        """Severity configured for this rule, or None to follow the category."""
        if config is None:
            return None
        return config.severity_overrides.get(self.id)

    @abstractmethod
    def run(self, context: "FileContext", config: Optional["Config"]) -> list["Finding"]:
        """Analyze one file; return an empty list when nothing is wrong."""
        ...
