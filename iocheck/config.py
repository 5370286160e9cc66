from __future__ import annotations

"""
Scanner configuration: which rules are enabled and how they report.

The defaults register every implemented rule. A TOML file can disable
rules, override a rule's severity, or stop honoring `#[allow(...)]`
attributes in the analyzed source:

    [iocheck]
    disable = []
    respect-allow-attributes = true

    [iocheck.severity]
    unused-io-amount = "warning"
"""

import logging
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from iocheck.findings.models import SEVERITIES
from iocheck.rules.base import Rule
from iocheck.rules.unused_io_amount import UnusedIoAmountRule

logger = logging.getLogger(__name__)


class ConfigError(ValueError):
    """Raised when a configuration file cannot be read or is invalid."""


@dataclass
class Config:
    """
    Scanner configuration.

    Carries the enabled rules, per-rule severity overrides and whether
    source-level allow attributes suppress findings.
    """

    rules: Sequence[Rule] = field(default_factory=list)
    severity_overrides: Dict[str, str] = field(default_factory=dict)
    respect_allow_attributes: bool = True


def all_rules() -> List[Rule]:
    """Instantiate every implemented rule."""
    return [
        UnusedIoAmountRule(),
    ]


def get_default_config() -> Config:
    """
    Return the default configuration with all currently implemented rules.

    This is what the CLI in main.py uses unless --config is given.
    """
    return Config(rules=all_rules())


def get_enabled_rules(config: Config | None = None) -> Sequence[Rule]:
    """Return the list of enabled rules from the given config (or default config)."""
    if config is None:
        config = get_default_config()
    return config.rules


class _IoCheckSection(BaseModel):
    """Schema of the [iocheck] table."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    disable: List[str] = Field(default_factory=list)
    respect_allow_attributes: bool = Field(True, alias="respect-allow-attributes")
    severity: Dict[str, str] = Field(default_factory=dict)

    @field_validator("severity")
    @classmethod
    def _known_severities(cls, value: Dict[str, str]) -> Dict[str, str]:
        for rule_id, severity in value.items():
            if severity.lower() not in SEVERITIES:
                raise ValueError(
                    f"invalid severity {severity!r} for {rule_id}; expected one of {', '.join(SEVERITIES)}"
                )
        return {rule_id: severity.lower() for rule_id, severity in value.items()}


def load_config(path: Path) -> Config:
    """
    Build a Config from a TOML file with an [iocheck] table.

    A file without the table yields the default configuration.

    Raises:
        ConfigError: unreadable or malformed file, unknown keys, unknown
            rule ids, or invalid severities.
    """
    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except OSError as e:
        raise ConfigError(f"cannot read config {path}: {e}") from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"malformed config {path}: {e}") from e

    try:
        section = _IoCheckSection.model_validate(data.get("iocheck", {}))
    except ValidationError as e:
        raise ConfigError(f"invalid config {path}: {e}") from e

    rules = all_rules()
    known = {rule.id for rule in rules}
    unknown = sorted((set(section.disable) | set(section.severity)) - known)
    if unknown:
        raise ConfigError(f"unknown rule id(s) in {path}: {', '.join(unknown)}")

    enabled = [rule for rule in rules if rule.id not in section.disable]
    logger.info(
        "Loaded config %s: %d rule(s) enabled, %d severity override(s)",
        path,
        len(enabled),
        len(section.severity),
    )
    return Config(
        rules=enabled,
        severity_overrides=dict(section.severity),
        respect_allow_attributes=section.respect_allow_attributes,
    )


def find_config(start: Path) -> Optional[Path]:
    """Return the nearest iocheck.toml at or above start, or None."""
    current = start if start.is_dir() else start.parent
    for directory in (current, *current.parents):
        candidate = directory / "iocheck.toml"
        if candidate.is_file():
            return candidate
    return None
