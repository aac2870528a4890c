"""Policy scanner types."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

Severity = Literal["fail", "warn"]


@dataclass(frozen=True)
class Finding:
    """Single policy violation or warning."""

    rule_id: str
    severity: Severity
    location: str
    message: str


@dataclass
class RuleResult:
    """Findings produced by one rule during a scan."""

    rule_id: str
    title: str
    pass_message: str
    findings: list[Finding] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return not self.findings


@dataclass
class ScanReport:
    """Ordered result of a full policy scan."""

    root: Path
    rules: list[RuleResult] = field(default_factory=list)

    @property
    def findings(self) -> list[Finding]:
        return [finding for rule in self.rules for finding in rule.findings]

    @property
    def clean(self) -> bool:
        return not self.findings

    @property
    def exit_code(self) -> int:
        return 0 if self.clean else 1

    def count(self, severity: Severity) -> int:
        return sum(1 for finding in self.findings if finding.severity == severity)

    def for_rule(self, rule_id: str) -> list[Finding]:
        return [finding for finding in self.findings if finding.rule_id == rule_id]
