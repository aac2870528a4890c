"""Declarative policy rule table.

Each rule turns a ``ScanContext`` into zero or more findings. Content rules
are assembled from a file selector ``(path) -> bool`` and a matcher
``(path, content) -> line numbers``; both are pure, so every rule can be
exercised without walking a real tree.
"""

from __future__ import annotations

import json
import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Any

from forkguard.policy.catalog import PolicyCatalog
from forkguard.policy.types import Finding, Severity

RULE_BANNED_DIRECTORY = "banned-directory"
RULE_RISKY_PACKAGE = "risky-package"
RULE_AUTO_START = "auto-start"
RULE_PRIVATE_KEY = "private-key"
RULE_BUILT_DEPENDENCIES_DRIFT = "built-dependencies-drift"

DEPENDENCY_BLOCKS: tuple[str, ...] = ("dependencies", "devDependencies")
MAX_REPORTED_LINES = 5

_SET_INTERVAL = re.compile(r"\bsetInterval\s*\(")
_PRIVATE_KEY = re.compile(r"\b(?:privateKey|secretKey|PRIVATE_KEY)\b", re.IGNORECASE)
# Matched case-insensitively against both the file path and the line.
_PRIVATE_KEY_EXCLUDED = re.compile(r"(\.test\.|\.spec\.|mock|fixture|example)", re.IGNORECASE)
_TEST_FILE = re.compile(r"\.(test|spec)\.")
_TEXT_BLOCK = re.compile(r'"(dependencies|devDependencies)"\s*:\s*\{([^{}]*)\}', re.DOTALL)
_TEXT_KEY = re.compile(r'"([^"]+)"\s*:')

Selector = Callable[[str], bool]
Matcher = Callable[[str, str], list[int]]


@dataclass
class ScanContext:
    """Tree snapshot handed to every rule."""

    root: Path
    catalog: PolicyCatalog
    files: list[str] = field(default_factory=list)

    def read(self, relative_path: str) -> str | None:
        try:
            return (self.root / relative_path).read_text(encoding="utf-8", errors="replace")
        except OSError:
            return None


@dataclass(frozen=True)
class Rule:
    """One policy rule: identity, severity and its evaluation function."""

    id: str
    title: str
    severity: Severity
    pass_message: str
    evaluate: Callable[[ScanContext], list[Finding]]


# --------------------------------------------------------------------------
# Manifest parsing
# --------------------------------------------------------------------------


def _load_manifest(content: str) -> dict[str, Any] | None:
    try:
        payload = json.loads(content)
    except json.JSONDecodeError:
        return None
    return payload if isinstance(payload, dict) else None


def declared_dependencies(content: str) -> set[str]:
    """Package names declared as direct or dev dependencies of a manifest."""
    payload = _load_manifest(content)
    if payload is None:
        names: set[str] = set()
        for match in _TEXT_BLOCK.finditer(content):
            names.update(_TEXT_KEY.findall(match.group(2)))
        return names

    names = set()
    for block in DEPENDENCY_BLOCKS:
        section = payload.get(block)
        if isinstance(section, dict):
            names.update(str(name) for name in section)
    return names


def built_dependencies(content: str) -> list[str]:
    """Entries of ``pnpm.onlyBuiltDependencies`` in declaration order."""
    payload = _load_manifest(content)
    if payload is None:
        return []
    pnpm = payload.get("pnpm")
    if not isinstance(pnpm, dict):
        return []
    entries = pnpm.get("onlyBuiltDependencies")
    if not isinstance(entries, list):
        return []
    return [entry for entry in entries if isinstance(entry, str) and entry]


def unexpected_built_dependencies(content: str, expected: Iterable[str]) -> list[str]:
    allowed = set(expected)
    return [entry for entry in built_dependencies(content) if entry not in allowed]


def missing_built_dependencies(content: str, expected: Iterable[str]) -> list[str]:
    """Expected allowlist entries the manifest no longer declares.

    Not reported as findings: narrowing the allowlist is currently accepted
    silently.
    """
    declared = set(built_dependencies(content))
    return [entry for entry in expected if entry not in declared]


# --------------------------------------------------------------------------
# Selectors and matchers
# --------------------------------------------------------------------------


def extension_source_selector(catalog: PolicyCatalog) -> Selector:
    prefix = catalog.extension_root.strip("/") + "/"
    suffixes = tuple(catalog.source_suffixes)

    def select(path: str) -> bool:
        name = PurePosixPath(path).name
        return path.startswith(prefix) and name.endswith(suffixes) and not _TEST_FILE.search(name)

    return select


def is_plugin_entry_point(path: str, extension_root: str = "extensions") -> bool:
    """True for ``<root>/<plugin>/index.*`` and ``<root>/<plugin>/src/index.*``."""
    parts = PurePosixPath(path).parts
    if not parts or parts[0] != extension_root.strip("/"):
        return False
    if PurePosixPath(path).stem != "index":
        return False
    return len(parts) == 3 or (len(parts) == 4 and parts[2] == "src")


def match_auto_start(path: str, content: str, extension_root: str = "extensions") -> list[int]:
    """Lines with a periodic timer at file scope, or anywhere in an entry point."""
    entry_point = is_plugin_entry_point(path, extension_root)
    hits: list[int] = []
    for number, line in enumerate(content.splitlines(), start=1):
        if not _SET_INTERVAL.search(line):
            continue
        if entry_point or not line[:1].isspace():
            hits.append(number)
    return hits


def match_private_key(path: str, content: str) -> list[int]:
    """Lines naming a private or secret key as a whole word."""
    if _PRIVATE_KEY_EXCLUDED.search(path):
        return []
    return [
        number
        for number, line in enumerate(content.splitlines(), start=1)
        if _PRIVATE_KEY.search(line) and not _PRIVATE_KEY_EXCLUDED.search(line)
    ]


def _render_lines(lines: list[int]) -> str:
    shown = ", ".join(str(n) for n in lines[:MAX_REPORTED_LINES])
    if len(lines) > MAX_REPORTED_LINES:
        shown += ", ..."
    return f"line {shown}" if len(lines) == 1 else f"lines {shown}"


def content_rule(
    *,
    rule_id: str,
    title: str,
    severity: Severity,
    pass_message: str,
    selector: Selector,
    matcher: Matcher,
    describe: Callable[[str], str],
) -> Rule:
    """Build a rule that applies ``matcher`` to every selected file."""

    def evaluate(ctx: ScanContext) -> list[Finding]:
        findings: list[Finding] = []
        for path in ctx.files:
            if not selector(path):
                continue
            content = ctx.read(path)
            if content is None:
                continue
            lines = matcher(path, content)
            if lines:
                findings.append(
                    Finding(
                        rule_id=rule_id,
                        severity=severity,
                        location=path,
                        message=f"{describe(path)} ({_render_lines(lines)})",
                    )
                )
        return findings

    return Rule(id=rule_id, title=title, severity=severity, pass_message=pass_message, evaluate=evaluate)


# --------------------------------------------------------------------------
# Tree rules
# --------------------------------------------------------------------------


def _banned_directories(ctx: ScanContext) -> list[Finding]:
    return [
        Finding(
            rule_id=RULE_BANNED_DIRECTORY,
            severity="fail",
            location=banned,
            message=f"Directory exists: {banned}",
        )
        for banned in ctx.catalog.banned_paths
        if (ctx.root / banned).is_dir()
    ]


def _risky_packages(ctx: ScanContext) -> list[Finding]:
    findings: list[Finding] = []
    for path in ctx.files:
        if PurePosixPath(path).name != ctx.catalog.manifest_name:
            continue
        content = ctx.read(path)
        if content is None:
            continue
        declared = declared_dependencies(content)
        for package in ctx.catalog.risky_packages:
            if package in declared:
                findings.append(
                    Finding(
                        rule_id=RULE_RISKY_PACKAGE,
                        severity="fail",
                        location=path,
                        message=f"Risky native package '{package}' found in {path}",
                    )
                )
    return findings


def _built_dependencies_drift(ctx: ScanContext) -> list[Finding]:
    manifest = ctx.root / ctx.catalog.manifest_name
    if not manifest.is_file():
        return []
    content = ctx.read(ctx.catalog.manifest_name)
    if content is None:
        return []
    return [
        Finding(
            rule_id=RULE_BUILT_DEPENDENCIES_DRIFT,
            severity="warn",
            location=ctx.catalog.manifest_name,
            message=f"Unexpected onlyBuiltDependencies entry: {entry}",
        )
        for entry in unexpected_built_dependencies(content, ctx.catalog.expected_built_dependencies)
    ]


def build_rules(catalog: PolicyCatalog) -> tuple[Rule, ...]:
    """Rule table in fixed evaluation order."""
    extension_sources = extension_source_selector(catalog)
    return (
        Rule(
            id=RULE_BANNED_DIRECTORY,
            title="Banned extension directories",
            severity="fail",
            pass_message="No banned extension directories found",
            evaluate=_banned_directories,
        ),
        Rule(
            id=RULE_RISKY_PACKAGE,
            title="Native binary packages",
            severity="fail",
            pass_message="No risky native packages in dependencies",
            evaluate=_risky_packages,
        ),
        content_rule(
            rule_id=RULE_AUTO_START,
            title="Auto-start patterns in extensions",
            severity="warn",
            pass_message="No suspicious auto-start patterns in extensions",
            selector=extension_sources,
            matcher=lambda path, content: match_auto_start(path, content, catalog.extension_root),
            describe=lambda path: f"setInterval found in: {path}",
        ),
        content_rule(
            rule_id=RULE_PRIVATE_KEY,
            title="Private key patterns in source",
            severity="warn",
            pass_message="No private key patterns in extensions",
            selector=extension_sources,
            matcher=match_private_key,
            describe=lambda path: f"Private key pattern in: {path}",
        ),
        Rule(
            id=RULE_BUILT_DEPENDENCIES_DRIFT,
            title=f"onlyBuiltDependencies in root {catalog.manifest_name}",
            severity="warn",
            pass_message="onlyBuiltDependencies matches expected list",
            evaluate=_built_dependencies_drift,
        ),
    )
