"""Policy scanner: re-derives findings for a tree from scratch on every call."""

from __future__ import annotations

import os
from pathlib import Path

from forkguard.policy.catalog import DEFAULT_CATALOG, PolicyCatalog
from forkguard.policy.rules import ScanContext, build_rules
from forkguard.policy.types import RuleResult, ScanReport

SKIPPED_DIRS = frozenset({".git"})


def walk_tree(root: Path, catalog: PolicyCatalog = DEFAULT_CATALOG) -> list[str]:
    """Return repository-relative POSIX file paths in deterministic order.

    Version-control metadata and vendored dependency trees are not descended.
    """
    skipped = SKIPPED_DIRS | set(catalog.vendor_dirs)
    files: list[str] = []
    for current, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if d not in skipped)
        rel_dir = Path(current).relative_to(root)
        for name in sorted(filenames):
            files.append((rel_dir / name).as_posix())
    return files


def scan(root: Path, catalog: PolicyCatalog = DEFAULT_CATALOG) -> ScanReport:
    """Evaluate every rule against the tree rooted at ``root``."""
    resolved = root.resolve()
    if not resolved.is_dir():
        raise NotADirectoryError(f"scan root is not a directory: {resolved}")

    ctx = ScanContext(root=resolved, catalog=catalog, files=walk_tree(resolved, catalog))
    report = ScanReport(root=resolved)
    for rule in build_rules(catalog):
        report.rules.append(
            RuleResult(
                rule_id=rule.id,
                title=rule.title,
                pass_message=rule.pass_message,
                findings=rule.evaluate(ctx),
            )
        )
    return report
