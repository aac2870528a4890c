"""Removal of banned content from a post-transplant working tree."""

from __future__ import annotations

import json
import re
from collections.abc import Callable, Iterable
from pathlib import Path

from forkguard.policy.rules import unexpected_built_dependencies
from forkguard.sync.types import ScrubAction

_LEADING_INDENT = re.compile(r'^([ \t]+)"', re.MULTILINE)


def scrub(
    root: Path,
    banned_paths: Iterable[str],
    *,
    remove: Callable[[str], None],
    commit: str | None = None,
) -> list[ScrubAction]:
    """Remove every banned directory present under root.

    ``remove`` receives the repository-relative path and must delete it from
    both the working tree and the index. Absent paths are skipped, so a
    second call on the same tree returns an empty list.
    """
    actions: list[ScrubAction] = []
    for banned in banned_paths:
        if not (root / banned).is_dir():
            continue
        remove(banned)
        actions.append(ScrubAction(path=banned, commit=commit))
    return actions


def prune_built_dependencies(
    root: Path,
    expected: Iterable[str],
    *,
    stage: Callable[[str], None],
    manifest_name: str = "package.json",
    commit: str | None = None,
) -> list[ScrubAction]:
    """Drop unexpected ``pnpm.onlyBuiltDependencies`` entries from the root manifest.

    The rewritten manifest keeps its key order and indentation and is handed
    to ``stage`` so the removal lands in the same commit. A manifest that is
    missing, unparseable or already aligned with ``expected`` is left alone.
    """
    manifest = root / manifest_name
    if not manifest.is_file():
        return []
    content = manifest.read_text(encoding="utf-8")
    unexpected = unexpected_built_dependencies(content, expected)
    if not unexpected:
        return []

    payload = json.loads(content)
    pnpm = payload["pnpm"]
    pnpm["onlyBuiltDependencies"] = [
        entry for entry in pnpm["onlyBuiltDependencies"] if entry not in unexpected
    ]
    match = _LEADING_INDENT.search(content)
    indent = match.group(1) if match else 2
    manifest.write_text(json.dumps(payload, indent=indent, ensure_ascii=False) + "\n", encoding="utf-8")
    stage(manifest_name)
    return [ScrubAction(path=manifest_name, commit=commit, entry=entry) for entry in unexpected]
