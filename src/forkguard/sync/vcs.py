"""Version-control capability interface and its git implementation."""

from __future__ import annotations

import shutil
from pathlib import Path
from typing import Protocol

from forkguard.sync.exec import ExecError, ExecResult, run_git
from forkguard.sync.types import CommitInfo


class VcsAdapter(Protocol):
    """Narrow set of version-control primitives the orchestrator relies on."""

    root: Path

    def remote_url(self, name: str) -> str | None: ...

    def add_remote(self, name: str, url: str) -> None: ...

    def fetch(self, remote: str, branch: str) -> None: ...

    def merge_base(self, left: str, right: str) -> str | None: ...

    def count_commits(self, base: str, tip: str) -> int: ...

    def list_commits(self, base: str, tip: str, *, limit: int | None = None) -> list[CommitInfo]: ...

    def resolve_commit(self, ref: str) -> str | None: ...

    def expand_range(self, start: str, end: str) -> list[str]: ...

    def cherry_pick_no_commit(self, sha: str) -> ExecResult: ...

    def has_unmerged_paths(self) -> bool: ...

    def remove_path(self, relative_path: str) -> None: ...

    def stage_path(self, relative_path: str) -> None: ...

    def has_staged_changes(self) -> bool: ...

    def commit(self, *, reuse_message_from: str | None = None, amend: bool = False) -> None: ...

    def is_clean(self) -> bool: ...


def resolve_repo_root(repo: Path | None = None) -> Path:
    """Resolve git repo root from cwd or explicit path."""
    probe = (repo or Path.cwd()).resolve()
    try:
        out = run_git(["rev-parse", "--show-toplevel"], repo_root=probe)
    except ExecError as exc:
        raise RuntimeError(f"unable to resolve git repo root from {probe}: {exc}") from exc
    root = out.stdout.strip()
    if not root:
        raise RuntimeError(f"unable to resolve git repo root from {probe}: empty output")
    return Path(root).resolve()


class GitAdapter:
    """VcsAdapter backed by the git executable."""

    def __init__(self, root: Path):
        self.root = root.resolve()

    def _git(self, *args: str, check: bool = True) -> ExecResult:
        return run_git(list(args), repo_root=self.root, check=check)

    def remote_url(self, name: str) -> str | None:
        result = self._git("remote", "get-url", name, check=False)
        if result.returncode != 0:
            return None
        return result.stdout.strip() or None

    def add_remote(self, name: str, url: str) -> None:
        self._git("remote", "add", name, url)

    def fetch(self, remote: str, branch: str) -> None:
        self._git("fetch", remote, branch, "--no-tags", "--quiet")

    def merge_base(self, left: str, right: str) -> str | None:
        result = self._git("merge-base", left, right, check=False)
        if result.returncode != 0:
            return None
        return result.stdout.strip() or None

    def count_commits(self, base: str, tip: str) -> int:
        out = self._git("rev-list", "--count", f"{base}..{tip}").stdout.strip()
        return int(out or "0")

    def list_commits(self, base: str, tip: str, *, limit: int | None = None) -> list[CommitInfo]:
        args = ["log", "--no-merges", "--format=%H %s"]
        if limit is not None:
            args.append(f"--max-count={limit}")
        args.append(f"{base}..{tip}")
        commits: list[CommitInfo] = []
        for line in self._git(*args).stdout.splitlines():
            if not line.strip():
                continue
            sha, _, subject = line.partition(" ")
            commits.append(CommitInfo(sha=sha, subject=subject))
        return commits

    def resolve_commit(self, ref: str) -> str | None:
        result = self._git("rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}", check=False)
        if result.returncode != 0:
            return None
        return result.stdout.strip() or None

    def expand_range(self, start: str, end: str) -> list[str]:
        """Return commits of the inclusive range start..end, oldest first."""
        ancestry = self._git("merge-base", "--is-ancestor", start, end, check=False)
        if ancestry.returncode != 0:
            raise RuntimeError(f"{start} is not an ancestor of {end}; cannot build an inclusive range")
        rest = self._git("rev-list", "--reverse", "--no-merges", f"{start}..{end}").stdout.split()
        return [start, *rest]

    def cherry_pick_no_commit(self, sha: str) -> ExecResult:
        return self._git("cherry-pick", "--no-commit", sha, check=False)

    def has_unmerged_paths(self) -> bool:
        return bool(self._git("diff", "--name-only", "--diff-filter=U").stdout.strip())

    def remove_path(self, relative_path: str) -> None:
        self._git("rm", "-r", "-f", "--quiet", "--ignore-unmatch", "--", relative_path)
        leftover = self.root / relative_path
        if leftover.exists():
            shutil.rmtree(leftover)

    def stage_path(self, relative_path: str) -> None:
        self._git("add", "--", relative_path)

    def has_staged_changes(self) -> bool:
        result = self._git("diff", "--cached", "--quiet", check=False)
        return result.returncode != 0

    def commit(self, *, reuse_message_from: str | None = None, amend: bool = False) -> None:
        if amend:
            self._git("commit", "--amend", "--no-edit", "--quiet")
            return
        if reuse_message_from is None:
            self._git("commit", "--no-edit", "--quiet")
            return
        self._git("commit", "--quiet", "-C", reuse_message_from)

    def is_clean(self) -> bool:
        status = self._git("status", "--porcelain", "--untracked-files=no").stdout
        return not status.strip()
