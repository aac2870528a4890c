"""Selective upstream sync: transplant, scrub, amend, verify."""

from __future__ import annotations

import os
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from pathlib import Path

from rich.console import Console
from rich.markup import escape

from forkguard.policy.catalog import DEFAULT_CATALOG, PolicyCatalog
from forkguard.policy.rules import RULE_BANNED_DIRECTORY, RULE_BUILT_DEPENDENCIES_DRIFT
from forkguard.policy.scanner import scan
from forkguard.policy.types import ScanReport
from forkguard.sync.exec import ExecError
from forkguard.sync.scrub import prune_built_dependencies, scrub
from forkguard.sync.types import (
    DEFAULT_PREVIEW_LIMIT,
    DEFAULT_UPSTREAM_BRANCH,
    DEFAULT_UPSTREAM_REMOTE,
    DEFAULT_UPSTREAM_URL,
    CommitOutcome,
    ScrubAction,
    SyncResult,
    SyncState,
    SyncTarget,
)
from forkguard.sync.vcs import VcsAdapter
from forkguard.ui import console as default_console
from forkguard.ui import render_scan_report

Verifier = Callable[[Path, PolicyCatalog], ScanReport]


class SyncError(RuntimeError):
    """Fatal precondition failure; the run is aborted."""


@dataclass(frozen=True)
class SyncConfig:
    """Upstream coordinates for the sync workflow."""

    remote: str = DEFAULT_UPSTREAM_REMOTE
    branch: str = DEFAULT_UPSTREAM_BRANCH
    url: str = DEFAULT_UPSTREAM_URL
    preview_limit: int = DEFAULT_PREVIEW_LIMIT

    @property
    def upstream_ref(self) -> str:
        return f"{self.remote}/{self.branch}"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> SyncConfig:
        env = os.environ if environ is None else environ
        limit_raw = env.get("FORKGUARD_PREVIEW_LIMIT", "").strip()
        try:
            limit = int(limit_raw) if limit_raw else DEFAULT_PREVIEW_LIMIT
        except ValueError as exc:
            raise SyncError(f"FORKGUARD_PREVIEW_LIMIT must be an integer, got `{limit_raw}`") from exc
        if limit < 1:
            raise SyncError("FORKGUARD_PREVIEW_LIMIT must be at least 1")
        return cls(
            remote=env.get("FORKGUARD_UPSTREAM_REMOTE", "").strip() or DEFAULT_UPSTREAM_REMOTE,
            branch=env.get("FORKGUARD_UPSTREAM_BRANCH", "").strip() or DEFAULT_UPSTREAM_BRANCH,
            url=env.get("FORKGUARD_UPSTREAM_URL", "").strip() or DEFAULT_UPSTREAM_URL,
            preview_limit=limit,
        )


def parse_target(value: str | None) -> SyncTarget | None:
    """Parse ``<commit>`` or ``<from>..<to>``; None or blank means listing mode."""
    if value is None or not value.strip():
        return None
    raw = value.strip()
    if "..." in raw:
        raise ValueError(f"symmetric ranges are not supported: {raw}")
    if ".." not in raw:
        return SyncTarget(start=raw)
    start, _, end = raw.partition("..")
    if not start or not end:
        raise ValueError(f"range must name both ends (<from>..<to>): {raw}")
    return SyncTarget(start=start, end=end)


class SyncOrchestrator:
    """Single-writer state machine over one working tree."""

    def __init__(
        self,
        vcs: VcsAdapter,
        *,
        catalog: PolicyCatalog = DEFAULT_CATALOG,
        config: SyncConfig | None = None,
        verify: Verifier | None = scan,
        console: Console | None = None,
    ):
        self.vcs = vcs
        self.catalog = catalog
        self.config = config or SyncConfig()
        self.verify = verify
        self.console = console or default_console

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def run(self, target: SyncTarget | None = None) -> SyncResult:
        """List candidate commits, or transplant ``target`` onto HEAD."""
        result = SyncResult(target=target)
        try:
            self._ensure_remote(result)
            self._fetch(result)
            self._resolve_base(result)

            self.console.print(
                f"\n[bold]Upstream has [green]{result.new_commits}[/green] new commit(s) since last sync.[/bold]"
            )
            if result.new_commits == 0:
                return self._finish(result, SyncState.DONE, "Already up to date.")

            if target is None:
                self._interactive_list(result)
                return self._finish(result, SyncState.DONE, "Listed candidate commits; nothing was changed.")

            self._transplant_target(result, target)
        except SyncError as exc:
            self.console.print(f"[red]error:[/red] {escape(str(exc))}")
            return self._finish(result, SyncState.ABORTED, str(exc))
        return result

    def rescrub(self) -> SyncResult:
        """Scrub HEAD after a manually completed transplant and amend it if needed."""
        result = SyncResult()
        try:
            if not self.vcs.is_clean():
                raise SyncError(
                    "working tree has uncommitted changes; finish resolving and commit before --rescrub"
                )
            head = self.vcs.resolve_commit("HEAD")
            if head is None:
                raise SyncError("HEAD does not resolve to a commit")
            outcome = CommitOutcome(sha=head, status="rescrubbed")
            result.outcomes.append(outcome)
            outcome.scrubbed = self._scrub(result, head)
            if outcome.scrubbed:
                self._enter(result, SyncState.AMEND)
                self.vcs.commit(amend=True)
                self.console.print(f"  [green]✓[/green] Amended {head[:12]} with scrubbed paths")
            self._verify(result)
        except SyncError as exc:
            self.console.print(f"[red]error:[/red] {escape(str(exc))}")
            return self._finish(result, SyncState.ABORTED, str(exc))
        return self._finish(result, SyncState.DONE, "Re-scrub complete.")

    # ------------------------------------------------------------------
    # States
    # ------------------------------------------------------------------

    def _enter(self, result: SyncResult, state: SyncState) -> None:
        result.state = state
        result.trail.append(state)

    def _finish(self, result: SyncResult, state: SyncState, message: str) -> SyncResult:
        self._enter(result, state)
        result.message = message
        if state == SyncState.DONE:
            self.console.print(f"[green]{escape(message)}[/green]")
        return result

    def _ensure_remote(self, result: SyncResult) -> None:
        self._enter(result, SyncState.ENSURE_REMOTE)
        remote = self.config.remote
        if self.vcs.remote_url(remote) is not None:
            self.console.print(f"  [green]✓[/green] Remote '{escape(remote)}' present")
            return
        self.console.print(f"[yellow]Remote '{escape(remote)}' not found. Adding it...[/yellow]")
        try:
            self.vcs.add_remote(remote, self.config.url)
        except ExecError as exc:
            raise SyncError(f"Cannot add remote '{remote}' ({self.config.url}): {exc}") from exc
        self.console.print(f"  [green]✓[/green] Added {escape(remote)} -> {escape(self.config.url)}")

    def _fetch(self, result: SyncResult) -> None:
        self._enter(result, SyncState.FETCH)
        self.console.print(f"[bold]Fetching {escape(self.config.upstream_ref)}...[/bold]")
        try:
            self.vcs.fetch(self.config.remote, self.config.branch)
        except ExecError as exc:
            raise SyncError(
                f"Failed to fetch {self.config.upstream_ref}; check connectivity and re-run. {exc}"
            ) from exc
        self.console.print(f"  [green]✓[/green] Fetched {escape(self.config.upstream_ref)}")

    def _resolve_base(self, result: SyncResult) -> None:
        self._enter(result, SyncState.RESOLVE_BASE)
        upstream = self.config.upstream_ref
        self.console.print(f"[bold]Resolving merge base with {escape(upstream)}...[/bold]")
        tip = self.vcs.resolve_commit(upstream)
        if tip is None:
            raise SyncError(f"Upstream reference {upstream} does not resolve to a commit")
        base = self.vcs.merge_base("HEAD", upstream)
        if base is None:
            raise SyncError(f"Cannot find merge base with {upstream}; histories are unrelated")
        result.tip = tip
        result.base = base
        result.new_commits = self.vcs.count_commits(base, tip)
        self.console.print(f"  [green]✓[/green] Merge base {base[:12]}, upstream tip {tip[:12]}")

    def _interactive_list(self, result: SyncResult) -> None:
        self._enter(result, SyncState.INTERACTIVE_LIST)
        assert result.base is not None and result.tip is not None
        result.listed = self.vcs.list_commits(result.base, result.tip, limit=self.config.preview_limit)

        self.console.print("\n[bold]Recent upstream commits:[/bold]\n")
        for commit in result.listed:
            self.console.print(f"{commit.short} {escape(commit.subject)}", highlight=False)
        if result.new_commits > len(result.listed):
            hidden = result.new_commits - len(result.listed)
            self.console.print(f"[dim]... {hidden} more (merges or beyond the preview limit)[/dim]")

        self.console.print("\n[bold]Usage:[/bold]")
        self.console.print("  forkguard sync <commit-hash>        # single commit")
        self.console.print("  forkguard sync <from>..<to>         # inclusive range")
        self.console.print()
        self.console.print("Each transplant automatically scrubs banned extensions and runs the security guard.")

    def _resolve_commits(self, target: SyncTarget) -> list[str]:
        start = self.vcs.resolve_commit(target.start)
        if start is None:
            raise SyncError(f"Unknown commit: {target.start}")
        if target.end is None:
            return [start]
        end = self.vcs.resolve_commit(target.end)
        if end is None:
            raise SyncError(f"Unknown commit: {target.end}")
        try:
            return self.vcs.expand_range(start, end)
        except RuntimeError as exc:
            raise SyncError(str(exc)) from exc

    def _transplant_target(self, result: SyncResult, target: SyncTarget) -> None:
        if not self.vcs.is_clean():
            raise SyncError("Working tree has uncommitted changes; commit or stash them before syncing")
        commits = self._resolve_commits(target)

        for index, sha in enumerate(commits):
            self._enter(result, SyncState.TRANSPLANT)
            self.console.print(f"\n[bold]Cherry-picking: {sha[:12]}[/bold]")
            picked = self.vcs.cherry_pick_no_commit(sha)
            if picked.returncode != 0:
                if not self.vcs.has_unmerged_paths():
                    result.outcomes.append(CommitOutcome(sha=sha, status="failed"))
                    detail = (picked.stderr or picked.stdout).strip() or f"exit code {picked.returncode}"
                    raise SyncError(
                        f"Cherry-pick of {sha[:12]} failed without conflicts: {detail}\n"
                        "Nothing was applied for this commit; fix the cause above and re-run."
                    )
                result.outcomes.append(CommitOutcome(sha=sha, status="conflict"))
                self._report_conflict(result, sha, commits[index + 1 :], target)
                return

            outcome = CommitOutcome(sha=sha, status="applied")
            result.outcomes.append(outcome)
            outcome.scrubbed = self._scrub(result, sha)
            if outcome.scrubbed:
                self._enter(result, SyncState.AMEND)

            if not self.vcs.has_staged_changes():
                outcome.status = "empty"
                self.console.print(f"  [yellow]Nothing left to commit for {sha[:12]}; skipped.[/yellow]")
                continue
            self.vcs.commit(reuse_message_from=sha)
            self.console.print(f"  [green]✓[/green] Committed {sha[:12]}")

        self._verify(result)
        applied = sum(1 for outcome in result.outcomes if outcome.status == "applied")
        self._finish(result, SyncState.DONE, f"Cherry-pick applied successfully ({applied} commit(s)).")

    def _scrub(self, result: SyncResult, commit: str) -> list[ScrubAction]:
        self._enter(result, SyncState.SCRUB)
        actions = scrub(
            self.vcs.root,
            self.catalog.banned_paths,
            remove=self.vcs.remove_path,
            commit=commit,
        )
        actions += prune_built_dependencies(
            self.vcs.root,
            self.catalog.expected_built_dependencies,
            stage=self.vcs.stage_path,
            manifest_name=self.catalog.manifest_name,
            commit=commit,
        )
        if not actions:
            self.console.print("  [green]✓[/green] No banned paths to scrub")
            return actions
        self.console.print("  [yellow]Scrubbed banned content:[/yellow]")
        for action in actions:
            self.console.print(f"    • {escape(action.label)}")
        return actions

    def _verify(self, result: SyncResult) -> None:
        self._enter(result, SyncState.VERIFY)
        if self.verify is None:
            result.verification_skipped = True
            self.console.print("[yellow]Security guard not available, skipping.[/yellow]")
            return

        self.console.print("\n[bold]Running security guard...[/bold]")
        try:
            report = self.verify(self.vcs.root, self.catalog)
        except OSError as exc:
            result.verification_skipped = True
            self.console.print(f"[yellow]Security guard could not run ({escape(str(exc))}), skipping.[/yellow]")
            return

        result.verification = report
        render_scan_report(report, self.console)
        if report.clean:
            return
        self.console.print("[red]Security guard found issues after cherry-pick.[/red]")
        self.console.print("Review and fix before continuing; the transplant was kept.")
        if report.for_rule(RULE_BANNED_DIRECTORY) or report.for_rule(RULE_BUILT_DEPENDENCIES_DRIFT):
            self.console.print(
                "[red]Banned content survived the scrub step; investigate the scrub engine.[/red]"
            )

    def _report_conflict(
        self,
        result: SyncResult,
        sha: str,
        remaining: list[str],
        target: SyncTarget,
    ) -> None:
        self._enter(result, SyncState.CONFLICT)
        result.message = f"Cherry-pick conflict on {sha}"
        self.console.print("[red]Cherry-pick conflict. Resolve manually, then run:[/red]")
        self.console.print("  git add <resolved files>")
        self.console.print(f"  git commit -C {sha[:12]}")
        self.console.print("  forkguard sync --rescrub   # scrub & verify")
        if remaining and target.end is not None:
            self.console.print(f"  forkguard sync {remaining[0][:12]}..{target.end}   # continue the range")
        self.console.print("To give up instead: git reset --merge")
