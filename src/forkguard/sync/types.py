"""Types for the upstream sync workflow."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from forkguard.policy.types import ScanReport

DEFAULT_UPSTREAM_REMOTE = "upstream"
DEFAULT_UPSTREAM_BRANCH = "main"
DEFAULT_UPSTREAM_URL = "https://github.com/openclaw/openclaw.git"
DEFAULT_PREVIEW_LIMIT = 30


class SyncState(str, Enum):
    """States visited by a single orchestrator invocation."""

    ENSURE_REMOTE = "ensure_remote"
    FETCH = "fetch"
    RESOLVE_BASE = "resolve_base"
    INTERACTIVE_LIST = "interactive_list"
    TRANSPLANT = "transplant"
    SCRUB = "scrub"
    AMEND = "amend"
    VERIFY = "verify"
    DONE = "done"
    CONFLICT = "conflict"
    ABORTED = "aborted"


TERMINAL_STATES = frozenset({SyncState.DONE, SyncState.CONFLICT, SyncState.ABORTED})


@dataclass(frozen=True)
class CommitInfo:
    """One upstream commit as shown in the interactive listing."""

    sha: str
    subject: str

    @property
    def short(self) -> str:
        return self.sha[:12]


@dataclass(frozen=True)
class SyncTarget:
    """Operator-supplied transplant target: one commit or an inclusive range."""

    start: str
    end: str | None = None

    @property
    def is_range(self) -> bool:
        return self.end is not None

    def __str__(self) -> str:
        return f"{self.start}..{self.end}" if self.end is not None else self.start


@dataclass(frozen=True)
class ScrubAction:
    """Banned content removed from the working tree.

    ``entry`` is set when a single onlyBuiltDependencies entry was dropped from
    the manifest at ``path`` rather than the whole path being removed.
    """

    path: str
    commit: str | None = None
    entry: str | None = None

    @property
    def label(self) -> str:
        if self.entry is None:
            return self.path
        return f"{self.path}: onlyBuiltDependencies entry '{self.entry}'"


@dataclass
class CommitOutcome:
    """Per-commit transplant result."""

    sha: str
    status: str  # applied, empty, conflict, failed, rescrubbed
    scrubbed: list[ScrubAction] = field(default_factory=list)

    @property
    def amended(self) -> bool:
        return bool(self.scrubbed)


@dataclass
class SyncResult:
    """Outcome of one orchestrator invocation."""

    state: SyncState = SyncState.ENSURE_REMOTE
    trail: list[SyncState] = field(default_factory=list)
    target: SyncTarget | None = None
    base: str | None = None
    tip: str | None = None
    new_commits: int = 0
    listed: list[CommitInfo] = field(default_factory=list)
    outcomes: list[CommitOutcome] = field(default_factory=list)
    verification: ScanReport | None = None
    verification_skipped: bool = False
    message: str = ""

    @property
    def scrub_actions(self) -> list[ScrubAction]:
        return [action for outcome in self.outcomes for action in outcome.scrubbed]

    @property
    def mutated(self) -> bool:
        return any(outcome.status == "applied" or outcome.amended for outcome in self.outcomes)

    @property
    def exit_code(self) -> int:
        return 0 if self.state == SyncState.DONE else 1
