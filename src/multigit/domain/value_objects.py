"""Value objects — sync policy, per-repository outcomes, run report."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from multigit.domain.exceptions import MultiGitError


@dataclass(frozen=True, slots=True)
class SyncOptions:
    """The branch-sync-and-merge policy applied to every repository."""

    source: str
    destination: str
    reference: str = ""
    create_pulls: bool = False
    merge: bool = False
    create_branches: bool = False
    delete_branches: bool = False

    def pull_title(self) -> str:
        return f"PR for: {self.reference}. {self.source} into {self.destination}"


class OutcomeStatus(str, Enum):
    """Terminal state of one repository's workflow."""

    DONE = "done"
    INCOMPLETE = "incomplete"  # done, but a merge or cleanup step failed
    SKIPPED = "skipped"
    ABORTED = "aborted"


@dataclass(frozen=True, slots=True)
class RepoOutcome:
    repo: str
    status: OutcomeStatus
    detail: str = ""
    pull_number: int | None = None
    merged: bool = False
    branch_created: bool = False
    branch_deleted: bool = False
    error: MultiGitError | None = None

    @property
    def aborts_run(self) -> bool:
        return self.status is OutcomeStatus.ABORTED


@dataclass(slots=True)
class RunReport:
    """Outcomes of a whole run, in the order repositories finished."""

    outcomes: list[RepoOutcome] = field(default_factory=list)
    not_started: list[str] = field(default_factory=list)
    deadline_exceeded: bool = False

    def record(self, outcome: RepoOutcome) -> None:
        self.outcomes.append(outcome)

    def with_status(self, status: OutcomeStatus) -> list[RepoOutcome]:
        return [o for o in self.outcomes if o.status is status]

    @property
    def aborted(self) -> bool:
        return any(o.aborts_run for o in self.outcomes)

    @property
    def skipped(self) -> list[str]:
        return [o.repo for o in self.with_status(OutcomeStatus.SKIPPED)]

    @property
    def all_done(self) -> bool:
        return (
            not self.deadline_exceeded
            and not self.not_started
            and all(o.status is OutcomeStatus.DONE for o in self.outcomes)
        )

    def summary_lines(self) -> list[str]:
        lines = [f"{o.repo}: {o.status.value}{_suffix(o.detail)}" for o in self.outcomes]
        lines.extend(f"{name}: not processed" for name in self.not_started)
        return lines


def _suffix(detail: str) -> str:
    return f" ({detail})" if detail else ""
