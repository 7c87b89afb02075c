"""Forge entities, decoded from GitHub REST responses.

One canonical schema per resource.  The forge keeps adding fields, so unknown
keys are ignored and anything that is not needed for a decision is optional.
All models are frozen and nested entities are held by value.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict


class _ForgeModel(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)


class Account(_ForgeModel):
    """A user or organization acting as an owner."""

    login: str
    id: int | None = None
    type: str | None = None
    html_url: str | None = None


class Organization(_ForgeModel):
    login: str
    id: int | None = None
    name: str | None = None
    description: str | None = None
    html_url: str | None = None


class Repository(_ForgeModel):
    """Scopes every repository-level endpoint path."""

    name: str
    owner: Account
    id: int | None = None
    full_name: str | None = None
    private: bool = False
    archived: bool = False
    default_branch: str | None = None
    html_url: str | None = None


class CommitPointer(_ForgeModel):
    sha: str
    url: str | None = None


class Branch(_ForgeModel):
    name: str
    commit: CommitPointer
    protected: bool = False


class ReferenceType(str, Enum):
    COMMIT = "commit"
    BRANCH = "branch"


class ReferenceObject(_ForgeModel):
    type: ReferenceType
    sha: str
    url: str | None = None


class Reference(_ForgeModel):
    """A named git ref (``refs/heads/main``) and the object it points to."""

    ref: str
    object: ReferenceObject
    node_id: str | None = None
    url: str | None = None

    @property
    def sha(self) -> str:
        return self.object.sha


class PullRequestState(str, Enum):
    OPEN = "open"
    CLOSED = "closed"


class GitPointer(_ForgeModel):
    """Head or base of a pull request; ``label`` is ``"{owner}:{branch}"``."""

    label: str
    ref: str
    sha: str
    user: Account | None = None
    repo: Repository | None = None


class PullRequest(_ForgeModel):
    """A pull request.

    ``mergeable`` is tri-state: ``True`` (clean), ``False`` (conflicting) or
    ``None`` when the forge has not computed it yet.  The list endpoint never
    fills it in; only a single-PR fetch does.
    """

    number: int
    state: PullRequestState
    head: GitPointer
    base: GitPointer
    id: int | None = None
    title: str | None = None
    html_url: str | None = None
    user: Account | None = None
    draft: bool = False
    merged: bool = False
    mergeable: bool | None = None
    mergeable_state: str | None = None

    def matches(self, head_label: str, base_label: str) -> bool:
        """Exact, case-sensitive label match on both ends."""
        return self.head.label == head_label and self.base.label == base_label


class MergeResult(_ForgeModel):
    merged: bool
    message: str = ""
    sha: str | None = None


class CompareStatus(str, Enum):
    """Relationship of the base branch to the head branch."""

    AHEAD = "ahead"
    BEHIND = "behind"
    DIVERGED = "diverged"
    IDENTICAL = "identical"

    @property
    def needs_pull_request(self) -> bool:
        return self in (CompareStatus.BEHIND, CompareStatus.DIVERGED)


class Comparison(_ForgeModel):
    status: CompareStatus
    ahead_by: int | None = None
    behind_by: int | None = None
    total_commits: int | None = None
