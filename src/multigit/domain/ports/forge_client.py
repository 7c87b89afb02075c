"""Port: forge client — defined by the domain, implemented by infrastructure."""

from __future__ import annotations

from typing import Protocol

from multigit.domain.entities import (
    Account,
    Branch,
    Comparison,
    MergeResult,
    Organization,
    PullRequest,
    Reference,
    Repository,
)


class ForgeClient(Protocol):
    """Abstract contract for the forge operations the sync workflow needs.

    Every method raises :class:`~multigit.domain.exceptions.TransportError`
    or :class:`~multigit.domain.exceptions.DeserializationError` on failure.
    """

    async def get_repo(self, owner: str, repo: str) -> Repository: ...

    async def list_branches(self, owner: str, repo: str) -> list[Branch]: ...

    async def compare_branches(
        self, owner: str, repo: str, base: str, head: str
    ) -> Comparison:
        """Return the status of *base* relative to *head*."""
        ...

    async def list_pulls(
        self, owner: str, repo: str, head: str, base: str
    ) -> list[PullRequest]:
        """Open pull requests filtered by head/base branch names."""
        ...

    async def get_pull(self, owner: str, repo: str, number: int) -> PullRequest: ...

    async def create_pull(
        self, owner: str, repo: str, head: str, base: str, title: str
    ) -> PullRequest: ...

    async def merge_pull(self, owner: str, repo: str, number: int) -> MergeResult: ...

    async def get_reference(self, owner: str, repo: str, branch: str) -> Reference: ...

    async def create_reference(
        self, owner: str, repo: str, branch: str, sha: str
    ) -> Reference: ...

    async def delete_reference(self, owner: str, repo: str, branch: str) -> None: ...


class AccountDirectory(Protocol):
    """Read-only listings used by ``--list`` and the listing service."""

    async def get_me(self) -> Account: ...

    async def list_my_orgs(self) -> list[Organization]: ...

    async def get_org(self, org: str) -> Organization: ...

    async def list_repos(self, owner: str, *, is_user: bool = False) -> list[Repository]: ...
