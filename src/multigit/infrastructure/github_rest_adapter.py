"""GitHub REST API adapter — implements the ForgeClient and AccountDirectory ports."""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any, TypeVar
from urllib.parse import quote

from pydantic import TypeAdapter, ValidationError

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
from multigit.domain.exceptions import DeserializationError, TransportErrorKind
from multigit.infrastructure.github_transport import GitHubTransport, StatusTable

logger = logging.getLogger(__name__)

T = TypeVar("T")

_K = TransportErrorKind

# ── Per-endpoint status classification ──────────────────────────────────────

_REPO_ERRORS: StatusTable = {
    403: (_K.UNAUTHORIZED, "You are not authorized to get this repo"),
    404: (_K.NOT_FOUND, "Repository not found or not accessible"),
}
_BRANCH_ERRORS: StatusTable = {
    404: (_K.NOT_FOUND, "Repository or branch namespace not found"),
}
_COMPARE_ERRORS: StatusTable = {
    404: (_K.NOT_FOUND, "Branch to compare not found"),
}
_LIST_PULL_ERRORS: StatusTable = {
    422: (_K.VALIDATION, "Invalid pull request filter"),
}
_PULL_ERRORS: StatusTable = {
    404: (_K.NOT_FOUND, "Pull request not found"),
}
_CREATE_PULL_ERRORS: StatusTable = {
    403: (_K.UNAUTHORIZED, "You are not allowed to create a pull request"),
    422: (_K.VALIDATION, "Invalid pull request (already exists or no commits between branches)"),
}
_MERGE_ERRORS: StatusTable = {
    403: (_K.UNAUTHORIZED, "You are not allowed to merge this pull request"),
    405: (_K.CONFLICT, "Pull request is not mergeable"),
    409: (_K.CONFLICT, "Head branch was modified, review and try the merge again"),
    422: (_K.VALIDATION, "Unprocessable entity"),
}
_REF_ERRORS: StatusTable = {
    404: (_K.NOT_FOUND, "Reference not found"),
    409: (_K.CONFLICT, "Git repository is empty or unavailable"),
    422: (_K.VALIDATION, "Validation error"),
}
_ACCOUNT_ERRORS: StatusTable = {
    401: (_K.UNAUTHORIZED, "Not authorized"),
    403: (_K.UNAUTHORIZED, "Not authorized"),
}
_ORG_ERRORS: StatusTable = {
    404: (_K.NOT_FOUND, "Organization not found"),
}


@lru_cache(maxsize=None)
def _adapter(target: Any) -> TypeAdapter[Any]:
    return TypeAdapter(target)


def decode(target: type[T] | Any, body: str, context: str) -> T:
    """Decode *body* into *target*, reporting the failing field path.

    Raises :class:`DeserializationError` with the original body attached.
    """
    try:
        return _adapter(target).validate_json(body)
    except ValidationError as exc:
        raise DeserializationError(
            f"{context}: {_describe(exc)}", raw_body=body
        ) from exc


def _q(name: str) -> str:
    """Percent-encode a name for use in a URL path; ``/`` is kept."""
    return quote(name, safe="/")


def _repo_path(owner: str, repo: str) -> str:
    return f"/repos/{_q(owner)}/{_q(repo)}"


def _describe(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors(include_url=False):
        path = ".".join(str(p) for p in err.get("loc", ())) or "<root>"
        parts.append(f"{path}: {err.get('msg', 'invalid value')}")
    return "; ".join(parts)


class GitHubRestAdapter:
    """Typed forge operations on top of :class:`GitHubTransport`."""

    def __init__(self, transport: GitHubTransport) -> None:
        self._transport = transport

    # ── Accounts & listings ─────────────────────────────────────────────

    async def get_me(self) -> Account:
        """GET /user → Account."""
        body = await self._transport.retrieve("/user", errors=_ACCOUNT_ERRORS)
        return decode(Account, body, "Unable to get authenticated user")

    async def list_my_orgs(self) -> list[Organization]:
        """GET /user/orgs → [Organization]."""
        body = await self._transport.retrieve("/user/orgs", errors=_ACCOUNT_ERRORS)
        return decode(list[Organization], body, "Unable to get orgs response")

    async def get_org(self, org: str) -> Organization:
        """GET /orgs/{org} → Organization."""
        body = await self._transport.retrieve(f"/orgs/{_q(org)}", errors=_ORG_ERRORS)
        return decode(Organization, body, f"Unable to get org {org}")

    async def list_repos(self, owner: str, *, is_user: bool = False) -> list[Repository]:
        """GET /orgs/{org}/repos or /users/{user}/repos → [Repository]."""
        endpoint = f"/users/{_q(owner)}/repos" if is_user else f"/orgs/{_q(owner)}/repos"
        repos: list[Repository] = []
        async for body in self._transport.retrieve_pages(
            endpoint, {"per_page": "100"}, errors=_ORG_ERRORS
        ):
            repos.extend(decode(list[Repository], body, f"Unable to list repos of {owner}"))
        return repos

    # ── Repository & branches ───────────────────────────────────────────

    async def get_repo(self, owner: str, repo: str) -> Repository:
        """GET /repos/{owner}/{repo} → Repository."""
        body = await self._transport.retrieve(_repo_path(owner, repo), errors=_REPO_ERRORS)
        return decode(Repository, body, f"Unable to get repo {repo}")

    async def list_branches(self, owner: str, repo: str) -> list[Branch]:
        """GET /repos/{owner}/{repo}/branches → [Branch] (all pages)."""
        branches: list[Branch] = []
        async for body in self._transport.retrieve_pages(
            f"{_repo_path(owner, repo)}/branches", {"per_page": "100"}, errors=_BRANCH_ERRORS
        ):
            branches.extend(decode(list[Branch], body, "Unable to get branches"))
        return branches

    async def compare_branches(
        self, owner: str, repo: str, base: str, head: str
    ) -> Comparison:
        """Status of *base* relative to *head*.

        GitHub reports the head of ``compare/A...B`` relative to A, so the
        branches are swapped in the path.
        """
        body = await self._transport.retrieve(
            f"{_repo_path(owner, repo)}/compare/{_q(head)}...{_q(base)}", errors=_COMPARE_ERRORS
        )
        return decode(Comparison, body, "Unable to get comparison")

    # ── Pull requests ───────────────────────────────────────────────────

    async def list_pulls(
        self, owner: str, repo: str, head: str, base: str
    ) -> list[PullRequest]:
        """GET /repos/{owner}/{repo}/pulls?state=open&head=…&base=…"""
        body = await self._transport.retrieve(
            f"{_repo_path(owner, repo)}/pulls",
            {"state": "open", "head": f"{owner}:{head}", "base": base},
            errors=_LIST_PULL_ERRORS,
        )
        return decode(list[PullRequest], body, "Unable to get list of pull requests")

    async def get_pull(self, owner: str, repo: str, number: int) -> PullRequest:
        body = await self._transport.retrieve(
            f"{_repo_path(owner, repo)}/pulls/{number}", errors=_PULL_ERRORS
        )
        return decode(PullRequest, body, f"Unable to get pull request #{number}")

    async def create_pull(
        self, owner: str, repo: str, head: str, base: str, title: str
    ) -> PullRequest:
        body = await self._transport.create(
            f"{_repo_path(owner, repo)}/pulls",
            {"title": title, "head": head, "base": base},
            errors=_CREATE_PULL_ERRORS,
        )
        return decode(PullRequest, body, "Unable to create pull request")

    async def merge_pull(self, owner: str, repo: str, number: int) -> MergeResult:
        body = await self._transport.replace(
            f"{_repo_path(owner, repo)}/pulls/{number}/merge", errors=_MERGE_ERRORS
        )
        return decode(MergeResult, body, f"Error while merging pull request #{number}")

    # ── References ──────────────────────────────────────────────────────

    async def get_reference(self, owner: str, repo: str, branch: str) -> Reference:
        body = await self._transport.retrieve(
            f"{_repo_path(owner, repo)}/git/refs/heads/{_q(branch)}", errors=_REF_ERRORS
        )
        return decode(Reference, body, f"Unable to parse ref heads/{branch}")

    async def create_reference(
        self, owner: str, repo: str, branch: str, sha: str
    ) -> Reference:
        body = await self._transport.create(
            f"{_repo_path(owner, repo)}/git/refs",
            {"ref": f"refs/heads/{branch}", "sha": sha},
            errors=_REF_ERRORS,
        )
        return decode(Reference, body, f"Unable to create ref heads/{branch}")

    async def delete_reference(self, owner: str, repo: str, branch: str) -> None:
        body = await self._transport.delete(
            f"{_repo_path(owner, repo)}/git/refs/heads/{_q(branch)}", errors=_REF_ERRORS
        )
        if body.strip():
            logger.debug("Unexpected body deleting heads/%s: %s", branch, body)
