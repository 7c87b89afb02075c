"""Sync-repository use case — the per-repository workflow.

For one repository: verify the source and destination branches, compare them,
resolve (or create) the pull request that brings the destination up to date,
then optionally merge it and delete the source branch.

Every step ends in a :class:`RepoOutcome`; nothing in here exits the process.
Read failures skip the repository, merge and cleanup failures leave it
incomplete, and a destination branch that cannot exist aborts the whole run
because the same misconfiguration will hit every repository.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from multigit.domain.entities import PullRequest
from multigit.domain.exceptions import FORGE_ERRORS, MultiGitError, WorkflowError
from multigit.domain.ports.forge_client import ForgeClient
from multigit.domain.value_objects import OutcomeStatus, RepoOutcome, SyncOptions

logger = logging.getLogger(__name__)


class SyncRepoUseCase:
    """Runs the branch-sync state machine for one repository at a time.

    Parameters
    ----------
    forge:
        Adapter for the forge REST API.
    owner:
        Organization or user login owning the repositories.
    options:
        Branch names and which optional steps to perform.
    mergeable_poll_attempts:
        How many times to re-fetch a pull request whose mergeability the
        forge has not computed yet.
    mergeable_poll_delay:
        Initial delay between those re-fetches; doubles each time.
    """

    def __init__(
        self,
        forge: ForgeClient,
        owner: str,
        options: SyncOptions,
        *,
        mergeable_poll_attempts: int = 3,
        mergeable_poll_delay: float = 2.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._forge = forge
        self._owner = owner
        self._opts = options
        self._poll_attempts = mergeable_poll_attempts
        self._poll_delay = mergeable_poll_delay
        self._sleep = sleep

    # ── Public entry point ──────────────────────────────────────────────

    async def execute(self, repo_name: str) -> RepoOutcome:
        opts = self._opts
        logger.info("Syncing %s: %s -> %s", repo_name, opts.source, opts.destination)

        # 1. Repository
        try:
            repository = await self._forge.get_repo(self._owner, repo_name)
        except FORGE_ERRORS as exc:
            return self._skip(repo_name, "unable to get repository", exc)
        owner, name = repository.owner.login, repository.name

        # 2. Branches
        try:
            branches = await self._forge.list_branches(owner, name)
        except FORGE_ERRORS as exc:
            return self._skip(repo_name, "unable to list branches", exc)
        branch_names = {b.name for b in branches}
        logger.debug("%s branches: %s", repo_name, ", ".join(sorted(branch_names)))

        # 3. Source; later stages validate it again, so only report here
        if opts.source not in branch_names:
            logger.error(
                "Source branch %s doesn't exist for repo %s", opts.source, repo_name
            )

        # 4. Destination
        if opts.destination not in branch_names:
            return await self._create_destination(repo_name, owner, name)

        # 5. Comparison
        try:
            comparison = await self._forge.compare_branches(
                owner, name, base=opts.destination, head=opts.source
            )
        except FORGE_ERRORS as exc:
            return self._skip(repo_name, "unable to compare branches", exc)

        if not comparison.status.needs_pull_request:
            logger.info(
                "%s: %s is %s with %s, nothing to merge",
                repo_name,
                opts.destination,
                comparison.status.value,
                opts.source,
            )
            return RepoOutcome(repo_name, OutcomeStatus.DONE, "nothing to merge")

        # 6. Pull request
        try:
            pull = await self._find_pull(owner, name)
        except FORGE_ERRORS as exc:
            return self._skip(repo_name, "unable to resolve pull request", exc)

        if pull is None:
            if not opts.create_pulls:
                logger.info("%s: no open pull request and creation not requested", repo_name)
                return RepoOutcome(repo_name, OutcomeStatus.DONE, "no pull request")
            try:
                pull = await self._forge.create_pull(
                    owner, name, head=opts.source, base=opts.destination, title=opts.pull_title()
                )
            except FORGE_ERRORS as exc:
                _report(repo_name, "unable to create pull request", exc, logging.WARNING)
                return RepoOutcome(
                    repo_name, OutcomeStatus.INCOMPLETE, "pull request creation failed", error=exc
                )
            logger.info("%s: created pull request #%d", repo_name, pull.number)

        if not opts.merge:
            return RepoOutcome(
                repo_name, OutcomeStatus.DONE, f"pull request #{pull.number}", pull_number=pull.number
            )

        # 7. Merge & cleanup
        return await self._merge(repo_name, owner, name, pull)

    # ── Steps ───────────────────────────────────────────────────────────

    async def _create_destination(self, repo_name: str, owner: str, name: str) -> RepoOutcome:
        opts = self._opts
        if not opts.create_branches:
            error = WorkflowError(
                f"Destination branch {opts.destination} doesn't exist for repo {repo_name}. "
                "Use --create-branches to create it or create it manually.",
                fatal=True,
            )
            logger.error(error.error_message())
            return RepoOutcome(repo_name, OutcomeStatus.ABORTED, "missing destination", error=error)

        try:
            source_ref = await self._forge.get_reference(owner, name, opts.source)
            created = await self._forge.create_reference(
                owner, name, opts.destination, source_ref.sha
            )
        except FORGE_ERRORS as exc:
            _report(repo_name, f"unable to create branch {opts.destination}", exc, logging.ERROR)
            error = WorkflowError(
                f"Destination branch {opts.destination} could not be created for repo "
                f"{repo_name}: {exc.error_message()}",
                fatal=True,
            )
            return RepoOutcome(repo_name, OutcomeStatus.ABORTED, "missing destination", error=error)

        logger.info("%s: created %s at %s", repo_name, created.ref, created.sha)
        return RepoOutcome(
            repo_name, OutcomeStatus.DONE, f"created branch {opts.destination}", branch_created=True
        )

    async def _find_pull(self, owner: str, name: str) -> PullRequest | None:
        """Return the open PR for source -> destination, fully fetched, if any."""
        head_label = f"{owner}:{self._opts.source}"
        base_label = f"{owner}:{self._opts.destination}"
        pulls = await self._forge.list_pulls(
            owner, name, head=self._opts.source, base=self._opts.destination
        )
        for candidate in pulls:
            if candidate.matches(head_label, base_label):
                # the list endpoint leaves ``mergeable`` out
                return await self._forge.get_pull(owner, name, candidate.number)
        return None

    async def _merge(
        self, repo_name: str, owner: str, name: str, pull: PullRequest
    ) -> RepoOutcome:
        number = pull.number

        for attempt in range(self._poll_attempts):
            if pull.mergeable is not None:
                break
            await self._sleep(self._poll_delay * 2**attempt)
            try:
                pull = await self._forge.get_pull(owner, name, number)
            except FORGE_ERRORS as exc:
                _report(repo_name, f"unable to refresh pull request #{number}", exc, logging.WARNING)
                return RepoOutcome(
                    repo_name, OutcomeStatus.INCOMPLETE, "mergeability unknown",
                    pull_number=number, error=exc,
                )

        if pull.mergeable is None:
            logger.warning(
                "%s: mergeability of #%d is not yet known, retry later", repo_name, number
            )
            return RepoOutcome(
                repo_name, OutcomeStatus.INCOMPLETE, "mergeability unknown", pull_number=number
            )

        if not pull.mergeable:
            error = WorkflowError(f"Pull request #{number} has conflicts")
            logger.warning("%s: pull request #%d has conflicts, not merging", repo_name, number)
            return RepoOutcome(
                repo_name, OutcomeStatus.INCOMPLETE, "merge conflict", pull_number=number, error=error
            )

        try:
            result = await self._forge.merge_pull(owner, name, number)
        except FORGE_ERRORS as exc:
            _report(repo_name, f"failed to merge #{number}", exc, logging.WARNING)
            return RepoOutcome(
                repo_name, OutcomeStatus.INCOMPLETE, "merge failed", pull_number=number, error=exc
            )

        if not result.merged:
            logger.warning("%s: failed to merge #%d: %s", repo_name, number, result.message)
            return RepoOutcome(
                repo_name, OutcomeStatus.INCOMPLETE, "merge failed", pull_number=number
            )
        logger.info("%s: merged #%d (%s)", repo_name, number, result.sha or "no sha")

        if not self._opts.delete_branches:
            return RepoOutcome(
                repo_name, OutcomeStatus.DONE, f"merged #{number}", pull_number=number, merged=True
            )

        try:
            await self._forge.delete_reference(owner, name, self._opts.source)
        except FORGE_ERRORS as exc:
            _report(repo_name, f"unable to delete branch {self._opts.source}", exc, logging.WARNING)
            return RepoOutcome(
                repo_name, OutcomeStatus.INCOMPLETE, f"merged #{number}, branch not deleted",
                pull_number=number, merged=True, error=exc,
            )

        logger.info("%s: deleted branch %s", repo_name, self._opts.source)
        return RepoOutcome(
            repo_name, OutcomeStatus.DONE, f"merged #{number}",
            pull_number=number, merged=True, branch_deleted=True,
        )

    @staticmethod
    def _skip(repo_name: str, what: str, exc: MultiGitError) -> RepoOutcome:
        _report(repo_name, what, exc, logging.ERROR)
        return RepoOutcome(repo_name, OutcomeStatus.SKIPPED, what, error=exc)


def _report(repo_name: str, what: str, exc: MultiGitError, level: int) -> None:
    """Log an error; the raw diagnostic only ever goes to debug."""
    logger.log(level, "%s: %s: %s", repo_name, what, exc.error_message())
    extra = exc.extra_info()
    if extra:
        logger.debug("%s: raw response: %s", repo_name, extra)
