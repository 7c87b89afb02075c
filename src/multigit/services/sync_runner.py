"""Runs the sync workflow across all configured repositories."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

from multigit.domain.value_objects import OutcomeStatus, RepoOutcome, RunReport
from multigit.services.sync_repo import SyncRepoUseCase

logger = logging.getLogger(__name__)


class SyncRunner:
    """Bounded worker pool over repositories.

    With ``concurrency=1`` repositories are processed strictly in the given
    order.  Once a repository aborts, no new repository is started; those
    already running finish normally.  When ``deadline`` (seconds) expires,
    in-flight work is cancelled and unfinished repositories are recorded as
    skipped.
    """

    def __init__(
        self,
        use_case: SyncRepoUseCase,
        *,
        concurrency: int = 1,
        deadline: float | None = None,
    ) -> None:
        self._use_case = use_case
        self._concurrency = max(1, concurrency)
        self._deadline = deadline

    async def run(self, repo_names: Sequence[str]) -> RunReport:
        report = RunReport()
        sem = asyncio.Semaphore(self._concurrency)
        aborted = asyncio.Event()
        started: set[str] = set()

        async def _process(name: str) -> None:
            async with sem:
                if aborted.is_set():
                    return
                started.add(name)
                outcome = await self._use_case.execute(name)
                report.record(outcome)
                if outcome.aborts_run:
                    logger.error("Aborting run after %s: %s", name, outcome.detail)
                    aborted.set()

        tasks = [asyncio.create_task(_process(name)) for name in repo_names]
        try:
            await asyncio.wait_for(asyncio.gather(*tasks), timeout=self._deadline)
        except asyncio.TimeoutError:
            report.deadline_exceeded = True
            logger.error("Run deadline of %.0fs exceeded", self._deadline)

        finished = {o.repo for o in report.outcomes}
        for name in repo_names:
            if name in finished:
                continue
            if name in started:
                report.record(
                    RepoOutcome(name, OutcomeStatus.SKIPPED, "cancelled at run deadline")
                )
            else:
                report.not_started.append(name)

        _log_summary(report)
        return report


def _log_summary(report: RunReport) -> None:
    for line in report.summary_lines():
        logger.info("Summary: %s", line)
    if report.skipped:
        logger.warning("Skipped repositories: %s", ", ".join(report.skipped))
