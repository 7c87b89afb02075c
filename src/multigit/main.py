"""Command-line entry point — the only place that decides exit codes."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import click
import httpx
import uvicorn

from multigit.domain.exceptions import FORGE_ERRORS, ConfigError
from multigit.domain.value_objects import RunReport, SyncOptions
from multigit.infrastructure.config import (
    RepoConfig,
    Settings,
    get_settings,
    load_repo_config,
    resolve_token,
)
from multigit.interface.app import create_app
from multigit.interface.dependencies import build_adapter
from multigit.services.sync_repo import SyncRepoUseCase
from multigit.services.sync_runner import SyncRunner

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG = 78  # sysexits EX_CONFIG


def exit_code_for(report: RunReport) -> int:
    if report.aborted:
        return EXIT_CONFIG
    if report.all_done:
        return EXIT_OK
    return EXIT_FAILURE


def _configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
    )


def _http_client(settings: Settings) -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=httpx.Timeout(settings.request_timeout))


async def _run_sync(settings: Settings, repo_config: RepoConfig, options: SyncOptions) -> RunReport:
    async with _http_client(settings) as client:
        adapter = build_adapter(client, settings, resolve_token(settings, repo_config))
        use_case = SyncRepoUseCase(
            adapter,
            repo_config.org_name,
            options,
            mergeable_poll_attempts=settings.mergeable_poll_attempts,
            mergeable_poll_delay=settings.mergeable_poll_delay_seconds,
        )
        runner = SyncRunner(
            use_case, concurrency=settings.concurrency, deadline=settings.run_deadline
        )
        return await runner.run(repo_config.repos)


async def _list_repos(settings: Settings, repo_config: RepoConfig) -> list[str]:
    async with _http_client(settings) as client:
        adapter = build_adapter(client, settings, resolve_token(settings, repo_config))
        repos = await adapter.list_repos(repo_config.org_name, is_user=repo_config.is_user)
    return [r.name for r in repos]


@click.group()
@click.option("--config", "-c", "config_path", default=None, help="Config file path")
@click.pass_context
def main(ctx: click.Context, config_path: str | None) -> None:
    """Keep one branch in sync with another across many repositories."""
    try:
        settings = get_settings()
    except ConfigError as exc:
        click.echo(exc.error_message(), err=True)
        ctx.exit(EXIT_CONFIG)
    _configure_logging(settings)
    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings
    ctx.obj["config_path"] = Path(config_path) if config_path else settings.config_path


@main.command()
@click.option("--from", "source", help="Source branch of the pull requests")
@click.option("--to", "destination", help="Destination branch of the pull requests")
@click.option("--reference", default="", help="Reference for PR titles, e.g. org/project#42")
@click.option("--create", "--create-pulls", "create_pulls", is_flag=True, help="Create pull requests if missing")
@click.option("--merge", is_flag=True, help="Merge mergeable pull requests")
@click.option("--create-branches", is_flag=True, help="Create the destination branch if missing")
@click.option("--delete-branches", is_flag=True, help="Delete the source branch after merge")
@click.option("--list", "list_only", is_flag=True, help="List the owner's repositories and exit")
@click.pass_context
def sync(
    ctx: click.Context,
    source: str | None,
    destination: str | None,
    reference: str,
    create_pulls: bool,
    merge: bool,
    create_branches: bool,
    delete_branches: bool,
    list_only: bool,
) -> None:
    """Sync --from into --to for every configured repository."""
    settings: Settings = ctx.obj["settings"]

    try:
        repo_config = load_repo_config(ctx.obj["config_path"])
    except ConfigError as exc:
        logger.error("%s", exc.error_message())
        ctx.exit(EXIT_CONFIG)

    logger.info("Managing %s", repo_config.org_name)

    if list_only:
        try:
            names = asyncio.run(_list_repos(settings, repo_config))
        except FORGE_ERRORS as exc:
            logger.error("Couldn't get repos: %s", exc.error_message())
            ctx.exit(EXIT_FAILURE)
        for name in names:
            click.echo(name)
        ctx.exit(EXIT_OK)

    if not source or not destination:
        raise click.UsageError("--from and --to are required unless --list is given.")
    if create_pulls and not reference:
        raise click.UsageError("--reference is required with --create-pulls.")

    options = SyncOptions(
        source=source,
        destination=destination,
        reference=reference,
        create_pulls=create_pulls,
        merge=merge,
        create_branches=create_branches,
        delete_branches=delete_branches,
    )
    report = asyncio.run(_run_sync(settings, repo_config, options))
    ctx.exit(exit_code_for(report))


@main.command()
@click.pass_context
def serve(ctx: click.Context) -> None:
    """Start the organization/repository listing service."""
    settings: Settings = ctx.obj["settings"]
    uvicorn.run(
        create_app(ctx.obj["config_path"]),
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
