"""Dependency wiring shared by the CLI and the FastAPI service."""

from __future__ import annotations

from pathlib import Path

import httpx

from multigit.infrastructure.config import (
    Settings,
    get_settings,
    load_repo_config,
    resolve_token,
)
from multigit.infrastructure.github_rest_adapter import GitHubRestAdapter
from multigit.infrastructure.github_transport import GitHubTransport

_http_client: httpx.AsyncClient | None = None
_adapter: GitHubRestAdapter | None = None


def build_adapter(client: httpx.AsyncClient, settings: Settings, token: str) -> GitHubRestAdapter:
    """Assemble transport + adapter from settings."""
    transport = GitHubTransport(
        client,
        token,
        base_url=settings.api_base_url,
        max_attempts=settings.retry_max_attempts,
        backoff_seconds=settings.retry_backoff_seconds,
        max_delay_seconds=settings.retry_max_delay_seconds,
    )
    return GitHubRestAdapter(transport)


async def startup(config_path: Path | None = None) -> None:
    """Initialise shared resources — called from the lifespan context manager."""
    global _http_client, _adapter  # noqa: PLW0603

    settings = get_settings()
    repo_config = load_repo_config(config_path or settings.config_path)
    _http_client = httpx.AsyncClient(timeout=httpx.Timeout(settings.request_timeout))
    _adapter = build_adapter(_http_client, settings, resolve_token(settings, repo_config))


async def shutdown() -> None:
    """Release shared resources."""
    global _http_client, _adapter  # noqa: PLW0603

    if _http_client:
        await _http_client.aclose()
        _http_client = None
    _adapter = None


def get_directory() -> GitHubRestAdapter:
    """Return the shared adapter used for listings."""
    assert _adapter is not None, "startup() was not called"
    return _adapter
