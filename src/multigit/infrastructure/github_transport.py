"""Authenticated HTTP transport for the GitHub REST API.

Four verbs (retrieve, create, replace, delete), each returning the raw
response body on success.  Non-2xx statuses are translated into
:class:`TransportError` using a status table supplied by the caller, since the
same status means different things on different endpoints.  Rate limiting,
5xx gateway errors and network failures on reads are retried with exponential
backoff; writes are retried only when rate limited.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable, Mapping
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any

import httpx

from multigit.domain.exceptions import TransportError, TransportErrorKind

logger = logging.getLogger(__name__)

GITHUB_API = "https://api.github.com"
USER_AGENT = "multigit/1.0"
_MAX_PAGES = 50

StatusTable = Mapping[int, tuple[TransportErrorKind, str]]

_DEFAULT_STATUS: dict[int, tuple[TransportErrorKind, str]] = {
    401: (TransportErrorKind.UNAUTHORIZED, "Authentication required"),
    403: (TransportErrorKind.UNAUTHORIZED, "Forbidden"),
    404: (TransportErrorKind.NOT_FOUND, "Resource not found"),
    409: (TransportErrorKind.CONFLICT, "Conflict"),
    422: (TransportErrorKind.VALIDATION, "Validation failed"),
    500: (TransportErrorKind.UNAVAILABLE, "Internal error"),
    502: (TransportErrorKind.UNAVAILABLE, "Bad gateway"),
    503: (TransportErrorKind.UNAVAILABLE, "Service unavailable"),
    504: (TransportErrorKind.UNAVAILABLE, "Gateway timeout"),
}


class GitHubTransport:
    """Immutable, shareable transport: client, credentials and base URL."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        token: str | None = None,
        *,
        base_url: str = GITHUB_API,
        max_attempts: int = 3,
        backoff_seconds: float = 1.0,
        max_delay_seconds: float = 60.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._client = client
        self._base_url = base_url.rstrip("/")
        self._max_attempts = max(1, max_attempts)
        self._backoff = backoff_seconds
        self._max_delay = max_delay_seconds
        self._sleep = sleep
        self._headers: dict[str, str] = {
            "Accept": "application/vnd.github+json",
            "User-Agent": USER_AGENT,
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if token:
            self._headers["Authorization"] = f"Bearer {token}"

    # ── Verbs ───────────────────────────────────────────────────────────

    async def retrieve(
        self,
        endpoint: str,
        params: Mapping[str, str] | None = None,
        *,
        errors: StatusTable | None = None,
    ) -> str:
        resp = await self._send("GET", self._url(endpoint), params=params, errors=errors)
        return resp.text

    async def retrieve_pages(
        self,
        endpoint: str,
        params: Mapping[str, str] | None = None,
        *,
        errors: StatusTable | None = None,
    ) -> AsyncIterator[str]:
        """Yield each page body, following ``Link: rel="next"``."""
        url: str | None = self._url(endpoint)
        page_params: Mapping[str, str] | None = params
        for _ in range(_MAX_PAGES):
            if url is None:
                return
            resp = await self._send("GET", url, params=page_params, errors=errors)
            yield resp.text
            url = resp.links.get("next", {}).get("url")
            page_params = None  # the next link already carries the query
        logger.warning("Stopped paging %s after %d pages", endpoint, _MAX_PAGES)

    async def create(
        self,
        endpoint: str,
        body: Mapping[str, Any] | None = None,
        *,
        errors: StatusTable | None = None,
    ) -> str:
        resp = await self._send("POST", self._url(endpoint), body=body, errors=errors)
        return resp.text

    async def replace(
        self,
        endpoint: str,
        body: Mapping[str, Any] | None = None,
        *,
        errors: StatusTable | None = None,
    ) -> str:
        resp = await self._send("PUT", self._url(endpoint), body=body, errors=errors)
        return resp.text

    async def delete(
        self,
        endpoint: str,
        body: Mapping[str, Any] | None = None,
        *,
        errors: StatusTable | None = None,
    ) -> str:
        resp = await self._send("DELETE", self._url(endpoint), body=body, errors=errors)
        return resp.text

    # ── Internals ───────────────────────────────────────────────────────

    def _url(self, endpoint: str) -> str:
        return f"{self._base_url}/{endpoint.lstrip('/')}"

    async def _send(
        self,
        method: str,
        url: str,
        *,
        params: Mapping[str, str] | None = None,
        body: Mapping[str, Any] | None = None,
        errors: StatusTable | None = None,
    ) -> httpx.Response:
        """Send one request, retrying transient failures."""
        for attempt in range(1, self._max_attempts + 1):
            cause: Exception | None = None
            hint: float | None = None
            try:
                resp = await self._client.request(
                    method,
                    url,
                    headers=self._headers,
                    params=params,
                    json=dict(body) if body is not None else None,
                )
            except httpx.TimeoutException as exc:
                cause = exc
                error = TransportError(
                    TransportErrorKind.NETWORK, f"Timed out calling {method} {url}"
                )
            except httpx.HTTPError as exc:
                cause = exc
                error = TransportError(
                    TransportErrorKind.NETWORK, f"Network error calling {method} {url}: {exc}"
                )
            else:
                if resp.is_success:
                    return resp
                logger.debug("HTTP %d from %s %s: %s", resp.status_code, method, url, resp.text)
                error = _classify(resp, errors)
                hint = _retry_after(resp)

            if not _retryable(method, error) or attempt == self._max_attempts:
                raise error from cause

            delay = self._delay(attempt, hint)
            logger.warning(
                "%s %s failed (%s), retrying in %.1fs (attempt %d/%d)",
                method,
                url,
                error.kind.value,
                delay,
                attempt,
                self._max_attempts,
            )
            await self._sleep(delay)

        raise AssertionError("unreachable")

    def _delay(self, attempt: int, hint: float | None) -> float:
        if hint is None:
            hint = self._backoff * 2 ** (attempt - 1)
        return max(0.0, min(hint, self._max_delay))


def _retryable(method: str, error: TransportError) -> bool:
    """Writes may already have taken effect, so only a rate limit is retried."""
    if method == "GET":
        return error.kind.retryable
    return error.kind is TransportErrorKind.RATE_LIMITED


def _classify(resp: httpx.Response, errors: StatusTable | None) -> TransportError:
    """Map a non-2xx response to a :class:`TransportError`."""
    status = resp.status_code

    if status == 429 or (
        status == 403 and resp.headers.get("x-ratelimit-remaining", "") == "0"
    ):
        return TransportError(
            TransportErrorKind.RATE_LIMITED,
            f"GitHub API rate limit exceeded. Resets at {_reset_time(resp)}.",
            status,
        )

    table = {**_DEFAULT_STATUS, **(errors or {})}
    if status in table:
        kind, message = table[status]
        return TransportError(kind, message, status)

    return TransportError(
        TransportErrorKind.UNHANDLED,
        f"Unhandled: GitHub API returned HTTP {status} for {resp.request.url}",
        status,
    )


def _reset_time(resp: httpx.Response) -> str:
    reset_raw = resp.headers.get("x-ratelimit-reset", "")
    try:
        return datetime.fromtimestamp(int(reset_raw), tz=timezone.utc).strftime(
            "%Y-%m-%d %H:%M:%S UTC"
        )
    except (ValueError, OSError):
        return reset_raw or "unknown"


def _retry_after(resp: httpx.Response) -> float | None:
    """Seconds the server asked us to wait, if it said so."""
    retry_after = resp.headers.get("retry-after")
    if retry_after:
        try:
            return float(retry_after)
        except ValueError:
            pass
        try:
            when = parsedate_to_datetime(retry_after)
        except (TypeError, ValueError):
            return None
        if when.tzinfo is None:
            when = when.replace(tzinfo=timezone.utc)
        return (when - datetime.now(timezone.utc)).total_seconds()

    if resp.headers.get("x-ratelimit-remaining", "") == "0":
        try:
            reset = int(resp.headers.get("x-ratelimit-reset", ""))
        except ValueError:
            return None
        return reset - datetime.now(timezone.utc).timestamp()
    return None
