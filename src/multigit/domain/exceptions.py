"""Domain exception hierarchy.

Every error the application produces derives from :class:`MultiGitError` and
exposes the same two accessors, ``error_message()`` and ``extra_info()``.
Callers that only report errors dispatch on those accessors and never on the
concrete type, so the set of producers can grow without touching them.
"""

from __future__ import annotations

from enum import Enum


class MultiGitError(Exception):
    """Base exception for the entire application."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def error_message(self) -> str:
        return self.message

    def extra_info(self) -> str:
        """Raw diagnostic payload, empty when the error carries none."""
        return ""


# ── Configuration ───────────────────────────────────────────────────────────


class ConfigError(MultiGitError):
    """The configuration file or settings are missing or malformed."""


# ── Forge API errors ────────────────────────────────────────────────────────


class TransportErrorKind(str, Enum):
    """Classification of a failed HTTP exchange with the forge."""

    NOT_FOUND = "not_found"
    UNAUTHORIZED = "unauthorized"
    VALIDATION = "validation"
    CONFLICT = "conflict"
    RATE_LIMITED = "rate_limited"
    UNAVAILABLE = "unavailable"
    NETWORK = "network"
    UNHANDLED = "unhandled"

    @property
    def retryable(self) -> bool:
        return self in _RETRYABLE_KINDS


_RETRYABLE_KINDS = frozenset(
    {
        TransportErrorKind.RATE_LIMITED,
        TransportErrorKind.UNAVAILABLE,
        TransportErrorKind.NETWORK,
    }
)


class TransportError(MultiGitError):
    """A non-2xx response (or no response at all) from the forge."""

    def __init__(
        self,
        kind: TransportErrorKind,
        message: str,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.status_code = status_code

    def __str__(self) -> str:
        if self.status_code is None:
            return f"[{self.kind.value}] {self.message}"
        return f"[{self.kind.value} {self.status_code}] {self.message}"


class DeserializationError(MultiGitError):
    """A 2xx response whose body does not match the expected schema.

    ``raw_body`` keeps the original payload so that schema drift can be
    diagnosed offline.
    """

    def __init__(self, message: str, raw_body: str | None = None) -> None:
        super().__init__(message)
        self.raw_body = raw_body

    def extra_info(self) -> str:
        return self.raw_body or ""


FORGE_ERRORS: tuple[type[MultiGitError], ...] = (TransportError, DeserializationError)


# ── Workflow errors ─────────────────────────────────────────────────────────


class WorkflowError(MultiGitError):
    """A business rule of the sync workflow was violated.

    ``fatal`` errors stop the whole run; the others only affect the
    repository being processed.
    """

    def __init__(self, message: str, *, fatal: bool = False) -> None:
        super().__init__(message)
        self.fatal = fatal
