"""Application configuration.

Two sources: runtime knobs come from ``MULTIGIT_*`` environment variables
(or a ``.env`` file), and the repositories to manage come from a JSON file
(``config.json`` by default).
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, SecretStr, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from multigit.domain.exceptions import ConfigError


class Settings(BaseSettings):
    """Central configuration loaded from env vars (or ``.env`` file)."""

    model_config = SettingsConfigDict(
        env_prefix="MULTIGIT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    config_path: Path = Path("config.json")
    github_token: SecretStr | None = None
    api_base_url: str = "https://api.github.com"
    log_level: str = "INFO"
    request_timeout: float = 30.0
    run_deadline: float | None = None
    concurrency: int = Field(default=1, ge=1)
    retry_max_attempts: int = Field(default=3, ge=1)
    retry_backoff_seconds: float = 1.0
    retry_max_delay_seconds: float = 60.0
    mergeable_poll_attempts: int = Field(default=3, ge=0)
    mergeable_poll_delay_seconds: float = 2.0
    host: str = "127.0.0.1"
    port: int = 8000


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the singleton application settings (cached after first call)."""
    try:
        return Settings()
    except ValidationError as exc:
        raise ConfigError(f"Invalid settings: {exc}") from exc


class RepoConfig(BaseModel):
    """The managed account and its repositories, in processing order."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    token: SecretStr
    org_name: str
    is_user: bool = False
    repos: list[str] = Field(min_length=1)


def load_repo_config(path: Path | str) -> RepoConfig:
    """Read and validate the JSON config file, or raise :class:`ConfigError`."""
    config_path = Path(path)
    try:
        text = config_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Unable to read config {config_path}: {exc}") from exc

    try:
        return RepoConfig.model_validate_json(text)
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}"
            for err in exc.errors(include_url=False)
        )
        raise ConfigError(f"Unable to load config {config_path}: {problems}") from exc


def resolve_token(settings: Settings, repo_config: RepoConfig) -> str:
    """The environment token wins over the one stored in the config file."""
    if settings.github_token is not None:
        return settings.github_token.get_secret_value()
    return repo_config.token.get_secret_value()
