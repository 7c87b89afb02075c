import json

import pytest

from multigit.domain.exceptions import ConfigError
from multigit.infrastructure.config import (
    get_settings,
    load_repo_config,
    resolve_token,
)


def _write(tmp_path, payload):
    path = tmp_path / "config.json"
    path.write_text(payload if isinstance(payload, str) else json.dumps(payload))
    return path


def test_load_repo_config_keeps_repo_order(tmp_path):
    path = _write(
        tmp_path,
        {"token": "s3cret", "org_name": "acme", "is_user": False, "repos": ["svc-b", "svc-a"]},
    )

    config = load_repo_config(path)

    assert config.org_name == "acme"
    assert config.repos == ["svc-b", "svc-a"]
    assert config.token.get_secret_value() == "s3cret"
    assert "s3cret" not in repr(config)


def test_is_user_defaults_to_false(tmp_path):
    path = _write(tmp_path, {"token": "t", "org_name": "octocat", "repos": ["dotfiles"]})

    assert load_repo_config(path).is_user is False


def test_missing_file_is_config_error(tmp_path):
    with pytest.raises(ConfigError) as info:
        load_repo_config(tmp_path / "nope.json")

    assert "Unable to read config" in info.value.error_message()


def test_invalid_config_names_the_failing_field(tmp_path):
    path = _write(tmp_path, {"token": "t", "org_name": "acme", "repos": [1, "svc"]})

    with pytest.raises(ConfigError) as info:
        load_repo_config(path)

    assert "repos.0" in info.value.error_message()


def test_empty_repo_list_is_rejected(tmp_path):
    path = _write(tmp_path, {"token": "t", "org_name": "acme", "repos": []})

    with pytest.raises(ConfigError):
        load_repo_config(path)


def test_malformed_json_is_config_error(tmp_path):
    with pytest.raises(ConfigError):
        load_repo_config(_write(tmp_path, "{not json"))


def test_settings_from_environment(monkeypatch):
    monkeypatch.setenv("MULTIGIT_CONCURRENCY", "4")
    monkeypatch.setenv("MULTIGIT_RUN_DEADLINE", "120")

    settings = get_settings()

    assert settings.concurrency == 4
    assert settings.run_deadline == 120.0
    assert settings.retry_max_attempts == 3


def test_invalid_settings_raise_config_error(monkeypatch):
    monkeypatch.setenv("MULTIGIT_CONCURRENCY", "0")

    with pytest.raises(ConfigError):
        get_settings()


def test_environment_token_overrides_file_token(tmp_path, monkeypatch):
    config = load_repo_config(_write(tmp_path, {"token": "file", "org_name": "a", "repos": ["r"]}))

    assert resolve_token(get_settings(), config) == "file"

    monkeypatch.setenv("MULTIGIT_GITHUB_TOKEN", "env")
    get_settings.cache_clear()

    assert resolve_token(get_settings(), config) == "env"
