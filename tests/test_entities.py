import json

import pytest
from pydantic import ValidationError

from multigit.domain.entities import (
    Branch,
    CompareStatus,
    Comparison,
    PullRequest,
    Reference,
    ReferenceType,
    Repository,
)


def _pull_payload(**overrides):
    payload = {
        "number": 12,
        "state": "open",
        "head": {"label": "acme:feature", "ref": "feature", "sha": "a" * 40},
        "base": {"label": "acme:main", "ref": "main", "sha": "b" * 40},
        "draft": False,
    }
    payload.update(overrides)
    return payload


def test_repository_ignores_unknown_fields():
    repo = Repository.model_validate(
        {
            "name": "svc-a",
            "owner": {"login": "acme", "site_admin": False},
            "brand_new_forge_field": [1, 2, 3],
        }
    )

    assert repo.name == "svc-a"
    assert repo.owner.login == "acme"
    assert repo.default_branch is None


def test_pull_request_mergeable_is_tri_state():
    assert PullRequest.model_validate(_pull_payload()).mergeable is None
    assert PullRequest.model_validate(_pull_payload(mergeable=None)).mergeable is None
    assert PullRequest.model_validate(_pull_payload(mergeable=True)).mergeable is True
    assert PullRequest.model_validate(_pull_payload(mergeable=False)).mergeable is False


def test_pull_request_label_match_is_exact():
    pull = PullRequest.model_validate(_pull_payload())

    assert pull.matches("acme:feature", "acme:main")
    assert not pull.matches("Acme:feature", "acme:main")
    assert not pull.matches("acme:feature", "acme:Main")
    assert not pull.matches("fork:feature", "acme:main")


def test_entities_are_frozen_values():
    pull = PullRequest.model_validate(_pull_payload())

    with pytest.raises(ValidationError):
        pull.number = 13


def test_reference_exposes_sha_and_kind():
    ref = Reference.model_validate(
        {"ref": "refs/heads/main", "object": {"type": "commit", "sha": "c" * 40}}
    )

    assert ref.sha == "c" * 40
    assert ref.object.type is ReferenceType.COMMIT


@pytest.mark.parametrize(
    "status, needs_pull",
    [("ahead", False), ("identical", False), ("behind", True), ("diverged", True)],
)
def test_comparison_status_drives_pull_handling(status, needs_pull):
    comparison = Comparison.model_validate_json(json.dumps({"status": status, "files": []}))

    assert comparison.status is CompareStatus(status)
    assert comparison.status.needs_pull_request is needs_pull


def test_unknown_comparison_status_is_rejected():
    with pytest.raises(ValidationError):
        Comparison.model_validate({"status": "sideways"})


def test_branch_protection_defaults_to_false():
    branch = Branch.model_validate({"name": "main", "commit": {"sha": "d" * 40}})

    assert branch.protected is False
