import asyncio
import json
import re

import httpx
import pytest

from multigit.infrastructure.config import get_settings
from multigit.infrastructure.github_rest_adapter import GitHubRestAdapter
from multigit.infrastructure.github_transport import GitHubTransport

OWNER = "acme"

_ROUTES = [
    ("GET", r"/user", "get_me"),
    ("GET", r"/user/orgs", "list_my_orgs"),
    ("GET", r"/orgs/(?P<org>[^/]+)", "get_org"),
    ("GET", r"/orgs/(?P<org>[^/]+)/repos", "list_org_repos"),
    ("GET", r"/users/(?P<org>[^/]+)/repos", "list_org_repos"),
    ("GET", r"/repos/(?P<owner>[^/]+)/(?P<repo>[^/]+)", "get_repo"),
    ("GET", r"/repos/(?P<owner>[^/]+)/(?P<repo>[^/]+)/branches", "list_branches"),
    ("GET", r"/repos/(?P<owner>[^/]+)/(?P<repo>[^/]+)/compare/(?P<spec>.+)", "compare"),
    ("GET", r"/repos/(?P<owner>[^/]+)/(?P<repo>[^/]+)/pulls", "list_pulls"),
    ("POST", r"/repos/(?P<owner>[^/]+)/(?P<repo>[^/]+)/pulls", "create_pull"),
    ("GET", r"/repos/(?P<owner>[^/]+)/(?P<repo>[^/]+)/pulls/(?P<number>\d+)", "get_pull"),
    ("PUT", r"/repos/(?P<owner>[^/]+)/(?P<repo>[^/]+)/pulls/(?P<number>\d+)/merge", "merge_pull"),
    ("GET", r"/repos/(?P<owner>[^/]+)/(?P<repo>[^/]+)/git/refs/heads/(?P<branch>.+)", "get_ref"),
    ("POST", r"/repos/(?P<owner>[^/]+)/(?P<repo>[^/]+)/git/refs", "create_ref"),
    ("DELETE", r"/repos/(?P<owner>[^/]+)/(?P<repo>[^/]+)/git/refs/heads/(?P<branch>.+)", "delete_ref"),
]


def _not_found():
    return httpx.Response(404, json={"message": "Not Found"})


class FakeGitHub:
    """In-memory GitHub answering the REST endpoints multigit uses.

    ``overrides`` maps ``(method, path)`` to a response, or a list of
    responses consumed one per call, and takes precedence over the model.
    """

    def __init__(self, owner=OWNER):
        self.owner = owner
        self.branches = {}
        self.comparisons = {}
        self.pulls = {}
        self.orgs = ["acme", "widgets"]
        self.overrides = {}
        self.requests = []
        self.raw_paths = []
        self._next_number = 1

    # ── Setup ───────────────────────────────────────────────────────────

    def add_repo(self, name, branches, compare="behind"):
        self.branches[name] = dict(branches)
        self.comparisons[name] = compare
        self.pulls[name] = {}

    def add_pull(self, repo, head, base, mergeable=None, owner=None):
        owner = owner or self.owner
        number = self._next_number
        self._next_number += 1
        self.pulls[repo][number] = {
            "number": number,
            "state": "open",
            "title": f"PR {number}",
            "head": {"label": f"{owner}:{head}", "ref": head, "sha": "h" * 40},
            "base": {"label": f"{self.owner}:{base}", "ref": base, "sha": "b" * 40},
            "draft": False,
            "merged": False,
            "mergeable": mergeable,
        }
        return number

    # ── Inspection ──────────────────────────────────────────────────────

    def calls(self, method=None, contains=""):
        return [
            (m, p)
            for m, p, _ in self.requests
            if (method is None or m == method) and contains in p
        ]

    def body_of(self, method, contains):
        for m, p, body in self.requests:
            if m == method and contains in p:
                return body
        raise AssertionError(f"no {method} call containing {contains}")

    # ── Transport handler ───────────────────────────────────────────────

    def handler(self, request):
        path = request.url.path
        body = json.loads(request.content) if request.content else None
        self.requests.append((request.method, path, body))
        self.raw_paths.append(request.url.raw_path.decode("ascii"))

        override = self.overrides.get((request.method, path))
        if isinstance(override, list):
            if override:
                return override.pop(0)
        elif override is not None:
            return override

        for method, pattern, name in _ROUTES:
            if method != request.method:
                continue
            match = re.fullmatch(pattern, path)
            if match:
                return getattr(self, f"_{name}")(request, body, **match.groupdict())
        return _not_found()

    # ── Endpoints ───────────────────────────────────────────────────────

    def _repo_json(self, name):
        return {
            "id": 1,
            "name": name,
            "full_name": f"{self.owner}/{name}",
            "owner": {"login": self.owner, "id": 7, "type": "Organization"},
            "private": False,
            "default_branch": "main",
            "some_new_field": {"added": "by the forge"},
        }

    def _get_me(self, request, body):
        return httpx.Response(200, json={"login": "octocat", "id": 1, "type": "User"})

    def _list_my_orgs(self, request, body):
        return httpx.Response(200, json=[{"login": o, "id": i} for i, o in enumerate(self.orgs)])

    def _get_org(self, request, body, org):
        return httpx.Response(200, json={"login": org, "id": 3})

    def _list_org_repos(self, request, body, org):
        return httpx.Response(200, json=[self._repo_json(n) for n in self.branches])

    def _get_repo(self, request, body, owner, repo):
        if repo not in self.branches:
            return _not_found()
        return httpx.Response(200, json=self._repo_json(repo))

    def _list_branches(self, request, body, owner, repo):
        if repo not in self.branches:
            return _not_found()
        return httpx.Response(
            200,
            json=[
                {"name": b, "commit": {"sha": sha, "url": f"https://x/{sha}"}, "protected": False}
                for b, sha in self.branches[repo].items()
            ],
        )

    def _compare(self, request, body, owner, repo, spec):
        return httpx.Response(
            200, json={"status": self.comparisons[repo], "ahead_by": 1, "behind_by": 2}
        )

    def _public_pull(self, pull):
        return {k: v for k, v in pull.items() if k not in ("mergeable",)}

    def _list_pulls(self, request, body, owner, repo):
        return httpx.Response(
            200,
            json=[
                self._public_pull(p)
                for p in self.pulls[repo].values()
                if p["state"] == "open"
            ],
        )

    def _get_pull(self, request, body, owner, repo, number):
        pull = self.pulls[repo].get(int(number))
        if pull is None:
            return _not_found()
        return httpx.Response(200, json=pull)

    def _create_pull(self, request, body, owner, repo):
        number = self.add_pull(repo, body["head"], body["base"])
        self.pulls[repo][number]["title"] = body["title"]
        return httpx.Response(201, json=self._public_pull(self.pulls[repo][number]))

    def _merge_pull(self, request, body, owner, repo, number):
        pull = self.pulls[repo][int(number)]
        pull["merged"] = True
        pull["state"] = "closed"
        return httpx.Response(
            200, json={"sha": "m" * 40, "merged": True, "message": "Pull Request successfully merged"}
        )

    def _ref_json(self, repo, branch):
        sha = self.branches[repo][branch]
        return {
            "ref": f"refs/heads/{branch}",
            "node_id": "REF_1",
            "url": f"https://x/{repo}/refs/heads/{branch}",
            "object": {"type": "commit", "sha": sha, "url": f"https://x/{sha}"},
        }

    def _get_ref(self, request, body, owner, repo, branch):
        if branch not in self.branches.get(repo, {}):
            return _not_found()
        return httpx.Response(200, json=self._ref_json(repo, branch))

    def _create_ref(self, request, body, owner, repo):
        branch = body["ref"].removeprefix("refs/heads/")
        if branch in self.branches[repo]:
            return httpx.Response(422, json={"message": "Reference already exists"})
        self.branches[repo][branch] = body["sha"]
        return httpx.Response(201, json=self._ref_json(repo, branch))

    def _delete_ref(self, request, body, owner, repo, branch):
        if self.branches[repo].pop(branch, None) is None:
            return httpx.Response(422, json={"message": "Reference does not exist"})
        return httpx.Response(204)


async def _no_sleep(delay):
    return None


@pytest.fixture
def fake_github():
    return FakeGitHub()


@pytest.fixture
def run_forge(fake_github):
    """Run ``fn(adapter)`` against the fake, inside a fresh event loop."""

    def _run(fn, **transport_kwargs):
        transport_kwargs.setdefault("backoff_seconds", 0)
        transport_kwargs.setdefault("sleep", _no_sleep)

        async def _main():
            async with httpx.AsyncClient(transport=httpx.MockTransport(fake_github.handler)) as client:
                transport = GitHubTransport(client, "t0k3n", **transport_kwargs)
                return await fn(GitHubRestAdapter(transport))

        return asyncio.run(_main())

    return _run


@pytest.fixture(autouse=True)
def _fresh_settings(monkeypatch):
    for key in ("MULTIGIT_GITHUB_TOKEN", "MULTIGIT_CONFIG_PATH", "MULTIGIT_CONCURRENCY"):
        monkeypatch.delenv(key, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
