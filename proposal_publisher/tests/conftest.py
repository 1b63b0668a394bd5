"""Shared fixtures: an in-memory GitHub behind httpx.MockTransport."""
import json
import re
from datetime import date
from typing import Dict, List, Optional, Tuple

import httpx
import pytest

from ..config.numbering_settings import NumberingConfig, OrdinalCorrection
from ..config.settings import Settings
from ..data_models.schemas import Proposal, ProposalKind
from ..services.formatter import decode_content
from ..services.github_client import GitHubClient
from ..services.publisher import Publisher

CONTENTS_RE = re.compile(r"^/repos/([^/]+)/([^/]+)/contents/(.+)$")
REF_RE = re.compile(r"^/repos/([^/]+)/([^/]+)/git/ref/(.+)$")
REFS_RE = re.compile(r"^/repos/([^/]+)/([^/]+)/git/refs$")
PULLS_RE = re.compile(r"^/repos/([^/]+)/([^/]+)/pulls$")
SNAPSHOT_HOST = "hub.snapshot.org"


class FakeGitHub:
    """Just enough of the GitHub REST API for the publisher.

    `fail` maps an operation name ("list", "get_ref", "create_ref", "commit",
    "pull", "find_pull") to an HTTP status code, or to "network" for a transport error.
    """

    def __init__(self, listing: Optional[List[str]] = None):
        self.listing = list(listing or [])
        self.listing_is_file = False
        self.base_sha = "abc123"
        self.refs: Dict[Tuple[str, str], List[str]] = {}
        self.files: Dict[Tuple[str, str], dict] = {}
        self.pulls: List[dict] = []
        self.listed_repos: List[str] = []
        self.fail: Dict[str, object] = {}

    def _maybe_fail(self, operation: str, request: httpx.Request) -> Optional[httpx.Response]:
        failure = self.fail.get(operation)
        if failure is None:
            return None
        if failure == "network":
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(failure, json={"message": f"{operation} failed"})

    def branches(self, owner: str, repo: str) -> List[str]:
        return self.refs.get((owner, repo), [])

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        method = request.method

        match = CONTENTS_RE.match(path)
        if match and method == "GET":
            owner, repo, dir_path = match.groups()
            self.listed_repos.append(f"{owner}/{repo}")
            failed = self._maybe_fail("list", request)
            if failed:
                return failed
            if self.listing_is_file:
                return httpx.Response(200, json={"name": dir_path, "path": dir_path, "type": "file"})
            return httpx.Response(200, json=[
                {"name": name, "path": f"{dir_path}/{name}", "type": "file", "sha": "f00"}
                for name in self.listing
            ])

        if match and method == "PUT":
            owner, repo, file_path = match.groups()
            failed = self._maybe_fail("commit", request)
            if failed:
                return failed
            body = json.loads(request.content)
            key = (body["branch"], file_path)
            if key in self.files:
                return httpx.Response(422, json={"message": "Invalid request.\n\n\"sha\" wasn't supplied."})
            self.files[key] = {
                "repo": f"{owner}/{repo}",
                "message": body["message"],
                "content": decode_content(body["content"]),
            }
            return httpx.Response(201, json={"content": {"path": file_path}, "commit": {"sha": "def456"}})

        match = REF_RE.match(path)
        if match and method == "GET":
            failed = self._maybe_fail("get_ref", request)
            if failed:
                return failed
            return httpx.Response(200, json={
                "ref": f"refs/{match.group(3)}",
                "object": {"sha": self.base_sha, "type": "commit"},
            })

        match = REFS_RE.match(path)
        if match and method == "POST":
            owner, repo = match.groups()
            failed = self._maybe_fail("create_ref", request)
            if failed:
                return failed
            body = json.loads(request.content)
            existing = self.refs.setdefault((owner, repo), [])
            if body["ref"] in existing:
                return httpx.Response(422, json={"message": "Reference already exists"})
            existing.append(body["ref"])
            return httpx.Response(201, json={"ref": body["ref"], "object": {"sha": body["sha"]}})

        match = PULLS_RE.match(path)
        if match and method == "GET":
            owner, repo = match.groups()
            failed = self._maybe_fail("find_pull", request)
            if failed:
                return failed
            head = request.url.params.get("head")
            found = [
                pull for pull in reversed(self.pulls)
                if pull["repo"] == f"{owner}/{repo}" and pull["head"] == head
            ]
            return httpx.Response(200, json=found[:1])

        if match and method == "POST":
            owner, repo = match.groups()
            failed = self._maybe_fail("pull", request)
            if failed:
                return failed
            body = json.loads(request.content)
            number = len(self.pulls) + 1
            pull = {
                "repo": f"{owner}/{repo}",
                "number": number,
                "html_url": f"https://github.com/{owner}/{repo}/pull/{number}",
                **body,
            }
            self.pulls.append(pull)
            return httpx.Response(201, json=pull)

        return httpx.Response(404, json={"message": "Not Found"})


class FakeUpstream:
    """The Snapshot feed plus the fake GitHub, behind one transport."""

    def __init__(self, fake_github: FakeGitHub):
        self.fake_github = fake_github
        self.snapshot_status = 200
        self.snapshot_proposals = [{
            "id": "42",
            "title": "Fund X",
            "body": "Details...",
            "author": "0xb8c2C29ee19D8307cb7255e1Cd9CbDE883A267d5",
            "created": 1735732800,
        }]

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.url.host == SNAPSHOT_HOST:
            if self.snapshot_status != 200:
                return httpx.Response(self.snapshot_status)
            return httpx.Response(200, json={"data": {"proposals": self.snapshot_proposals}})
        return self.fake_github.handler(request)


@pytest.fixture
def settings():
    return Settings(github_token="test-token", github_repo_owner="bot", github_repo_name="docs")


@pytest.fixture
def numbering():
    return NumberingConfig(
        reference_year=2025,
        reference_term=6,
        ordinal_corrections=[OrdinalCorrection(term=6, offset=-3, remove_after=date(2026, 1, 1))],
    )


@pytest.fixture
def fake_github():
    return FakeGitHub(listing=["6.1.mdx", "6.2.mdx", "7.1.mdx", "7.2.mdx"])


@pytest.fixture
def upstream(fake_github):
    return FakeUpstream(fake_github)


@pytest.fixture
def github_client(fake_github):
    return GitHubClient("test-token", transport=httpx.MockTransport(fake_github.handler))


@pytest.fixture
def publisher(github_client, settings, numbering):
    # 2026 is term 7
    return Publisher(github_client, settings, numbering, today=lambda: date(2026, 3, 1))


@pytest.fixture
def social_proposal():
    return Proposal(
        id="42",
        kind=ProposalKind.SOCIAL,
        author="alice.eth",
        title="Fund X",
        body="# Fund X\n\nDetails...",
    )


@pytest.fixture
def executable_proposal():
    return Proposal(
        id=10731456,
        kind=ProposalKind.EXECUTABLE,
        author="bob.eth",
        title="Upgrade the Registrar",
        body="# Upgrade the Registrar\n\n## Abstract\n\nReplace the registrar controller.",
    )
