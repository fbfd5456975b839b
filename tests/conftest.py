"""Shared fixtures: an in-memory GitHub issues API served through httpx."""

import json
from typing import Any

import httpx
import pytest

from github_receiver.config import DEFAULT_ALERT_LABEL, Settings
from github_receiver.github import GitHubClient

API_URL = "https://api.github.test"
OWNER = "m-lab"


class FakeGitHub:
    """Minimal GitHub issues and search API backed by a list of issues."""

    def __init__(self, owner: str = OWNER, next_number: int = 1) -> None:
        self.owner = owner
        self.issues: list[dict[str, Any]] = []
        self.requests: list[httpx.Request] = []
        self.next_number = next_number
        self.fail_search_page: int | None = None
        self.fail_methods: dict[str, int] = {}

    def add_issue(
        self,
        title: str,
        repo: str = "alerts",
        state: str = "open",
        labels: list[str] | None = None,
        number: int | None = None,
    ) -> dict[str, Any]:
        """Add an issue directly to the fake tracker."""
        if number is None:
            number = self.next_number
        self.next_number = max(self.next_number, number + 1)
        issue = {
            "number": number,
            "title": title,
            "body": "",
            "state": state,
            "labels": [{"name": name} for name in (labels or [DEFAULT_ALERT_LABEL])],
            "assignee": None,
            "repository_url": f"{API_URL}/repos/{self.owner}/{repo}",
            "html_url": f"https://github.test/{self.owner}/{repo}/issues/{number}",
        }
        self.issues.append(issue)
        return issue

    def open_issues(self, title: str | None = None) -> list[dict[str, Any]]:
        return [
            issue
            for issue in self.issues
            if issue["state"] == "open"
            and any(label["name"] == DEFAULT_ALERT_LABEL for label in issue["labels"])
            and (title is None or issue["title"] == title)
        ]

    def calls(self, method: str) -> list[httpx.Request]:
        return [request for request in self.requests if request.method == method]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)

        status = self.fail_methods.get(request.method)
        if status is not None:
            return httpx.Response(status, json={"message": "injected failure"})

        parts = request.url.path.strip("/").split("/")
        if request.method == "GET" and parts == ["search", "issues"]:
            return self._search(request)
        if request.method == "POST" and len(parts) == 4 and parts[3] == "issues":
            return self._create(parts[2], json.loads(request.content))
        if request.method == "PATCH" and len(parts) == 5 and parts[3] == "issues":
            return self._edit(parts[2], int(parts[4]), json.loads(request.content))
        return httpx.Response(404, json={"message": "Not Found"})

    def _search(self, request: httpx.Request) -> httpx.Response:
        page = int(request.url.params.get("page", "1"))
        per_page = int(request.url.params.get("per_page", "30"))
        if page == self.fail_search_page:
            return httpx.Response(502, json={"message": "Bad Gateway"})

        found = self.open_issues()
        start = (page - 1) * per_page
        headers = {}
        if start + per_page < len(found):
            next_url = request.url.copy_merge_params({"page": str(page + 1)})
            headers["Link"] = f'<{next_url}>; rel="next"'
        return httpx.Response(
            200,
            json={"total_count": len(found), "items": found[start : start + per_page]},
            headers=headers,
        )

    def _create(self, repo: str, data: dict[str, Any]) -> httpx.Response:
        if not data.get("title"):
            return httpx.Response(422, json={"message": "Validation Failed"})
        issue = self.add_issue(data["title"], repo=repo, labels=data.get("labels", []))
        issue["body"] = data.get("body", "")
        return httpx.Response(201, json=issue)

    def _edit(self, repo: str, number: int, data: dict[str, Any]) -> httpx.Response:
        for issue in self.issues:
            if issue["number"] == number and issue["repository_url"].endswith(f"/{repo}"):
                issue.update(data)
                return httpx.Response(200, json=issue)
        return httpx.Response(404, json={"message": "Not Found"})

    def client(self, repos: tuple[str, ...] = ("alerts",), **kwargs: Any) -> GitHubClient:
        return GitHubClient(
            owner=self.owner,
            repos=list(repos),
            token="test-token",
            base_url=API_URL,
            transport=httpx.MockTransport(self.handler),
            **kwargs,
        )


@pytest.fixture
def fake_github() -> FakeGitHub:
    """Create an empty fake GitHub API."""
    return FakeGitHub()


@pytest.fixture
def github(fake_github: FakeGitHub) -> GitHubClient:
    """Create a client talking to the fake GitHub API."""
    return fake_github.client()


@pytest.fixture
def settings() -> Settings:
    """Create settings for a receiver with auto-close enabled."""
    return Settings(
        github_token="test-token",
        github_owner=OWNER,
        github_repos=["alerts"],
        github_api_url=API_URL,
        enable_auto_close=True,
        log_format="console",
    )
