"""GitHub API client for creating, listing, and closing alert issues."""

from collections.abc import AsyncIterator
from typing import Any

import httpx
import structlog
from pydantic import ValidationError

from github_receiver.config import DEFAULT_ALERT_LABEL
from github_receiver.models.issues import TrackedIssue

logger = structlog.get_logger(__name__)

PAGE_SIZE = 100


class RemoteError(Exception):
    """Exception raised for any failure talking to the GitHub API."""

    def __init__(
        self,
        operation: str,
        target: str,
        message: str,
        status_code: int | None = None,
    ) -> None:
        self.operation = operation
        self.target = target
        self.status_code = status_code
        super().__init__(f"{operation} failed for {target}: {message}")


class GitHubClient:
    """
    Client for the GitHub issues API, scoped to one owner and its repositories.

    New issues are created in the first configured repository and carry the
    alert label. Listing searches every repository under the owner.
    """

    def __init__(
        self,
        owner: str,
        repos: list[str],
        token: str,
        base_url: str = "https://api.github.com",
        label: str = DEFAULT_ALERT_LABEL,
        timeout: float = 10.0,
        max_pages: int = 100,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize the GitHub client.

        Args:
            owner: GitHub user or organization name
            repos: Repository names under the owner; the first receives new issues
            token: OAuth2 or personal access token
            base_url: GitHub API base URL
            label: Label applied to and searched for on alert issues
            timeout: Per-request timeout in seconds
            max_pages: Upper bound on search result pages fetched per listing
            transport: Optional httpx transport, used by tests
        """
        if not repos:
            raise ValueError("At least one repository is required")

        self.owner = owner
        self.repos = tuple(repos)
        self.label = label
        self.max_pages = max_pages
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers={
                "Accept": "application/vnd.github+json",
                "Authorization": f"Bearer {token}",
                "X-GitHub-Api-Version": "2022-11-28",
            },
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    @property
    def default_repo(self) -> str:
        """Repository that receives newly created issues."""
        return self.repos[0]

    @property
    def search_query(self) -> str:
        """Search query matching open alert issues under the owner."""
        return f'is:issue in:title is:open org:{self.owner} label:"{self.label}"'

    async def aclose(self) -> None:
        """Close the underlying HTTP connection pool."""
        await self._client.aclose()

    async def _request(
        self,
        operation: str,
        target: str,
        method: str,
        url: str,
        **kwargs: Any,
    ) -> httpx.Response:
        """Send a request, converting every failure into RemoteError."""
        try:
            response = await self._client.request(method, url, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            raise RemoteError(
                operation,
                target,
                f"GitHub API error: {status} - {e.response.text}",
                status_code=status,
            ) from e
        except httpx.TimeoutException as e:
            raise RemoteError(operation, target, f"request timed out: {e}") from e
        except httpx.RequestError as e:
            raise RemoteError(operation, target, f"request failed: {e}") from e
        return response

    def _json(self, operation: str, target: str, response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise RemoteError(
                operation, target, "malformed JSON response", response.status_code
            ) from e

    def _to_issue(
        self,
        operation: str,
        target: str,
        data: Any,
        repository: str | None = None,
    ) -> TrackedIssue:
        """Convert an API issue record, rejecting malformed records."""
        if not isinstance(data, dict):
            raise RemoteError(operation, target, "malformed issue record")
        try:
            return TrackedIssue.from_api(data, repository=repository)
        except ValidationError as e:
            raise RemoteError(operation, target, f"malformed issue record: {e}") from e

    async def create_issue(self, repo: str, title: str, body: str) -> TrackedIssue:
        """
        Create a new issue carrying the alert label. New issues are unassigned.

        Args:
            repo: Repository name under the owner
            title: Issue title
            body: Issue body

        Returns:
            The created issue

        Raises:
            RemoteError: If the API call fails; no retry is attempted
        """
        operation = "create_issue"
        target = f"{self.owner}/{repo}: {title}"
        log = logger.bind(repo=repo, title=title)

        # See also: https://docs.github.com/en/rest/issues/issues#create-an-issue
        response = await self._request(
            operation,
            target,
            "POST",
            f"/repos/{self.owner}/{repo}/issues",
            json={"title": title, "body": body, "labels": [self.label]},
        )
        issue = self._to_issue(
            operation, target, self._json(operation, target, response), repository=repo
        )
        log.info("Created issue", issue_number=issue.number)
        return issue

    async def iter_open_issue_pages(self) -> AsyncIterator[list[TrackedIssue]]:
        """
        Yield pages of open alert issues, following the Link header.

        Raises:
            RemoteError: If any page fails or more than max_pages pages are served
        """
        operation = "list_open_issues"
        target = f"org:{self.owner}"
        url: str | None = "/search/issues"
        params: dict[str, Any] | None = {"q": self.search_query, "per_page": PAGE_SIZE}
        pages = 0

        while url is not None:
            if pages >= self.max_pages:
                raise RemoteError(
                    operation, target, f"more than {self.max_pages} result pages"
                )

            response = await self._request(operation, target, "GET", url, params=params)
            data = self._json(operation, target, response)
            items = data.get("items") if isinstance(data, dict) else None
            if not isinstance(items, list):
                raise RemoteError(
                    operation, target, "search response has no items", response.status_code
                )

            pages += 1
            yield [self._to_issue(operation, target, item) for item in items]

            # The next link already carries the query string.
            url = response.links.get("next", {}).get("url")
            params = None

    async def list_open_issues(self) -> list[TrackedIssue]:
        """
        List all open alert issues under the owner.

        Pages are concatenated in order. A failure on any page aborts the
        whole listing so callers never act on a partial view.

        Raises:
            RemoteError: If any page fails
        """
        issues: list[TrackedIssue] = []
        pages = 0
        try:
            async for page in self.iter_open_issue_pages():
                issues.extend(page)
                pages += 1
        except RemoteError as e:
            logger.error("Failed to list open issues", error=str(e), pages_read=pages)
            raise

        return issues

    async def close_issue(self, issue: TrackedIssue) -> TrackedIssue:
        """
        Change the issue state to closed. Closing a closed issue has no effect.

        The issue is closed in the repository it lives in. Issues without a
        known repository are closed in the first configured repository.

        Raises:
            RemoteError: If the API call fails
        """
        repo = issue.repository
        if not repo:
            repo = self.default_repo
            logger.warning(
                "Issue has no repository, closing in default repository",
                issue_number=issue.number,
                repo=repo,
            )

        operation = "close_issue"
        target = f"{self.owner}/{repo}#{issue.number}"

        # See also: https://docs.github.com/en/rest/issues/issues#update-an-issue
        response = await self._request(
            operation,
            target,
            "PATCH",
            f"/repos/{self.owner}/{repo}/issues/{issue.number}",
            json={"state": "closed"},
        )
        closed = self._to_issue(
            operation, target, self._json(operation, target, response), repository=repo
        )
        logger.info("Closed issue", repo=repo, issue_number=closed.number, title=closed.title)
        return closed
