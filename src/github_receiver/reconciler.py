"""Alert-to-issue reconciliation."""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Protocol

import structlog

from github_receiver.models.actions import ActionKind, ReconcileAction, ReconcileResult
from github_receiver.models.alerts import AlertGroup, AlertStatus
from github_receiver.models.issues import IssueState, TrackedIssue

logger = structlog.get_logger(__name__)


class IssueTracker(Protocol):
    """The tracker operations reconciliation depends on."""

    @property
    def default_repo(self) -> str: ...

    async def create_issue(self, repo: str, title: str, body: str) -> TrackedIssue: ...

    async def list_open_issues(self) -> list[TrackedIssue]: ...

    async def close_issue(self, issue: TrackedIssue) -> TrackedIssue: ...


def find_matches(title: str, open_issues: list[TrackedIssue]) -> list[TrackedIssue]:
    """Return the open issues whose title equals the alert title exactly."""
    return [
        issue
        for issue in open_issues
        if issue.state == IssueState.OPEN and issue.title == title
    ]


def decide(
    alert: AlertGroup,
    open_issues: list[TrackedIssue],
    repo: str,
    auto_close: bool,
) -> ReconcileAction:
    """
    Decide what to do for an alert group given the currently open issues.

    Firing alerts get an issue unless one is already open. Resolved alerts
    close every matching open issue when auto-close is enabled.
    """
    matches = find_matches(alert.title, open_issues)

    if alert.status == AlertStatus.FIRING:
        if matches:
            return ReconcileAction.noop(alert.title)
        return ReconcileAction.create(repo, alert.title, alert.body)

    if auto_close and matches:
        return ReconcileAction.close(alert.title, matches)
    return ReconcileAction.noop(alert.title)


class TitleLocks:
    """
    In-process locks keyed by alert title.

    Note: This only serializes reconciliations within a single process.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, title: str, timeout: float | None = None) -> AsyncIterator[bool]:
        """
        Hold the lock for a title, waiting for other holders.

        Args:
            title: Alert title to serialize on
            timeout: Seconds to wait for the lock, or None to wait forever

        Yields:
            True if the lock was acquired, False if the wait timed out
        """
        lock = self._locks.setdefault(title, asyncio.Lock())
        self._users[title] = self._users.get(title, 0) + 1
        acquired = False
        try:
            try:
                await asyncio.wait_for(lock.acquire(), timeout)
                acquired = True
            except asyncio.TimeoutError:
                pass
            yield acquired
        finally:
            if acquired:
                lock.release()
            self._users[title] -= 1
            if self._users[title] == 0:
                del self._users[title]
                del self._locks[title]

    def __len__(self) -> int:
        return len(self._locks)


class Reconciler:
    """Maps alert group notifications onto tracked issues."""

    def __init__(
        self,
        tracker: IssueTracker,
        auto_close: bool = False,
        serialize_titles: bool = True,
        lock_timeout: float | None = 5.0,
    ) -> None:
        """
        Initialize the reconciler.

        Args:
            tracker: Client used to list, create, and close issues
            auto_close: Close matching issues when an alert resolves
            serialize_titles: Reconcile one notification per title at a time
            lock_timeout: Seconds to wait for another reconciliation of the same
                title before proceeding without the lock
        """
        self.tracker = tracker
        self.auto_close = auto_close
        self._locks = TitleLocks() if serialize_titles else None
        self.lock_timeout = lock_timeout

    async def reconcile(self, alert: AlertGroup) -> ReconcileResult:
        """
        Reconcile one alert group against the open issues.

        The open issue listing is always fetched fresh. A RemoteError from the
        listing aborts before any create or close is attempted.

        Raises:
            RemoteError: If any tracker operation fails
        """
        if self._locks is None:
            return await self._reconcile(alert)
        async with self._locks.hold(alert.title, self.lock_timeout) as acquired:
            if not acquired:
                logger.warning(
                    "Timed out waiting for title lock, reconciling unserialized",
                    title=alert.title,
                    lock_timeout=self.lock_timeout,
                )
            return await self._reconcile(alert)

    async def _reconcile(self, alert: AlertGroup) -> ReconcileResult:
        log = logger.bind(title=alert.title, alert_status=alert.status.value)

        open_issues = await self.tracker.list_open_issues()
        action = decide(alert, open_issues, self.tracker.default_repo, self.auto_close)
        log = log.bind(action=action.kind.value)

        if action.kind == ActionKind.CREATE:
            assert action.repo is not None
            created = await self.tracker.create_issue(action.repo, action.title, action.body)
            log.info("Created issue for firing alert", issue_number=created.number)
            return ReconcileResult(action=action, issues=[created])

        if action.kind == ActionKind.CLOSE:
            if len(action.issues) > 1:
                log.warning("Multiple open issues share the alert title", count=len(action.issues))
            closed: list[TrackedIssue] = []
            for issue in action.issues:
                closed.append(await self.tracker.close_issue(issue))
            log.info(
                "Closed issues for resolved alert",
                issue_numbers=[issue.number for issue in closed],
            )
            return ReconcileResult(action=action, issues=closed)

        if alert.status == AlertStatus.RESOLVED and not self.auto_close:
            log.debug("Auto-close disabled, ignoring resolved alert")
        else:
            log.debug("Nothing to do for alert")
        return ReconcileResult(action=action)
