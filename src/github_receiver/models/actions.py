"""Reconciliation actions and their outcomes."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from github_receiver.models.issues import TrackedIssue


class ActionKind(str, Enum):
    """What a reconciliation decided to do."""

    CREATE = "create"
    CLOSE = "close"
    NOOP = "noop"


class ReconcileAction(BaseModel):
    """A decided action for one alert group."""

    kind: ActionKind
    title: str
    repo: str | None = None  # Set for CREATE
    body: str = ""  # Set for CREATE
    issues: list[TrackedIssue] = Field(default_factory=list)  # Set for CLOSE

    @classmethod
    def create(cls, repo: str, title: str, body: str) -> "ReconcileAction":
        return cls(kind=ActionKind.CREATE, repo=repo, title=title, body=body)

    @classmethod
    def close(cls, title: str, issues: list[TrackedIssue]) -> "ReconcileAction":
        return cls(kind=ActionKind.CLOSE, title=title, issues=list(issues))

    @classmethod
    def noop(cls, title: str) -> "ReconcileAction":
        return cls(kind=ActionKind.NOOP, title=title)


class ReconcileResult(BaseModel):
    """The applied action together with the issues the tracker returned."""

    action: ReconcileAction
    issues: list[TrackedIssue] = Field(default_factory=list)

    def to_summary(self) -> dict[str, Any]:
        """Return a summary dict suitable for API responses."""
        return {
            "action": self.action.kind.value,
            "title": self.action.title,
            "issues": [issue.to_summary() for issue in self.issues],
        }
