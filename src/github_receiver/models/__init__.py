"""Data models for the GitHub receiver."""

from github_receiver.models.actions import (
    ActionKind,
    ReconcileAction,
    ReconcileResult,
)
from github_receiver.models.alerts import (
    Alert,
    AlertGroup,
    AlertmanagerPayload,
    AlertStatus,
)
from github_receiver.models.issues import IssueState, TrackedIssue

__all__ = [
    "ActionKind",
    "Alert",
    "AlertGroup",
    "AlertmanagerPayload",
    "AlertStatus",
    "IssueState",
    "ReconcileAction",
    "ReconcileResult",
    "TrackedIssue",
]
