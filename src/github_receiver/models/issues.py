"""Models for issues tracked on GitHub."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class IssueState(str, Enum):
    """GitHub issue state."""

    OPEN = "open"
    CLOSED = "closed"


class TrackedIssue(BaseModel):
    """An issue as returned by the GitHub API."""

    number: int
    title: str
    state: IssueState
    labels: list[str] = Field(default_factory=list)
    repository: str | None = None
    html_url: str = ""

    model_config = ConfigDict(frozen=True)

    @field_validator("labels", mode="before")
    @classmethod
    def _label_names(cls, value: Any) -> Any:
        """Accept GitHub label objects as well as plain names."""
        if isinstance(value, list):
            return [item.get("name") if isinstance(item, dict) else item for item in value]
        return value

    @classmethod
    def from_api(cls, data: dict[str, Any], repository: str | None = None) -> "TrackedIssue":
        """
        Build a tracked issue from a GitHub issue record.

        Args:
            data: Issue JSON from the issues or search API
            repository: Repository name, used when the record has no repository_url

        Raises:
            pydantic.ValidationError: If required fields are missing or malformed
        """
        repository_url = data.get("repository_url")
        if repository_url:
            # A non-string URL fails validation as the repository name.
            if isinstance(repository_url, str):
                repository = repository_url.rstrip("/").rsplit("/", 1)[-1]
            else:
                repository = repository_url

        return cls.model_validate(
            {
                "number": data.get("number"),
                "title": data.get("title"),
                "state": data.get("state"),
                "labels": data.get("labels", []),
                "repository": repository,
                "html_url": data.get("html_url") or "",
            }
        )

    def has_label(self, label: str) -> bool:
        """Check whether the issue carries the given label."""
        return label in self.labels

    def to_summary(self) -> dict[str, Any]:
        """Return a summary dict suitable for API responses."""
        return {
            "number": self.number,
            "title": self.title,
            "state": self.state.value,
            "labels": list(self.labels),
            "repository": self.repository,
            "html_url": self.html_url,
        }
