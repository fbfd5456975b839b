"""Alert models for Prometheus Alertmanager payloads."""

import json
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class AlertStatus(str, Enum):
    """Alert status from Alertmanager."""

    FIRING = "firing"
    RESOLVED = "resolved"


class Alert(BaseModel):
    """Individual alert from Alertmanager."""

    status: AlertStatus
    labels: dict[str, str] = Field(default_factory=dict)
    annotations: dict[str, str] = Field(default_factory=dict)
    starts_at: datetime = Field(alias="startsAt")
    ends_at: datetime = Field(alias="endsAt")
    generator_url: str = Field(default="", alias="generatorURL")
    fingerprint: str = ""

    model_config = ConfigDict(populate_by_name=True)

    @property
    def alertname(self) -> str:
        """Get the alert name from labels."""
        return self.labels.get("alertname", "unknown")


class AlertGroup(BaseModel):
    """One logical alert: the unit mapped to a single tracked issue."""

    title: str
    body: str = ""
    status: AlertStatus

    model_config = ConfigDict(frozen=True)


class AlertmanagerPayload(BaseModel):
    """Webhook payload from Alertmanager."""

    version: str = "4"
    group_key: str = Field(default="", alias="groupKey")
    truncated_alerts: int = Field(default=0, alias="truncatedAlerts")
    status: AlertStatus
    receiver: str = ""
    group_labels: dict[str, str] = Field(default_factory=dict, alias="groupLabels")
    common_labels: dict[str, str] = Field(default_factory=dict, alias="commonLabels")
    common_annotations: dict[str, str] = Field(default_factory=dict, alias="commonAnnotations")
    external_url: str = Field(default="", alias="externalURL")
    alerts: list[Alert] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)

    def issue_title(self) -> str:
        """
        Build the stable identifying title for this alert group.

        The alertname group label comes first, followed by the remaining group
        labels sorted by name. Payloads without group labels fall back to the
        group key.
        """
        labels = dict(self.group_labels)
        if not labels:
            return self.group_key.strip()

        parts: list[str] = []
        alertname = labels.pop("alertname", "")
        if alertname:
            parts.append(alertname)
        parts.extend(f"{name}={value}" for name, value in sorted(labels.items()))
        return " ".join(parts)

    def issue_body(self) -> str:
        """Render the alert group's labels and annotations as markdown."""
        lines = [f"Alertmanager notification, status: **{self.status.value}**", ""]

        if self.common_labels:
            lines.append("Labels:")
            lines.extend(f"- `{k}`: {v}" for k, v in sorted(self.common_labels.items()))
            lines.append("")

        if self.common_annotations:
            lines.append("Annotations:")
            lines.extend(f"- `{k}`: {v}" for k, v in sorted(self.common_annotations.items()))
            lines.append("")

        if self.external_url:
            lines.append(f"Alertmanager: {self.external_url}")
            lines.append("")

        alerts = [alert.model_dump(mode="json", by_alias=True) for alert in self.alerts]
        lines.append("```json")
        lines.append(json.dumps(alerts, indent=2, sort_keys=True))
        lines.append("```")
        return "\n".join(lines)

    def to_alert_group(self) -> AlertGroup:
        """Convert the payload into the alert group used for reconciliation."""
        return AlertGroup(
            title=self.issue_title(),
            body=self.issue_body(),
            status=self.status,
        )
