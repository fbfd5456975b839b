"""Tests for API endpoints."""

from typing import Any

import pytest
from fastapi.testclient import TestClient

from github_receiver.api import create_app
from github_receiver.config import Settings

from conftest import FakeGitHub


@pytest.fixture
def client(settings: Settings, fake_github: FakeGitHub) -> TestClient:
    """Create a test client backed by the fake GitHub API."""
    app = create_app(settings, client=fake_github.client())
    return TestClient(app)


def notification(status: str, alertname: str = "disk-full-host7") -> dict[str, Any]:
    return {
        "version": "4",
        "groupKey": f'{{}}:{{alertname="{alertname}"}}',
        "status": status,
        "receiver": "github",
        "groupLabels": {"alertname": alertname},
        "commonLabels": {"alertname": alertname},
        "alerts": [
            {
                "status": status,
                "labels": {"alertname": alertname},
                "annotations": {"summary": "Disk is full"},
                "startsAt": "2024-01-01T00:00:00Z",
                "endsAt": "0001-01-01T00:00:00Z",
                "fingerprint": "abc123",
            }
        ],
    }


class TestHealthEndpoints:
    """Tests for health and metrics endpoints."""

    def test_health(self, client: TestClient, fake_github: FakeGitHub) -> None:
        """Test health endpoint does not call GitHub."""
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert fake_github.requests == []

    def test_metrics(self, client: TestClient) -> None:
        """Test metrics endpoint exposes receiver counters."""
        client.post("/v1/receiver", json=notification("firing"))

        response = client.get("/metrics")

        assert response.status_code == 200
        assert "github_receiver_notifications_received_total" in response.text


class TestReceiverEndpoint:
    """Tests for the webhook endpoint."""

    def test_firing_creates_issue(self, client: TestClient, fake_github: FakeGitHub) -> None:
        """Test a firing notification creates one issue."""
        response = client.post("/v1/receiver", json=notification("firing"))

        assert response.status_code == 200
        data = response.json()
        assert data["action"] == "create"
        assert data["issues"][0]["title"] == "disk-full-host7"
        assert len(fake_github.open_issues("disk-full-host7")) == 1

    def test_repeated_firing_is_idempotent(
        self, client: TestClient, fake_github: FakeGitHub
    ) -> None:
        """Test redelivered notifications do not duplicate the issue."""
        client.post("/v1/receiver", json=notification("firing"))
        response = client.post("/v1/receiver", json=notification("firing"))

        assert response.status_code == 200
        assert response.json()["action"] == "noop"
        assert len(fake_github.open_issues("disk-full-host7")) == 1

    def test_resolved_closes_issue(self, client: TestClient, fake_github: FakeGitHub) -> None:
        """Test a resolved notification closes the issue with auto-close."""
        fake_github.add_issue("disk-full-host7", number=42)

        response = client.post("/v1/receiver", json=notification("resolved"))

        assert response.status_code == 200
        data = response.json()
        assert data["action"] == "close"
        assert data["issues"][0]["number"] == 42
        assert data["issues"][0]["state"] == "closed"
        assert fake_github.open_issues() == []

    def test_resolved_without_auto_close(
        self, settings: Settings, fake_github: FakeGitHub
    ) -> None:
        """Test resolved notifications are ignored when auto-close is off."""
        settings = settings.model_copy(update={"enable_auto_close": False})
        client = TestClient(create_app(settings, client=fake_github.client()))
        fake_github.add_issue("disk-full-host7", number=42)

        response = client.post("/v1/receiver", json=notification("resolved"))

        assert response.status_code == 200
        assert response.json()["action"] == "noop"
        assert len(fake_github.open_issues()) == 1

    def test_remote_error_returns_500(self, client: TestClient, fake_github: FakeGitHub) -> None:
        """Test GitHub failures are reported as server errors."""
        fake_github.fail_methods["POST"] = 401

        response = client.post("/v1/receiver", json=notification("firing"))

        assert response.status_code == 500
        assert "create_issue" in response.json()["detail"]

    def test_listing_error_returns_500(
        self, client: TestClient, fake_github: FakeGitHub
    ) -> None:
        """Test a listing failure fails the request without creating issues."""
        fake_github.fail_search_page = 1

        response = client.post("/v1/receiver", json=notification("firing"))

        assert response.status_code == 500
        assert fake_github.calls("POST") == []

    def test_empty_title_rejected(self, client: TestClient, fake_github: FakeGitHub) -> None:
        """Test notifications without an identifying title are rejected."""
        payload = notification("firing")
        payload["groupKey"] = ""
        payload["groupLabels"] = {}

        response = client.post("/v1/receiver", json=payload)

        assert response.status_code == 400
        assert fake_github.requests == []

    def test_invalid_payload(self, client: TestClient) -> None:
        """Test payloads without a status fail validation."""
        response = client.post("/v1/receiver", json={"alerts": []})

        assert response.status_code == 422


class TestIssueListing:
    """Tests for the issue listing views."""

    def test_html_listing(self, client: TestClient, fake_github: FakeGitHub) -> None:
        """Test the index page links each open issue."""
        fake_github.add_issue("disk-full-host7", number=42)
        fake_github.add_issue("<script>", number=43)

        response = client.get("/")

        assert response.status_code == 200
        assert "text/html" in response.headers["content-type"]
        assert 'href="https://github.test/m-lab/alerts/issues/42"' in response.text
        assert "disk-full-host7" in response.text
        assert "&lt;script&gt;" in response.text
        assert "<script>" not in response.text

    def test_json_listing(self, client: TestClient, fake_github: FakeGitHub) -> None:
        """Test the JSON listing returns open issues only."""
        fake_github.add_issue("a", number=1)
        fake_github.add_issue("b", number=2, state="closed")

        response = client.get("/api/issues")

        assert response.status_code == 200
        data = response.json()
        assert data["count"] == 1
        assert data["issues"][0]["number"] == 1

    def test_listing_error(self, client: TestClient, fake_github: FakeGitHub) -> None:
        """Test listing failures are reported as server errors."""
        fake_github.fail_search_page = 1

        response = client.get("/api/issues")

        assert response.status_code == 500
