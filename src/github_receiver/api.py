"""FastAPI application: the Alertmanager webhook receiver and issue listing."""

import html
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import structlog
from fastapi import FastAPI, HTTPException, Response
from fastapi.responses import HTMLResponse
from prometheus_client import CONTENT_TYPE_LATEST, Counter, generate_latest

from github_receiver import __version__
from github_receiver.config import Settings, get_settings
from github_receiver.github import GitHubClient, RemoteError
from github_receiver.logging import setup_logging
from github_receiver.models.alerts import AlertmanagerPayload
from github_receiver.models.issues import TrackedIssue
from github_receiver.reconciler import Reconciler

logger = structlog.get_logger(__name__)

# Prometheus metrics
NOTIFICATIONS_RECEIVED = Counter(
    "github_receiver_notifications_received_total",
    "Total number of Alertmanager notifications received",
    ["status"],
)

RECONCILE_ACTIONS = Counter(
    "github_receiver_reconcile_actions_total",
    "Total number of reconciliation actions taken",
    ["action"],
)

REMOTE_ERRORS = Counter(
    "github_receiver_remote_errors_total",
    "Total number of failed GitHub API operations",
    ["operation"],
)


def build_client(settings: Settings) -> GitHubClient:
    """Create a GitHub client from settings."""
    return GitHubClient(
        owner=settings.github_owner,
        repos=settings.github_repos,
        token=settings.github_token,
        base_url=settings.github_api_url,
        label=settings.alert_label,
        timeout=settings.request_timeout,
        max_pages=settings.max_pages,
    )


def create_app(
    settings: Settings | None = None,
    client: GitHubClient | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Application settings; defaults to the environment
        client: GitHub client; built from settings when omitted
    """
    settings = settings or get_settings()
    github = client or build_client(settings)
    reconciler = Reconciler(
        github,
        auto_close=settings.enable_auto_close,
        serialize_titles=settings.serialize_titles,
        lock_timeout=settings.lock_timeout,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Application lifespan manager."""
        setup_logging(settings)
        logger.info(
            "GitHub receiver started",
            owner=github.owner,
            repos=list(github.repos),
            auto_close=settings.enable_auto_close,
        )
        yield
        logger.info("GitHub receiver shutting down")
        await github.aclose()

    app = FastAPI(
        title="Alertmanager GitHub Receiver",
        description="Creates and closes GitHub issues for Alertmanager notifications",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.github = github
    app.state.reconciler = reconciler

    async def open_issues() -> list[TrackedIssue]:
        try:
            return await github.list_open_issues()
        except RemoteError as e:
            REMOTE_ERRORS.labels(operation=e.operation).inc()
            raise HTTPException(status_code=500, detail=str(e)) from e

    @app.post("/v1/receiver")
    async def receiver(payload: AlertmanagerPayload) -> dict[str, Any]:
        """
        Receive a notification from Alertmanager and reconcile its issue.

        Returns 500 when GitHub could not be reached so Alertmanager retries.
        """
        NOTIFICATIONS_RECEIVED.labels(status=payload.status.value).inc()

        alert = payload.to_alert_group()
        if not alert.title:
            logger.warning("Rejected notification without a title", group_key=payload.group_key)
            raise HTTPException(status_code=400, detail="Alert group has no title")

        try:
            result = await reconciler.reconcile(alert)
        except RemoteError as e:
            REMOTE_ERRORS.labels(operation=e.operation).inc()
            logger.error(
                "Reconciliation failed",
                title=alert.title,
                operation=e.operation,
                target=e.target,
                error=str(e),
            )
            raise HTTPException(status_code=500, detail=str(e)) from e

        RECONCILE_ACTIONS.labels(action=result.action.kind.value).inc()
        return {"status": "ok", **result.to_summary()}

    @app.get("/", response_class=HTMLResponse)
    async def list_issues_page() -> str:
        """List open alert issues for human inspection."""
        return render_issue_list(await open_issues())

    @app.get("/api/issues")
    async def list_issues() -> dict[str, Any]:
        """List open alert issues."""
        issues = await open_issues()
        return {"issues": [issue.to_summary() for issue in issues], "count": len(issues)}

    @app.get("/health")
    async def health() -> dict[str, Any]:
        """Liveness check. Does not contact GitHub."""
        return {"status": "healthy", "version": __version__}

    if settings.metrics_enabled:

        @app.get(settings.metrics_path)
        async def metrics() -> Response:
            """Prometheus metrics endpoint."""
            return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    return app


def render_issue_list(issues: list[TrackedIssue]) -> str:
    """Return the HTML page listing open issues."""
    rows = "\n".join(
        "<tr><td>{repo}</td><td><a href=\"{url}\">#{number}</a></td><td>{title}</td></tr>".format(
            repo=html.escape(issue.repository or ""),
            url=html.escape(issue.html_url, quote=True),
            number=issue.number,
            title=html.escape(issue.title),
        )
        for issue in issues
    )
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <title>Open alert issues</title>
    <style>
        body {{ font-family: -apple-system, BlinkMacSystemFont, "Segoe UI", Roboto, sans-serif; }}
        table {{ border-collapse: collapse; }}
        th, td {{ padding: 8px 12px; text-align: left; border-bottom: 1px solid #ddd; }}
    </style>
</head>
<body>
    <h2>Open Issues ({len(issues)})</h2>
    <table>
        <tr><th>Repository</th><th>Issue</th><th>Title</th></tr>
{rows}
    </table>
</body>
</html>
"""
