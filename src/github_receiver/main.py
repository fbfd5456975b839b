"""Command line entry point for the GitHub receiver."""

import asyncio
import sys
from typing import Any, Optional

import click
import uvicorn

from github_receiver.api import build_client, create_app
from github_receiver.config import Settings, get_settings
from github_receiver.github import RemoteError
from github_receiver.logging import setup_logging
from github_receiver.models.issues import TrackedIssue
from github_receiver.output import print_error, print_output

USAGE = """
The receiver requires a GitHub --authtoken, the target --owner, and at least
one --repo. Each option can also be set through GITHUB_RECEIVER_* environment
variables.
"""


def apply_overrides(
    settings: Settings,
    authtoken: Optional[str],
    owner: Optional[str],
    repos: tuple[str, ...],
    label: Optional[str] = None,
) -> Settings:
    """Return settings with command line values taking precedence."""
    update: dict[str, Any] = {}
    if authtoken:
        update["github_token"] = authtoken
    if owner:
        update["github_owner"] = owner
    if repos:
        update["github_repos"] = list(repos)
    if label:
        update["alert_label"] = label
    return settings.model_copy(update=update)


def require(ctx: click.Context, settings: Settings) -> None:
    """Exit with usage when required settings are missing."""
    missing = settings.validate_required()
    if missing:
        print_error(f"Missing required settings: {', '.join(missing)}")
        click.echo(USAGE, err=True)
        click.echo(ctx.get_help(), err=True)
        ctx.exit(1)


@click.group()
@click.version_option(package_name="alertmanager-github-receiver")
def cli() -> None:
    """Create and close GitHub issues for Alertmanager notifications."""
    pass


@cli.command()
@click.option("--authtoken", help="OAuth2 token for access to the GitHub API.")
@click.option("--owner", help="The GitHub user or organization name.")
@click.option(
    "--repo",
    "repos",
    multiple=True,
    help="Repository where issues are created. Repeat for more repositories.",
)
@click.option("--label", help="Label applied to and searched for on alert issues.")
@click.option(
    "--enable-auto-close/--disable-auto-close",
    default=None,
    help="Once an alert stops firing, automatically close open issues.",
)
@click.option("--host", help="Address to listen on.")
@click.option("--port", type=int, help="Port to listen on.")
@click.pass_context
def serve(
    ctx: click.Context,
    authtoken: Optional[str],
    owner: Optional[str],
    repos: tuple[str, ...],
    label: Optional[str],
    enable_auto_close: Optional[bool],
    host: Optional[str],
    port: Optional[int],
) -> None:
    """Run the webhook receiver."""
    settings = apply_overrides(get_settings(), authtoken, owner, repos, label)
    update: dict[str, Any] = {}
    if enable_auto_close is not None:
        update["enable_auto_close"] = enable_auto_close
    if host:
        update["host"] = host
    if port:
        update["port"] = port
    settings = settings.model_copy(update=update)
    require(ctx, settings)

    app = create_app(settings)
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


@cli.command()
@click.option("--authtoken", help="OAuth2 token for access to the GitHub API.")
@click.option("--owner", help="The GitHub user or organization name.")
@click.option("--repo", "repos", multiple=True, help="Configured repository.")
@click.option("--label", help="Label searched for on alert issues.")
@click.option(
    "--format",
    "-f",
    type=click.Choice(["json", "yaml", "table"]),
    default="table",
    help="Output format",
)
@click.pass_context
def issues(
    ctx: click.Context,
    authtoken: Optional[str],
    owner: Optional[str],
    repos: tuple[str, ...],
    label: Optional[str],
    format: str,
) -> None:
    """List open alert issues."""
    settings = apply_overrides(get_settings(), authtoken, owner, repos, label)
    require(ctx, settings)
    setup_logging(settings, stream=sys.stderr)

    try:
        found = asyncio.run(fetch_open_issues(settings))
    except RemoteError as e:
        print_error(f"Failed to list issues: {e}")
        raise click.Abort()

    print_output([issue.to_summary() for issue in found], format)


async def fetch_open_issues(settings: Settings) -> list[TrackedIssue]:
    """List open alert issues with a short-lived client."""
    client = build_client(settings)
    try:
        return await client.list_open_issues()
    finally:
        await client.aclose()


def main() -> None:
    """Main entry point for the CLI."""
    try:
        cli()
    except Exception as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
