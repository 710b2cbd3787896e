"""
Helpers shared by the CLI commands.
"""

import os
import sys
from pathlib import Path
from typing import NoReturn, Optional

import click

from hostdb.catalog import load_database_keys
from hostdb.config import SyncConfig
from hostdb.github_client import GitHubReleaseClient
from hostdb.publisher import GitPublisher
from hostdb.reconciler import ReconcileResult


def fail(message: str) -> NoReturn:
    """Print an error and exit with status 1."""
    click.echo(click.style("Error: ", fg="red", bold=True) + message)
    sys.exit(1)


def should_publish(publish: Optional[bool]) -> bool:
    """Resolve --publish/--no-publish, defaulting to on in CI."""
    if publish is not None:
        return publish
    return os.environ.get("CI", "").lower() == "true"


def known_databases(config: SyncConfig) -> Optional[frozenset[str]]:
    """Database keys from databases.json, if one is configured."""
    if config.databases_path is None:
        return None
    return load_database_keys(config.databases_path)


def make_client(config: SyncConfig, repository: str) -> GitHubReleaseClient:
    """Create a GitHub client for the manifest's repository."""
    return GitHubReleaseClient(
        repository=repository,
        token=config.github_token,
        api_url=config.api_url,
        download_url=config.download_url,
        timeout=config.request_timeout_seconds,
        page_size=config.page_size,
    )


def make_publisher(config: SyncConfig, manifest_path: Path) -> GitPublisher:
    """Create a git publisher for the repository holding the manifest."""
    return GitPublisher(
        repo_dir=manifest_path.resolve().parent,
        remote=config.git_remote,
        branch=config.git_branch,
        attempts=config.push_attempts,
        base_delay=config.retry_base_delay_seconds,
        user_name=config.commit_user_name,
        user_email=config.commit_user_email,
    )


def print_changes(result: ReconcileResult) -> None:
    """List added, replaced and removed entries."""
    for change in result.removed:
        click.echo(click.style("  - ", fg="red") + f"{change.database}/{change.version} ({change.tag})")
    for change in result.added:
        click.echo(click.style("  + ", fg="green") + f"{change.database}/{change.version} ({change.tag})")
    for change in result.updated:
        click.echo(click.style("  ~ ", fg="yellow") + f"{change.database}/{change.version} ({change.tag})")


def print_summary(result: ReconcileResult) -> None:
    """Print the end-of-run counts."""
    click.echo()
    summary = (
        f"Added: {len(result.added)}, Removed: {len(result.removed)}, "
        f"Updated: {len(result.updated)}, Warnings: {len(result.warnings)}"
    )
    if result.warnings:
        click.echo(click.style("Summary: ", fg="yellow", bold=True) + summary)
        for warning in result.warnings:
            click.echo(f"  ! {warning}")
    else:
        click.echo(click.style("Summary: ", fg="green", bold=True) + summary)
