"""
Reconcile CLI command.

Runs the full reconciliation sweep: entries whose release no longer exists
on GitHub are removed, and releases missing from the manifest are added
once their assets verify against checksums.txt.
"""

from pathlib import Path
from typing import Optional

import click

from cli.common import (
    fail,
    known_databases,
    make_client,
    make_publisher,
    print_changes,
    print_summary,
    should_publish,
)
from hostdb.catalog import CatalogError
from hostdb.github_client import ApiError
from hostdb.manifest import ManifestError, load_manifest
from hostdb.publisher import PublishError
from hostdb.sync import reconcile_file


@click.command("reconcile")
@click.option(
    "--dry-run",
    is_flag=True,
    default=False,
    help="Show additions and removals without writing.",
)
@click.option(
    "--refresh",
    is_flag=True,
    default=False,
    help="Also rebuild existing entries and replace those whose assets changed.",
)
@click.option(
    "--manifest",
    "manifest_path",
    type=click.Path(path_type=Path),
    default=None,
    help="Path to releases.json.",
)
@click.option(
    "--databases",
    "databases_path",
    type=click.Path(path_type=Path),
    default=None,
    help="databases.json with the known database keys (stricter tag parsing).",
)
@click.option(
    "--publish/--no-publish",
    default=None,
    help="Commit and push the manifest (default: on when CI=true).",
)
@click.pass_context
def reconcile(
    ctx: click.Context,
    dry_run: bool,
    refresh: bool,
    manifest_path: Optional[Path],
    databases_path: Optional[Path],
    publish: Optional[bool],
) -> None:
    """Reconcile releases.json with the GitHub releases.

    \b
    Examples:
        hostdb-releases reconcile
        hostdb-releases reconcile --dry-run
        hostdb-releases reconcile --refresh --databases databases.json
    """
    config = ctx.obj["config"]
    config.override(manifest_path=manifest_path, databases_path=databases_path)
    path = config.manifest_path

    if dry_run:
        click.echo("Running in dry-run mode (no changes will be made)\n")

    try:
        known = known_databases(config)
        repository = load_manifest(path).repository

        with make_client(config, repository) as client:
            outcome = reconcile_file(path, client, known_databases=known, refresh=refresh, dry_run=dry_run)
            result = outcome.result

            if not result.changed:
                click.echo("All entries in releases.json match the GitHub releases")
            else:
                click.echo(f"Changes to {path}:")
                print_changes(result)

            if dry_run:
                click.echo("\nDry run complete. No changes made.")
            elif should_publish(publish):
                publisher = make_publisher(config, path)
                publisher.publish(
                    path.resolve(),
                    "chore: reconcile releases.json",
                    refresh=lambda: reconcile_file(
                        path, client, known_databases=known, refresh=refresh
                    ).written,
                )
    except (ManifestError, CatalogError, ApiError, PublishError) as e:
        fail(str(e))

    print_summary(result)
