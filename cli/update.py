"""
Update CLI command.

Records one freshly published release in releases.json and then runs the
reconciliation sweep. Called by the release workflow right after the
GitHub release is created.
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
from hostdb.sync import update_file


@click.command("update")
@click.option("--database", required=True, help="Database key (e.g. mysql).")
@click.option("--version", "version", required=True, help="Version string (e.g. 8.4.3).")
@click.option("--tag", required=True, help="GitHub release tag (e.g. mysql-8.4.3).")
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
def update(
    ctx: click.Context,
    database: str,
    version: str,
    tag: str,
    manifest_path: Optional[Path],
    databases_path: Optional[Path],
    publish: Optional[bool],
) -> None:
    """Record a published release in releases.json.

    \b
    Examples:
        hostdb-releases update --database mysql --version 8.4.3 --tag mysql-8.4.3
    """
    config = ctx.obj["config"]
    config.override(manifest_path=manifest_path, databases_path=databases_path)
    path = config.manifest_path

    click.echo(f"Updating releases.json for {database} {version} ({tag})")

    try:
        known = known_databases(config)
        repository = load_manifest(path).repository

        with make_client(config, repository) as client:
            outcome = update_file(path, client, database, version, tag, known_databases=known)
            result = outcome.result

            if result.changed:
                click.echo(f"Changes to {path}:")
                print_changes(result)
            else:
                click.echo("releases.json is already up to date")

            if should_publish(publish):
                publisher = make_publisher(config, path)
                publisher.publish(
                    path.resolve(),
                    f"chore: update releases.json for {tag}",
                    refresh=lambda: update_file(
                        path, client, database, version, tag, known_databases=known
                    ).written,
                )
    except (ManifestError, CatalogError, ApiError, PublishError) as e:
        fail(str(e))

    print_summary(result)
