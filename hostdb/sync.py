"""
File-level manifest operations.

Each operation reads releases.json afresh, computes the new state and
writes it back in canonical form. They are safe to re-run, which is what
the publisher's retry path does after rebasing onto a newer manifest.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

from hostdb.github_client import GitHubReleaseClient
from hostdb.manifest import load_manifest
from hostdb.publisher import write_manifest
from hostdb.reconciler import ReconcileResult, Reconciler
from hostdb.updater import update_release

logger = logging.getLogger(__name__)


@dataclass
class SyncOutcome:
    """Result of a file-level operation."""

    result: ReconcileResult
    written: bool


def reconcile_file(
    path: Path,
    client: GitHubReleaseClient,
    known_databases: Optional[Iterable[str]] = None,
    refresh: bool = False,
    dry_run: bool = False,
) -> SyncOutcome:
    """
    Run a full reconciliation sweep over the manifest file.

    Raises:
        ManifestError: If the manifest cannot be loaded
        ApiError: If the release list cannot be fetched
    """
    manifest = load_manifest(path)
    reconciler = Reconciler(client, known_databases=known_databases, refresh=refresh)
    result = reconciler.reconcile(manifest)

    if dry_run:
        return SyncOutcome(result=result, written=False)
    return SyncOutcome(result=result, written=write_manifest(path, result.manifest, result.changed))


def update_file(
    path: Path,
    client: GitHubReleaseClient,
    database: str,
    version: str,
    tag: str,
    known_databases: Optional[Iterable[str]] = None,
    dry_run: bool = False,
) -> SyncOutcome:
    """
    Upsert one release into the manifest file, then sweep.

    The just-fetched tag is protected from removal during the sweep, since
    the release list may lag behind a release published moments ago.

    Raises:
        ManifestError: If the manifest cannot be loaded
        ApiError: If the release or the release list cannot be fetched
    """
    manifest = load_manifest(path)
    upserted = update_release(manifest, client, database, version, tag)

    logger.info("Running reconciliation to validate releases...")
    reconciler = Reconciler(client, known_databases=known_databases)
    swept = reconciler.reconcile(upserted.manifest, protected_tags={tag})
    result = upserted.merge(swept)

    if dry_run:
        return SyncOutcome(result=result, written=False)
    return SyncOutcome(result=result, written=write_manifest(path, result.manifest, result.changed))
