"""
Single-release update path.

Used by the per-database release workflow right after it publishes a
release: the database, version and tag are already known, so only that one
release is fetched and upserted. The caller follows up with a full
reconciliation sweep, since the workflow knows nothing about releases that
may have been deleted in the meantime.
"""

import logging

from hostdb.github_client import GitHubReleaseClient
from hostdb.manifest import Manifest, ManifestError, is_valid_database_key
from hostdb.reconciler import (
    ReconcileResult,
    ReleaseChange,
    SyncWarning,
    build_version_release,
    fetch_checksum_ledger,
)
from hostdb.tags import compose_tag

logger = logging.getLogger(__name__)


def update_release(
    manifest: Manifest,
    client: GitHubReleaseClient,
    database: str,
    version: str,
    tag: str,
) -> ReconcileResult:
    """
    Fetch one release and upsert it into a copy of the manifest.

    An existing entry for database/version is replaced wholesale. If no
    asset of the release can be verified, the manifest is left unchanged.

    Args:
        manifest: Current manifest (not modified)
        client: GitHub client for the manifest's repository
        database: Database key, e.g. ``mysql``
        version: Version string, e.g. ``8.4.3``
        tag: Release tag, normally ``{database}-{version}``

    Returns:
        ReconcileResult describing the upsert

    Raises:
        ManifestError: If database is not a valid database key
        ApiError: If the release cannot be fetched
    """
    if not is_valid_database_key(database):
        raise ManifestError(
            f"invalid database key '{database}' (keys are non-empty and lower-case)"
        )

    result = ReconcileResult(manifest=manifest.model_copy(deep=True))
    warnings: list[SyncWarning] = result.warnings

    expected = compose_tag(database, version)
    if tag != expected:
        logger.warning(f"{tag}: tag does not match {expected}; entry will be flagged")
        warnings.append(SyncWarning(tag=tag, message=f"tag does not match {expected}"))

    logger.info(f"Fetching release {tag} from GitHub...")
    release = client.get_release(tag)

    if not release.is_published:
        logger.warning(f"{tag}: release is not published, nothing to record")
        warnings.append(SyncWarning(tag=tag, message="release is not published"))
        return result

    logger.info("Fetching checksums...")
    ledger = fetch_checksum_ledger(client, tag, warnings)
    if ledger is None:
        return result

    entry = build_version_release(release, version, ledger, warnings)
    if entry is None:
        return result

    current = result.manifest.databases.get(database, {}).get(version)
    change = ReleaseChange(database, version, tag)
    if current is None:
        result.added.append(change)
    elif current != entry:
        result.updated.append(change)
    else:
        logger.info(f"{database}/{version} is already up to date")

    result.manifest.upsert(database, entry)
    logger.info(f"Platforms: {', '.join(sorted(entry.platforms))}")
    return result
