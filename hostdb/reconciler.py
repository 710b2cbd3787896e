"""
Manifest reconciliation against the remote release set.

Compares the release tags recorded in the manifest with the tags published
on GitHub and applies the difference:
- tags gone upstream are removed from the manifest
- tags new upstream are synthesized from the release assets and that
  release's checksums.txt

Only assets with a verified checksum are admitted. A release whose
checksums file is missing or unparseable is skipped entirely, and a release
left with no verified platform asset is not written.

Problems with individual tags or assets never abort the sweep; they are
collected as SyncWarning entries and logged.
"""

import logging
from dataclasses import dataclass, field
from typing import AbstractSet, Iterable, Optional
from urllib.parse import unquote, urlsplit

from hostdb.checksums import parse_checksums
from hostdb.github_client import ApiError, GitHubReleaseClient, NotFoundError, RemoteRelease
from hostdb.manifest import Manifest, PlatformAsset, VersionRelease
from hostdb.platforms import CHECKSUMS_FILENAME, classify_asset
from hostdb.tags import UnparseableTag, compose_tag, parse_tag

logger = logging.getLogger(__name__)


# ============================================================================
# Result Types
# ============================================================================


@dataclass(frozen=True)
class SyncWarning:
    """A recoverable problem that narrowed what was admitted."""

    tag: str
    message: str
    filename: Optional[str] = None

    def __str__(self) -> str:
        if self.filename:
            return f"{self.tag}: {self.filename}: {self.message}"
        return f"{self.tag}: {self.message}"


@dataclass(frozen=True)
class ReleaseChange:
    """A manifest entry that was added, removed or replaced."""

    database: str
    version: str
    tag: str


@dataclass
class ReconcileResult:
    """Outcome of one reconciliation pass."""

    manifest: Manifest
    added: list[ReleaseChange] = field(default_factory=list)
    removed: list[ReleaseChange] = field(default_factory=list)
    updated: list[ReleaseChange] = field(default_factory=list)
    warnings: list[SyncWarning] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        """True if any entry was added, removed or replaced."""
        return bool(self.added or self.removed or self.updated)

    def merge(self, other: "ReconcileResult") -> "ReconcileResult":
        """Combine with a later pass over the same manifest."""
        return ReconcileResult(
            manifest=other.manifest,
            added=self.added + other.added,
            removed=self.removed + other.removed,
            updated=self.updated + other.updated,
            warnings=self.warnings + other.warnings,
        )


def _warn(
    warnings: list[SyncWarning],
    tag: str,
    message: str,
    filename: Optional[str] = None,
) -> None:
    warning = SyncWarning(tag=tag, message=message, filename=filename)
    logger.warning(str(warning))
    warnings.append(warning)


# ============================================================================
# Entry Synthesis
# ============================================================================


def fetch_checksum_ledger(
    client: GitHubReleaseClient,
    tag: str,
    warnings: list[SyncWarning],
) -> Optional[dict[str, str]]:
    """
    Download and parse a release's checksums.txt.

    Returns:
        The filename to digest mapping, or None (with a warning recorded)
        if the file is missing, unreachable, or has no parseable lines
    """
    try:
        text = client.get_checksums_text(tag)
    except NotFoundError:
        _warn(warnings, tag, f"no {CHECKSUMS_FILENAME}, skipping release")
        return None
    except ApiError as e:
        _warn(warnings, tag, f"could not fetch {CHECKSUMS_FILENAME} ({e}), skipping release")
        return None

    ledger = parse_checksums(text)
    if not ledger:
        _warn(warnings, tag, f"{CHECKSUMS_FILENAME} has no valid entries, skipping release")
        return None
    return ledger


def _url_filename(url: str) -> str:
    return unquote(urlsplit(url).path.rsplit("/", 1)[-1])


def build_version_release(
    release: RemoteRelease,
    version: str,
    ledger: dict[str, str],
    warnings: list[SyncWarning],
) -> Optional[VersionRelease]:
    """
    Build a manifest entry from a release and its checksum ledger.

    Assets that match no platform are ignored. Assets that match a platform
    but have no ledger entry are skipped with a warning.

    Returns:
        The entry, or None if no platform asset could be verified
    """
    tag = release.tag
    platforms: dict[str, PlatformAsset] = {}

    for asset in release.assets:
        if asset.name == CHECKSUMS_FILENAME:
            continue

        platform = classify_asset(asset.name)
        if platform is None:
            logger.debug(f"{tag}: ignoring unclassified asset {asset.name}")
            continue

        sha256 = ledger.get(asset.name)
        if sha256 is None:
            _warn(warnings, tag, "no checksum found", filename=asset.name)
            continue

        if _url_filename(asset.url) != asset.name:
            _warn(warnings, tag, f"download URL does not name the asset: {asset.url}", filename=asset.name)
            continue

        if platform in platforms:
            _warn(warnings, tag, f"second asset for {platform}, keeping the first", filename=asset.name)
            continue

        platforms[platform] = PlatformAsset(url=asset.url, sha256=sha256, size=asset.size)
        logger.info(f"  {platform}: {asset.name}")

    if not platforms:
        _warn(warnings, tag, "no verified platform assets, release not admitted")
        return None

    return VersionRelease(
        version=version,
        release_tag=tag,
        released_at=release.published_at or "",
        platforms=platforms,
    )


# ============================================================================
# Reconciler Class
# ============================================================================


class Reconciler:
    """
    Set reconciliation between a manifest and the remote releases.

    Attributes:
        client: GitHub client for the manifest's repository
        known_databases: Optional closed set of database keys for tag parsing
        refresh: Also rebuild entries for tags present on both sides
    """

    def __init__(
        self,
        client: GitHubReleaseClient,
        known_databases: Optional[Iterable[str]] = None,
        refresh: bool = False,
    ):
        self.client = client
        self.known_databases = frozenset(known_databases) if known_databases is not None else None
        self.refresh = refresh

    def reconcile(
        self,
        manifest: Manifest,
        remote_releases: Optional[list[RemoteRelease]] = None,
        protected_tags: AbstractSet[str] = frozenset(),
    ) -> ReconcileResult:
        """
        Reconcile a manifest with the remote release set.

        The input manifest is not modified; the result carries a new one.

        Args:
            manifest: Current manifest
            remote_releases: Release list to use instead of fetching one
            protected_tags: Tags known to exist even if the list omits them

        Returns:
            ReconcileResult with the updated manifest and what changed

        Raises:
            ApiError: If the release list cannot be fetched
        """
        if remote_releases is None:
            remote_releases = self.client.list_releases()

        result = ReconcileResult(manifest=manifest.model_copy(deep=True))
        updated = result.manifest

        remote: dict[str, RemoteRelease] = {}
        for release in remote_releases:
            if release.is_published:
                remote[release.tag] = release
            else:
                logger.debug(f"Ignoring unpublished release {release.tag}")

        entries = updated.entries()
        local = updated.release_tags()
        self._flag_inconsistent_entries(entries, result.warnings)

        # Removals first, so a reappearing tag is always added fresh
        stale = set(local) - set(remote) - set(protected_tags)
        for tag, database, version in sorted(e for e in entries if e[0] in stale):
            updated.remove(database, version)
            result.removed.append(ReleaseChange(database, version, tag))
            logger.info(f"Removed stale entry {database}/{version} ({tag})")

        for tag in sorted(set(remote) - set(local)):
            entry = self._synthesize(remote[tag], updated, result.warnings)
            if entry is None:
                continue
            database, release = entry
            updated.upsert(database, release)
            result.added.append(ReleaseChange(database, release.version, tag))
            logger.info(f"Added {database}/{release.version} ({tag})")

        if self.refresh:
            for tag in sorted(set(remote) & set(local)):
                self._refresh_entry(remote[tag], local[tag], result)

        return result

    def _flag_inconsistent_entries(
        self,
        entries: list[tuple[str, str, str]],
        warnings: list[SyncWarning],
    ) -> None:
        seen: dict[str, tuple[str, str]] = {}
        for tag, database, version in sorted(entries):
            if tag in seen:
                first_database, first_version = seen[tag]
                _warn(
                    warnings,
                    tag,
                    f"releaseTag shared by {first_database}/{first_version} and "
                    f"{database}/{version}",
                )
            else:
                seen[tag] = (database, version)

            expected = compose_tag(database, version)
            if tag != expected:
                _warn(
                    warnings,
                    tag,
                    f"unreconcilable entry {database}/{version} (expected tag {expected})",
                )

    def _synthesize(
        self,
        release: RemoteRelease,
        manifest: Manifest,
        warnings: list[SyncWarning],
    ) -> Optional[tuple[str, VersionRelease]]:
        parsed = parse_tag(release.tag, self.known_databases)
        if isinstance(parsed, UnparseableTag):
            _warn(warnings, release.tag, f"cannot parse tag ({parsed.reason}), skipping")
            return None

        existing = manifest.databases.get(parsed.database, {}).get(parsed.version)
        if existing is not None:
            _warn(
                warnings,
                release.tag,
                f"{parsed.database}/{parsed.version} is already recorded under "
                f"tag {existing.release_tag}, skipping",
            )
            return None

        ledger = fetch_checksum_ledger(self.client, release.tag, warnings)
        if ledger is None:
            return None

        entry = build_version_release(release, parsed.version, ledger, warnings)
        if entry is None:
            return None
        return parsed.database, entry

    def _refresh_entry(
        self,
        release: RemoteRelease,
        location: tuple[str, str],
        result: ReconcileResult,
    ) -> None:
        database, version = location
        if compose_tag(database, version) != release.tag:
            return

        ledger = fetch_checksum_ledger(self.client, release.tag, result.warnings)
        if ledger is None:
            return

        rebuilt = build_version_release(release, version, ledger, result.warnings)
        if rebuilt is None:
            return

        current = result.manifest.databases[database][version]
        if rebuilt != current:
            result.manifest.upsert(database, rebuilt)
            result.updated.append(ReleaseChange(database, version, release.tag))
            logger.info(f"Replaced {database}/{version} ({release.tag})")
