"""
Unit tests for manifest reconciliation.

Covers additions, removals, checksum gating, recoverable skips,
refresh mode and idempotence.
"""

import pytest

from hostdb.canonical import serialize_manifest
from hostdb.github_client import ConnectionError as GitHubConnectionError
from hostdb.manifest import Manifest
from hostdb.reconciler import Reconciler, build_version_release

REDIS_X64 = "redis-8.4.0-linux-x64.tar.gz"
REDIS_ARM = "redis-8.4.0-darwin-arm64.tar.gz"


@pytest.fixture
def empty_manifest(empty_manifest_data) -> Manifest:
    return Manifest.model_validate(empty_manifest_data)


@pytest.fixture
def mysql_manifest(mysql_manifest_data) -> Manifest:
    return Manifest.model_validate(mysql_manifest_data)


def _tags_in(manifest: Manifest) -> set[str]:
    return set(manifest.release_tags())


class TestAdditions:
    """Tags present upstream but missing locally."""

    def test_addition_scenario(self, empty_manifest, make_release, checksums_for, digest, mock_release_client):
        """A verified linux-x64 asset becomes the only platform entry."""
        release = make_release("redis-8.4.0", [REDIS_X64])
        client = mock_release_client([release], {"redis-8.4.0": checksums_for([REDIS_X64])})

        result = Reconciler(client).reconcile(empty_manifest)

        entry = result.manifest.databases["redis"]["8.4.0"]
        assert list(entry.platforms) == ["linux-x64"]
        asset = entry.platforms["linux-x64"]
        assert asset.sha256 == digest(REDIS_X64)
        assert asset.url.endswith(f"/redis-8.4.0/{REDIS_X64}")
        assert asset.size == 1000
        assert entry.release_tag == "redis-8.4.0"
        assert entry.released_at == "2025-06-01T12:00:00Z"
        assert [c.tag for c in result.added] == ["redis-8.4.0"]
        assert result.changed

    def test_partial_asset_rejection_scenario(self, empty_manifest, make_release, digest, mock_release_client):
        """No ledger entry for the only asset: the release is not admitted."""
        release = make_release("redis-8.4.0", [REDIS_X64])
        client = mock_release_client([release], {"redis-8.4.0": f"{digest('other.tar.gz')}  other.tar.gz\n"})

        result = Reconciler(client).reconcile(empty_manifest)

        assert "redis" not in result.manifest.databases
        assert not result.changed
        assert any(w.filename == REDIS_X64 for w in result.warnings)

    def test_checksum_gating_admits_verified_subset(
        self, empty_manifest, make_release, checksums_for, mock_release_client
    ):
        """An unverified asset is dropped while its verified sibling is kept."""
        release = make_release("redis-8.4.0", [REDIS_X64, REDIS_ARM])
        client = mock_release_client([release], {"redis-8.4.0": checksums_for([REDIS_ARM])})

        result = Reconciler(client).reconcile(empty_manifest)

        platforms = result.manifest.databases["redis"]["8.4.0"].platforms
        assert set(platforms) == {"darwin-arm64"}
        assert [w.filename for w in result.warnings] == [REDIS_X64]

    def test_missing_checksums_file_skips_release(self, empty_manifest, make_release, mock_release_client):
        """Without checksums.txt nothing from the release is admitted."""
        client = mock_release_client([make_release("redis-8.4.0", [REDIS_X64])], {})

        result = Reconciler(client).reconcile(empty_manifest)

        assert result.manifest.databases == {}
        assert "checksums.txt" in result.warnings[0].message

    def test_unparseable_checksums_file_skips_release(self, empty_manifest, make_release, mock_release_client):
        """A checksums.txt with no valid lines counts as missing."""
        client = mock_release_client(
            [make_release("redis-8.4.0", [REDIS_X64])], {"redis-8.4.0": "not a checksum\n"}
        )

        result = Reconciler(client).reconcile(empty_manifest)

        assert result.manifest.databases == {}
        assert len(result.warnings) == 1

    def test_checksums_fetch_error_skips_release(self, empty_manifest, make_release, mock_release_client):
        """A network error on one checksums file only skips that release."""
        client = mock_release_client([make_release("redis-8.4.0", [REDIS_X64])])
        client.get_checksums_text.side_effect = GitHubConnectionError("timed out")

        result = Reconciler(client).reconcile(empty_manifest)

        assert result.manifest.databases == {}
        assert "timed out" in result.warnings[0].message

    def test_unparseable_tag_does_not_abort(
        self, empty_manifest, make_release, checksums_for, mock_release_client
    ):
        """A foreign tag is warned about and the sweep continues."""
        releases = [
            make_release("website-launch", ["site.zip"]),
            make_release("redis-8.4.0", [REDIS_X64]),
        ]
        client = mock_release_client(releases, {"redis-8.4.0": checksums_for([REDIS_X64])})

        result = Reconciler(client).reconcile(empty_manifest)

        assert _tags_in(result.manifest) == {"redis-8.4.0"}
        assert result.warnings[0].tag == "website-launch"

    def test_known_databases_restrict_parsing(
        self, empty_manifest, make_release, checksums_for, mock_release_client
    ):
        """With a catalogue, tags for unknown databases are skipped."""
        releases = [make_release("redis-8.4.0", [REDIS_X64]), make_release("tool-1.0.0", ["tool-1.0.0-linux-x64.tar.gz"])]
        client = mock_release_client(
            releases,
            {
                "redis-8.4.0": checksums_for([REDIS_X64]),
                "tool-1.0.0": checksums_for(["tool-1.0.0-linux-x64.tar.gz"]),
            },
        )

        result = Reconciler(client, known_databases={"redis"}).reconcile(empty_manifest)

        assert _tags_in(result.manifest) == {"redis-8.4.0"}

    def test_unclassified_assets_ignored_silently(
        self, empty_manifest, make_release, checksums_for, mock_release_client
    ):
        """Vendor extras neither warn nor block admission."""
        names = [REDIS_X64, "redis-8.4.0-sources.tar.gz"]
        client = mock_release_client([make_release("redis-8.4.0", names)], {"redis-8.4.0": checksums_for([REDIS_X64])})

        result = Reconciler(client).reconcile(empty_manifest)

        assert set(result.manifest.databases["redis"]["8.4.0"].platforms) == {"linux-x64"}
        assert result.warnings == []

    def test_drafts_are_ignored(self, empty_manifest, make_release, checksums_for, mock_release_client):
        """Unpublished releases are not part of the remote set."""
        draft = make_release("redis-8.4.0", [REDIS_X64], published_at=None, draft=True)
        client = mock_release_client([draft], {"redis-8.4.0": checksums_for([REDIS_X64])})

        result = Reconciler(client).reconcile(empty_manifest)

        assert not result.changed
        client.get_checksums_text.assert_not_called()

    def test_existing_version_under_other_tag_not_overwritten(
        self, empty_manifest_data, manifest_entry, make_release, checksums_for, mock_release_client
    ):
        """A second tag for an already-recorded version is skipped."""
        empty_manifest_data["databases"] = {
            "redis": {"8.4.0": manifest_entry("redis-8.4.0-build1", "8.4.0", {"linux-x64": REDIS_X64})}
        }
        manifest = Manifest.model_validate(empty_manifest_data)
        releases = [make_release("redis-8.4.0-build1", [REDIS_X64]), make_release("redis-8.4.0", [REDIS_X64])]
        client = mock_release_client(releases, {"redis-8.4.0": checksums_for([REDIS_X64])})

        result = Reconciler(client).reconcile(manifest)

        assert result.manifest.databases["redis"]["8.4.0"].release_tag == "redis-8.4.0-build1"
        assert result.added == []
        assert any("already recorded" in w.message for w in result.warnings)


class TestRemovals:
    """Tags present locally but gone upstream."""

    def test_stale_removal_scenario(self, mysql_manifest, mock_release_client):
        """The only mysql version disappears, and the mysql key with it."""
        client = mock_release_client([])

        result = Reconciler(client).reconcile(mysql_manifest)

        assert "mysql" not in result.manifest.databases
        assert [(c.database, c.version, c.tag) for c in result.removed] == [("mysql", "8.0.40", "mysql-8.0.40")]

    def test_removal_keeps_other_versions(self, mysql_manifest_data, manifest_entry, make_release, mock_release_client):
        """Removing one version leaves the rest of the table."""
        mysql_manifest_data["databases"]["mysql"]["8.4.3"] = manifest_entry(
            "mysql-8.4.3", "8.4.3", {"linux-x64": "mysql-8.4.3-linux-x64.tar.gz"}
        )
        manifest = Manifest.model_validate(mysql_manifest_data)
        client = mock_release_client([make_release("mysql-8.4.3", ["mysql-8.4.3-linux-x64.tar.gz"])])

        result = Reconciler(client).reconcile(manifest)

        assert list(result.manifest.databases["mysql"]) == ["8.4.3"]

    def test_protected_tags_survive(self, mysql_manifest, mock_release_client):
        """A tag known to exist is kept even if the list omits it."""
        client = mock_release_client([])

        result = Reconciler(client).reconcile(mysql_manifest, protected_tags={"mysql-8.0.40"})

        assert "mysql" in result.manifest.databases
        assert result.removed == []

    def test_input_manifest_not_modified(self, mysql_manifest, mock_release_client):
        """Reconciliation works on a copy."""
        Reconciler(mock_release_client([])).reconcile(mysql_manifest)
        assert "mysql" in mysql_manifest.databases

    def test_list_failure_propagates(self, mysql_manifest, mock_release_client):
        """A failed release listing aborts instead of removing everything."""
        client = mock_release_client([])
        client.list_releases.side_effect = GitHubConnectionError("connection refused")

        with pytest.raises(GitHubConnectionError):
            Reconciler(client).reconcile(mysql_manifest)


class TestConsistencyAndRefresh:
    """Entry flagging and refresh mode."""

    def test_inconsistent_entry_flagged(self, empty_manifest_data, manifest_entry, make_release, mock_release_client):
        """An entry whose tag is not {database}-{version} is reported."""
        empty_manifest_data["databases"] = {
            "mysql": {"8.0.40": manifest_entry("mysql-8.0.41", "8.0.40", {"linux-x64": "m.tar.gz"})}
        }
        manifest = Manifest.model_validate(empty_manifest_data)
        client = mock_release_client([make_release("mysql-8.0.41", ["m-linux-x64.tar.gz"])])

        result = Reconciler(client).reconcile(manifest)

        assert "mysql" in result.manifest.databases
        assert "unreconcilable" in result.warnings[0].message

    def test_refresh_replaces_reuploaded_asset(
        self, mysql_manifest, make_release, mock_release_client
    ):
        """Same tag, new checksum: the whole entry is replaced."""
        name = "mysql-8.0.40-linux-x64.tar.gz"
        new_digest = "f" * 64
        client = mock_release_client(
            [make_release("mysql-8.0.40", [name])], {"mysql-8.0.40": f"{new_digest}  {name}\n"}
        )

        without = Reconciler(client).reconcile(mysql_manifest)
        result = Reconciler(client, refresh=True).reconcile(mysql_manifest)

        assert not without.changed
        assert result.manifest.databases["mysql"]["8.0.40"].platforms["linux-x64"].sha256 == new_digest
        assert [c.tag for c in result.updated] == ["mysql-8.0.40"]

    def test_refresh_keeps_entry_when_unverifiable(self, mysql_manifest, make_release, mock_release_client):
        """A refresh that cannot verify anything leaves the entry alone."""
        client = mock_release_client([make_release("mysql-8.0.40", ["mysql-8.0.40-linux-x64.tar.gz"])], {})

        result = Reconciler(client, refresh=True).reconcile(mysql_manifest)

        assert result.manifest.databases == mysql_manifest.databases
        assert not result.changed


class TestIdempotence:
    """Re-running against unchanged remote state."""

    def test_second_run_is_noop(self, mysql_manifest, make_release, checksums_for, mock_release_client):
        """The second pass changes nothing and serializes identically."""
        releases = [make_release("redis-8.4.0", [REDIS_X64, REDIS_ARM])]
        client = mock_release_client(releases, {"redis-8.4.0": checksums_for([REDIS_X64, REDIS_ARM])})
        reconciler = Reconciler(client)

        first = reconciler.reconcile(mysql_manifest)
        second = reconciler.reconcile(first.manifest)

        assert first.changed
        assert not second.changed
        assert serialize_manifest(second.manifest) == serialize_manifest(first.manifest)


class TestBuildVersionRelease:
    """Tests for entry synthesis from one release."""

    def test_url_must_name_asset(self, make_release, digest):
        """A digest is never attached to a URL for a different file."""
        release = make_release("redis-8.4.0", [REDIS_X64])
        bad_asset = release.assets[0].__class__(
            name=REDIS_X64, url="https://example.com/download/other.tar.gz", size=10
        )
        release = release.__class__(tag=release.tag, published_at=release.published_at, assets=(bad_asset,))
        warnings = []

        entry = build_version_release(release, "8.4.0", {REDIS_X64: digest(REDIS_X64)}, warnings)

        assert entry is None
        assert any("URL" in w.message for w in warnings)

    def test_duplicate_platform_keeps_first(self, make_release, checksums_for):
        """Two archives for one platform: the first wins, with a warning."""
        names = [REDIS_X64, "redis-8.4.0-linux-x64.zip"]
        release = make_release("redis-8.4.0", names)
        warnings = []
        ledger = {n: d for d, n in (line.split("  ") for line in checksums_for(names).splitlines())}

        entry = build_version_release(release, "8.4.0", ledger, warnings)

        assert entry.platforms["linux-x64"].url.endswith(REDIS_X64)
        assert warnings[0].filename == "redis-8.4.0-linux-x64.zip"


class TestSharedReleaseTags:
    """Entries that point at the same releaseTag."""

    @pytest.fixture
    def shared_tag_manifest(self, mysql_manifest_data, manifest_entry) -> Manifest:
        mysql_manifest_data["databases"]["mysql"]["8.0.40-1"] = manifest_entry(
            "mysql-8.0.40", "8.0.40-1", {"linux-x64": "mysql-8.0.40-linux-x64.tar.gz"}
        )
        return Manifest.model_validate(mysql_manifest_data)

    def test_shared_tag_flagged(self, shared_tag_manifest, make_release, mock_release_client):
        """A releaseTag used by two entries is reported."""
        client = mock_release_client([make_release("mysql-8.0.40", ["mysql-8.0.40-linux-x64.tar.gz"])])

        result = Reconciler(client).reconcile(shared_tag_manifest)

        assert any(
            "shared by mysql/8.0.40 and mysql/8.0.40-1" in w.message for w in result.warnings
        )

    def test_stale_shared_tag_removes_every_entry(self, shared_tag_manifest, mock_release_client):
        """When the tag disappears upstream, no entry carrying it survives."""
        result = Reconciler(mock_release_client([])).reconcile(shared_tag_manifest)

        assert "mysql" not in result.manifest.databases
        assert sorted(c.version for c in result.removed) == ["8.0.40", "8.0.40-1"]
