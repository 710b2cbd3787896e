"""
Pytest configuration and fixtures for the release manifest tools.

Provides sample manifests, remote release builders and a mock GitHub
client backed by in-memory releases and checksum files.
"""

import hashlib
import json
from pathlib import Path
from typing import Optional
from unittest.mock import MagicMock

import pytest

from hostdb.github_client import NotFoundError, RemoteAsset, RemoteRelease


REPOSITORY = "hostdb/hostdb"
PUBLISHED_AT = "2025-06-01T12:00:00Z"


# ============================================================================
# Helpers
# ============================================================================


def _digest(name: str) -> str:
    """Deterministic fake sha256 for an asset name."""
    return hashlib.sha256(name.encode("utf-8")).hexdigest()


def _asset_url(tag: str, name: str) -> str:
    return f"https://github.com/{REPOSITORY}/releases/download/{tag}/{name}"


def _make_release(
    tag: str,
    names: list[str],
    published_at: Optional[str] = PUBLISHED_AT,
    draft: bool = False,
) -> RemoteRelease:
    """Build a RemoteRelease with one asset per name (plus checksums.txt)."""
    assets = [RemoteAsset(name=n, url=_asset_url(tag, n), size=1000 + i) for i, n in enumerate(names)]
    assets.append(RemoteAsset(name="checksums.txt", url=_asset_url(tag, "checksums.txt"), size=200))
    return RemoteRelease(tag=tag, published_at=published_at, assets=tuple(assets), draft=draft)


def _checksums_for(names: list[str]) -> str:
    """checksums.txt body covering the given asset names."""
    return "".join(f"{_digest(n)}  {n}\n" for n in names)


def _manifest_entry(tag: str, version: str, platforms: dict[str, str]) -> dict:
    """JSON for one VersionRelease; platforms maps platform -> asset name."""
    return {
        "version": version,
        "releaseTag": tag,
        "releasedAt": PUBLISHED_AT,
        "platforms": {
            platform: {"url": _asset_url(tag, name), "sha256": _digest(name), "size": 1000}
            for platform, name in platforms.items()
        },
    }


# ============================================================================
# Manifest Fixtures
# ============================================================================


@pytest.fixture
def empty_manifest_data() -> dict:
    """A manifest with no databases."""
    return {
        "$schema": "./schemas/releases.schema.json",
        "repository": REPOSITORY,
        "lastUpdated": None,
        "databases": {},
    }


@pytest.fixture
def mysql_manifest_data(empty_manifest_data: dict) -> dict:
    """A manifest holding mysql 8.0.40 (linux-x64 only)."""
    data = dict(empty_manifest_data)
    data["databases"] = {
        "mysql": {
            "8.0.40": _manifest_entry(
                "mysql-8.0.40", "8.0.40", {"linux-x64": "mysql-8.0.40-linux-x64.tar.gz"}
            )
        }
    }
    return data


@pytest.fixture
def write_manifest_file(tmp_path: Path):
    """Write manifest JSON to tmp_path/releases.json and return the path."""

    def _write(data: dict) -> Path:
        path = tmp_path / "releases.json"
        path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
        return path

    return _write


# ============================================================================
# Mock GitHub Client Fixtures
# ============================================================================


@pytest.fixture
def mock_release_client():
    """
    Build a mock GitHubReleaseClient.

    Args (of the returned factory):
        releases: RemoteRelease list returned by list_releases
        checksums: tag -> checksums.txt body; missing tags raise NotFoundError
    """

    def _build(releases: list[RemoteRelease], checksums: Optional[dict[str, str]] = None) -> MagicMock:
        checksums = checksums or {}
        by_tag = {r.tag: r for r in releases}

        def get_release(tag: str) -> RemoteRelease:
            if tag not in by_tag:
                raise NotFoundError(f"Not found: {tag}", status_code=404)
            return by_tag[tag]

        def get_checksums_text(tag: str) -> str:
            if tag not in checksums:
                raise NotFoundError(f"Not found: {tag}/checksums.txt", status_code=404)
            return checksums[tag]

        client = MagicMock()
        client.repository = REPOSITORY
        client.list_releases.return_value = list(releases)
        client.get_release.side_effect = get_release
        client.get_checksums_text.side_effect = get_checksums_text
        client.__enter__.return_value = client
        return client

    return _build


# ============================================================================
# Environment Fixtures
# ============================================================================


@pytest.fixture
def clean_environment(monkeypatch) -> None:
    """
    Clean environment variables that might affect tests.
    """
    env_vars_to_remove = [
        "HOSTDB_CONFIG_PATH",
        "HOSTDB_MANIFEST_PATH",
        "HOSTDB_DATABASES_PATH",
        "HOSTDB_API_URL",
        "HOSTDB_DOWNLOAD_URL",
        "HOSTDB_GIT_BRANCH",
        "HOSTDB_LOG_LEVEL",
        "GITHUB_TOKEN",
        "CI",
    ]
    for var in env_vars_to_remove:
        monkeypatch.delenv(var, raising=False)


# ============================================================================
# Helper Fixtures
# ============================================================================


@pytest.fixture
def digest():
    """Fake sha256 for an asset name."""
    return _digest


@pytest.fixture
def make_release():
    """Factory for RemoteRelease objects."""
    return _make_release


@pytest.fixture
def checksums_for():
    """Factory for checksums.txt bodies."""
    return _checksums_for


@pytest.fixture
def manifest_entry():
    """Factory for VersionRelease JSON."""
    return _manifest_entry
