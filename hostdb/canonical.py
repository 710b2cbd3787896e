"""
Deterministic manifest ordering and serialization.

Ordering is an explicit sort step applied immediately before serialization,
never a property of dict insertion order:
- databases: key ascending
- versions: numeric-segment comparison, newest first
- platforms: key ascending

Version comparison splits on ``.`` and reads the leading digits of each
segment as an integer (0 when there are none), so pre-release suffixes such
as ``1.2.0-rc1`` compare equal to ``1.2.0``. Ties are broken by the raw
version string ascending so the order stays total.
"""

import json
import re
from functools import cmp_to_key
from typing import Any, Iterable

from hostdb.manifest import Manifest, PlatformAsset, VersionRelease

_LEADING_DIGITS = re.compile(r"^\d+")


def version_segments(version: str) -> list[int]:
    """Numeric segments of a version string (non-numeric segments are 0)."""
    segments = []
    for part in version.split("."):
        match = _LEADING_DIGITS.match(part)
        segments.append(int(match.group(0)) if match else 0)
    return segments


def compare_versions(a: str, b: str) -> int:
    """
    Compare two versions by numeric segments.

    Returns:
        Negative if a < b, positive if a > b, 0 if equal. Missing trailing
        segments count as 0.
    """
    seg_a = version_segments(a)
    seg_b = version_segments(b)
    for i in range(max(len(seg_a), len(seg_b))):
        va = seg_a[i] if i < len(seg_a) else 0
        vb = seg_b[i] if i < len(seg_b) else 0
        if va != vb:
            return va - vb
    return 0


def _descending(a: str, b: str) -> int:
    result = compare_versions(b, a)
    if result != 0:
        return result
    return (a > b) - (a < b)


def sort_versions_desc(versions: Iterable[str]) -> list[str]:
    """Sort version strings newest first."""
    return sorted(versions, key=cmp_to_key(_descending))


def _asset_to_json(asset: PlatformAsset) -> dict[str, Any]:
    return {"url": asset.url, "sha256": asset.sha256, "size": asset.size}


def release_to_json(release: VersionRelease) -> dict[str, Any]:
    """Ordered JSON form of one version entry."""
    return {
        "version": release.version,
        "releaseTag": release.release_tag,
        "releasedAt": release.released_at,
        "platforms": {
            platform: _asset_to_json(release.platforms[platform])
            for platform in sorted(release.platforms)
        },
    }


def canonicalize(manifest: Manifest) -> dict[str, Any]:
    """Build the ordered JSON document for a manifest."""
    document: dict[str, Any] = {}
    if manifest.schema_url is not None:
        document["$schema"] = manifest.schema_url
    document["repository"] = manifest.repository
    document["lastUpdated"] = manifest.last_updated

    databases: dict[str, Any] = {}
    for database in sorted(manifest.databases):
        versions = manifest.databases[database]
        databases[database] = {
            version: release_to_json(versions[version])
            for version in sort_versions_desc(versions)
        }
    document["databases"] = databases
    return document


def serialize_manifest(manifest: Manifest) -> str:
    """Serialize a manifest to its canonical text (2-space indent, trailing newline)."""
    return json.dumps(canonicalize(manifest), indent=2, ensure_ascii=False) + "\n"


def serialize_databases(manifest: Manifest) -> str:
    """Canonical text of the databases subtree only (ignores lastUpdated)."""
    return json.dumps(canonicalize(manifest)["databases"], indent=2, ensure_ascii=False)
