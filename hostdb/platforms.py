"""
Asset filename classification.

Maps a release asset filename to one of the fixed platform identifiers by
substring match. The identifiers are mutually substring-disjoint, so the
first match is the only match. Adding a platform requires re-checking that
property (see ``platforms_are_disjoint``).
"""

from typing import Optional

# Stable classification order
PLATFORMS: tuple[str, ...] = (
    "linux-x64",
    "linux-arm64",
    "darwin-x64",
    "darwin-arm64",
    "win32-x64",
)

CHECKSUMS_FILENAME = "checksums.txt"


def classify_asset(filename: str) -> Optional[str]:
    """
    Get the platform an asset filename belongs to.

    Args:
        filename: Release asset name, e.g. ``redis-8.4.0-linux-x64.tar.gz``

    Returns:
        Platform identifier, or None if the file matches no platform
    """
    for platform in PLATFORMS:
        if platform in filename:
            return platform
    return None


def platforms_are_disjoint(platforms: tuple[str, ...] = PLATFORMS) -> bool:
    """Check that no platform identifier is a substring of another."""
    for a in platforms:
        for b in platforms:
            if a != b and a in b:
                return False
    return True
