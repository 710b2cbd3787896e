"""
Release tag codec.

Release tags have the form ``{database}-{version}``. Both halves may contain
hyphens and digits, so parsing is heuristic: the tag is split at the first
hyphen that is immediately followed by a digit. When the set of known
database keys is available, the longest known key prefix is used instead.

Parsing never raises; callers receive either a ``ValidTag`` or an
``UnparseableTag`` carrying the raw tag and the reason.
"""

import re
from dataclasses import dataclass
from typing import Iterable, Optional, Union

# First hyphen immediately followed by a digit
_TAG_PATTERN = re.compile(r"^(?P<database>.+?)-(?P<version>\d.*)$")

# Database keys are lower-case identifiers (e.g. "postgresql-documentdb")
_DATABASE_PATTERN = re.compile(r"^[a-z][a-z0-9-]*$")


@dataclass(frozen=True)
class ValidTag:
    """A tag that split cleanly into a database key and a version."""

    database: str
    version: str

    @property
    def tag(self) -> str:
        return compose_tag(self.database, self.version)


@dataclass(frozen=True)
class UnparseableTag:
    """A tag that could not be attributed to a database/version pair."""

    raw: str
    reason: str


ParsedTag = Union[ValidTag, UnparseableTag]


def compose_tag(database: str, version: str) -> str:
    """Build the release tag for a database/version pair."""
    return f"{database}-{version}"


def parse_tag(
    tag: str,
    known_databases: Optional[Iterable[str]] = None,
) -> ParsedTag:
    """
    Split a release tag into its database key and version.

    Args:
        tag: Release tag, e.g. ``postgresql-documentdb-17-0.106.0``
        known_databases: Optional closed set of database keys. When given,
            the tag must start with one of them followed by a hyphen.

    Returns:
        ValidTag on success, UnparseableTag otherwise
    """
    if known_databases is not None:
        return _parse_with_known(tag, known_databases)

    match = _TAG_PATTERN.match(tag)
    if not match:
        return UnparseableTag(raw=tag, reason="no hyphen followed by a digit")

    database = match.group("database")
    version = match.group("version")
    if not _DATABASE_PATTERN.match(database):
        return UnparseableTag(
            raw=tag, reason=f"invalid database key '{database}'"
        )
    return ValidTag(database=database, version=version)


def _parse_with_known(tag: str, known_databases: Iterable[str]) -> ParsedTag:
    candidates = sorted(known_databases, key=len, reverse=True)
    for database in candidates:
        prefix = f"{database}-"
        if tag.startswith(prefix) and len(tag) > len(prefix):
            return ValidTag(database=database, version=tag[len(prefix):])
    return UnparseableTag(raw=tag, reason="prefix is not a known database")
