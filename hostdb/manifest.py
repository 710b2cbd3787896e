"""
releases.json manifest model.

Provides Pydantic models for the manifest tree:
- PlatformAsset: one downloadable archive (url, sha256, size)
- VersionRelease: one released version of a database
- Manifest: root document (repository, lastUpdated, databases)

The on-disk JSON uses camelCase keys; models accept either the JSON alias
or the Python field name. Serialization goes through ``canonical`` so the
written file is always deterministically ordered.
"""

import json
import logging
import os
import re
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)

SHA256_PATTERN = re.compile(r"^[a-f0-9]{64}$")


def is_valid_database_key(key: str) -> bool:
    """Database keys are non-empty and lower-case."""
    return bool(key) and key == key.lower()


# ============================================================================
# Exceptions
# ============================================================================


class ManifestError(Exception):
    """Raised when the manifest cannot be read, parsed or validated."""

    pass


# ============================================================================
# Models
# ============================================================================


class PlatformAsset(BaseModel):
    """A single platform archive attached to a release."""

    url: str = Field(..., description="Download URL of the archive")
    sha256: str = Field(..., description="SHA-256 of the archive (64 lower-case hex)")
    size: int = Field(..., ge=0, description="Archive size in bytes")

    @field_validator("sha256")
    @classmethod
    def sha256_must_be_hex(cls, v: str) -> str:
        if not SHA256_PATTERN.match(v):
            raise ValueError("sha256 must be 64 lower-case hex characters")
        return v


class VersionRelease(BaseModel):
    """A released version of one database and its platform archives."""

    model_config = ConfigDict(populate_by_name=True)

    version: str = Field(..., description="Version string (copy of the map key)")
    release_tag: str = Field(..., alias="releaseTag", description="GitHub release tag")
    released_at: str = Field(
        ..., alias="releasedAt", description="Publish timestamp from GitHub"
    )
    platforms: Dict[str, PlatformAsset] = Field(default_factory=dict)


class Manifest(BaseModel):
    """Root of releases.json."""

    model_config = ConfigDict(populate_by_name=True)

    schema_url: Optional[str] = Field(None, alias="$schema")
    repository: str = Field(..., description="owner/name of the releases repository")
    last_updated: Optional[str] = Field(None, alias="lastUpdated")
    databases: Dict[str, Dict[str, VersionRelease]] = Field(default_factory=dict)

    @field_validator("repository")
    @classmethod
    def repository_must_be_slug(cls, v: str) -> str:
        parts = v.split("/")
        if len(parts) != 2 or not all(parts):
            raise ValueError("repository must be of the form owner/name")
        return v

    @field_validator("databases")
    @classmethod
    def database_keys_must_be_lower_case(
        cls, v: Dict[str, Dict[str, VersionRelease]]
    ) -> Dict[str, Dict[str, VersionRelease]]:
        for key in v:
            if not is_valid_database_key(key):
                raise ValueError(f"invalid database key '{key}'")
        return v

    def entries(self) -> list[tuple[str, str, str]]:
        """Every (releaseTag, database, version) triple, duplicates included."""
        return [
            (release.release_tag, database, version)
            for database, versions in self.databases.items()
            for version, release in versions.items()
        ]

    def release_tags(self) -> dict[str, tuple[str, str]]:
        """
        Map every releaseTag in the manifest to its (database, version).

        A tag shared by several entries maps to the last one; use
        ``entries`` to see all of them.
        """
        return {tag: (database, version) for tag, database, version in self.entries()}

    def upsert(self, database: str, release: VersionRelease) -> None:
        """
        Insert or wholesale-replace the entry for release.version.

        Raises:
            ManifestError: If database is not a valid database key
        """
        if not is_valid_database_key(database):
            raise ManifestError(f"invalid database key '{database}'")
        self.databases.setdefault(database, {})[release.version] = release

    def remove(self, database: str, version: str) -> Optional[VersionRelease]:
        """
        Delete a version entry, dropping the database key once it is empty.

        Returns:
            The removed entry, or None if it was not present
        """
        versions = self.databases.get(database)
        if versions is None:
            return None
        removed = versions.pop(version, None)
        if not versions:
            del self.databases[database]
        return removed

    def touch(self) -> None:
        """Set lastUpdated to the current UTC time."""
        self.last_updated = utc_timestamp()


# ============================================================================
# Helper Functions
# ============================================================================


def utc_timestamp() -> str:
    """Current UTC time as ISO-8601 with milliseconds and a Z suffix."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_manifest(text: str, source: str = "releases.json") -> Manifest:
    """
    Parse and validate manifest JSON.

    Raises:
        ManifestError: If the text is not valid JSON or not a valid manifest
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ManifestError(f"Failed to parse {source}: {e}")

    if not isinstance(data, dict):
        raise ManifestError(f"Failed to parse {source}: expected a JSON object")

    try:
        return Manifest.model_validate(data)
    except ValidationError as e:
        raise ManifestError(f"Invalid manifest {source}: {e}")


def read_manifest_text(path: Path) -> str:
    """
    Read the raw manifest file.

    Raises:
        ManifestError: If the file cannot be read
    """
    try:
        return Path(path).read_text(encoding="utf-8")
    except OSError as e:
        raise ManifestError(f"Failed to read {path}: {e}")


def load_manifest(path: Path) -> Manifest:
    """Read and validate the manifest at path."""
    return parse_manifest(read_manifest_text(path), source=str(path))


def write_text_atomic(path: Path, text: str) -> None:
    """Write text to path via a temp file in the same directory and rename."""
    path = Path(path)
    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{path.name}.", suffix=".tmp", dir=path.parent
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as f:
            f.write(text)
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except OSError:
            pass
        raise
    logger.debug(f"Wrote {path}")
