"""
Build catalogue (databases.json) access.

The catalogue is read-only input owned by the build configuration. The
release tools only need its set of database keys, which lets the tag codec
match against a closed set instead of guessing where the version begins.
"""

import json
from pathlib import Path

from hostdb.manifest import is_valid_database_key


class CatalogError(Exception):
    """Raised when databases.json cannot be read."""

    pass


def load_database_keys(path: Path) -> frozenset[str]:
    """
    Read the database keys from a databases.json file.

    Args:
        path: Path to databases.json

    Returns:
        Set of database keys

    Raises:
        CatalogError: If the file is missing, invalid, has no databases, or
            names a database with an invalid key
    """
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise CatalogError(f"Failed to read {path}: {e}")

    databases = data.get("databases") if isinstance(data, dict) else None
    if not isinstance(databases, dict) or not databases:
        raise CatalogError(f"{path} has no 'databases' mapping")

    invalid = sorted(key for key in databases if not is_valid_database_key(key))
    if invalid:
        raise CatalogError(f"{path} has invalid database keys: {', '.join(invalid)}")

    return frozenset(databases)
