"""
Unit tests for the release tag codec.

Tests heuristic parsing, closed-set parsing and tag round-trips.
"""

import pytest

from hostdb.tags import UnparseableTag, ValidTag, compose_tag, parse_tag


class TestParseTag:
    """Tests for parse_tag without a known database set."""

    def test_simple_tag(self):
        """Splits at the hyphen before the version."""
        assert parse_tag("redis-8.4.0") == ValidTag(database="redis", version="8.4.0")

    def test_hyphenated_database(self):
        """Database keys may contain hyphens before the version begins."""
        parsed = parse_tag("postgresql-documentdb-17-0.106.0")
        assert parsed == ValidTag(database="postgresql-documentdb", version="17-0.106.0")

    def test_version_with_suffix(self):
        """Non-numeric version suffixes stay in the version."""
        assert parse_tag("mongodb-8.0.0-rc1") == ValidTag(database="mongodb", version="8.0.0-rc1")

    def test_no_version_is_unparseable(self):
        """A tag without a digit after a hyphen is rejected, not raised."""
        parsed = parse_tag("nightly-build")
        assert isinstance(parsed, UnparseableTag)
        assert parsed.raw == "nightly-build"

    def test_leading_digit_is_unparseable(self):
        """A tag starting with its version has no database."""
        assert isinstance(parse_tag("8.4.0"), UnparseableTag)

    def test_upper_case_database_is_unparseable(self):
        """Database keys must be lower case."""
        parsed = parse_tag("Redis-8.4.0")
        assert isinstance(parsed, UnparseableTag)
        assert "Redis" in parsed.reason


class TestParseTagKnownDatabases:
    """Tests for parse_tag with a closed set of database keys."""

    def test_longest_known_prefix_wins(self):
        """postgresql-documentdb is preferred over postgresql."""
        parsed = parse_tag(
            "postgresql-documentdb-17-0.106.0",
            known_databases={"postgresql", "postgresql-documentdb"},
        )
        assert parsed == ValidTag(database="postgresql-documentdb", version="17-0.106.0")

    def test_digit_in_database_key(self):
        """Known keys may contain digit-prefixed segments."""
        parsed = parse_tag("db-2-1.0.0", known_databases={"db-2"})
        assert parsed == ValidTag(database="db-2", version="1.0.0")

    def test_unknown_prefix_is_unparseable(self):
        """A tag from an unrelated process is not attributed."""
        parsed = parse_tag("website-2.0.0", known_databases={"redis", "mysql"})
        assert isinstance(parsed, UnparseableTag)

    def test_empty_version_is_unparseable(self):
        """The known key alone is not a release tag."""
        assert isinstance(parse_tag("redis-", known_databases={"redis"}), UnparseableTag)


class TestTagRoundTrip:
    """parse_tag(compose_tag(db, v)) returns (db, v)."""

    @pytest.mark.parametrize(
        "database,version",
        [
            ("redis", "8.4.0"),
            ("mysql", "8.0.40"),
            ("postgresql", "17.5.0"),
            ("postgresql-documentdb", "17-0.106.0"),
            ("clickhouse", "25.1.3.23"),
            ("mongodb", "8.0.0-rc1"),
            ("sqlite", "3"),
        ],
    )
    def test_round_trip(self, database, version):
        """Composed tags parse back to the same pair."""
        assert parse_tag(compose_tag(database, version)) == ValidTag(database, version)

    def test_valid_tag_property(self):
        """ValidTag.tag recomposes the parsed tag."""
        assert ValidTag(database="valkey", version="8.1.1").tag == "valkey-8.1.1"
