"""Tests for migration 001: auth tables.

Runs upgrade/downgrade against an in-memory SQLite database through
alembic's Operations API.
"""

import importlib.util
from pathlib import Path
from types import ModuleType

import pytest
from alembic.migration import MigrationContext
from alembic.operations import Operations
from sqlalchemy import create_engine, inspect, text
from sqlalchemy.exc import IntegrityError

_VERSIONS_DIR = Path(__file__).resolve().parents[2] / "migrations" / "versions"
_MIGRATION_PATH = _VERSIONS_DIR / "001_auth_tables.py"
_TABLES = {"users", "refresh_tokens", "otp_verifications", "one_time_tokens"}


def _load_migration() -> ModuleType:
    spec = importlib.util.spec_from_file_location("migration_001", _MIGRATION_PATH)
    assert spec is not None and spec.loader is not None
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.fixture
def migrated_connection():
    """Connection with migration 001 applied."""
    migration = _load_migration()
    engine = create_engine("sqlite://")
    with engine.connect() as conn:
        with Operations.context(MigrationContext.configure(conn)):
            migration.upgrade()
        conn.commit()
        yield conn, migration
    engine.dispose()


class TestUpgrade:
    """Tests for upgrade()."""

    def test_revision_is_root(self):
        migration = _load_migration()
        assert migration.revision == "001_auth_tables"
        assert migration.down_revision is None

    def test_creates_tables(self, migrated_connection):
        conn, _ = migrated_connection
        assert _TABLES <= set(inspect(conn).get_table_names())

    def test_otp_lookup_index(self, migrated_connection):
        conn, _ = migrated_connection
        names = {ix["name"] for ix in inspect(conn).get_indexes("otp_verifications")}
        assert "ix_otp_verifications_phone_verified_created" in names

    def test_one_refresh_token_per_user(self, migrated_connection):
        conn, _ = migrated_connection
        conn.execute(
            text(
                "INSERT INTO users (id, email, name, roles, provider) "
                "VALUES (1, 'a@example.com', 'A', '[\"USER\"]', 'LOCAL')"
            )
        )
        insert = text(
            "INSERT INTO refresh_tokens (token, user_id, issued_at, expires_at) "
            "VALUES (:token, 1, CURRENT_TIMESTAMP, CURRENT_TIMESTAMP)"
        )
        conn.execute(insert, {"token": "first"})

        with pytest.raises(IntegrityError):
            conn.execute(insert, {"token": "second"})


class TestDowngrade:
    """Tests for downgrade()."""

    def test_drops_tables(self, migrated_connection):
        conn, migration = migrated_connection
        with Operations.context(MigrationContext.configure(conn)):
            migration.downgrade()

        assert not _TABLES & set(inspect(conn).get_table_names())
