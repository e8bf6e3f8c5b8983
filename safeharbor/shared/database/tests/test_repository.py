"""Tests for BaseRepository and database error translation."""
import pytest
from dataclasses import dataclass
from unittest.mock import MagicMock

import psycopg2
from psycopg2 import errors, pool

from safeharbor.shared.database.repository import (
    BaseRepository,
    ConcurrencyError,
    DuplicateError,
    RepositoryError,
    TransientRepositoryError,
    translate_errors,
)


@dataclass
class Widget:
    id: str
    name: str
    version: int = 1


class WidgetRepository(BaseRepository[Widget]):
    def _row_to_entity(self, row):
        return Widget(id=row[0], name=row[1], version=row[2])

    def _entity_to_params(self, entity):
        return {"id": entity.id, "name": entity.name, "version": entity.version}


@pytest.fixture
def cursor():
    return MagicMock()


@pytest.fixture
def connection(cursor):
    conn = MagicMock()
    conn.cursor.return_value.__enter__.return_value = cursor
    return conn


@pytest.fixture
def repo(connection):
    manager = MagicMock()
    manager.get_connection.return_value.__enter__.return_value = connection
    return WidgetRepository(manager, "widgets")


class TestTranslateErrors:
    """psycopg2 exceptions map onto the repository taxonomy."""

    def test_unique_violation_becomes_duplicate(self):
        with pytest.raises(DuplicateError):
            with translate_errors("insert", "widgets"):
                raise errors.UniqueViolation("duplicate key")

    def test_other_integrity_error_is_permanent(self):
        with pytest.raises(RepositoryError) as exc_info:
            with translate_errors("insert", "widgets"):
                raise psycopg2.IntegrityError("not null")
        assert not isinstance(exc_info.value, (DuplicateError, TransientRepositoryError))

    @pytest.mark.parametrize("error", [
        psycopg2.OperationalError("server closed the connection"),
        psycopg2.InterfaceError("connection already closed"),
        pool.PoolError("connection pool exhausted"),
    ])
    def test_connection_failures_are_transient(self, error):
        with pytest.raises(TransientRepositoryError):
            with translate_errors("insert", "widgets"):
                raise error

    def test_repository_errors_pass_through(self):
        with pytest.raises(ConcurrencyError):
            with translate_errors("update", "widgets"):
                raise ConcurrencyError("w1", 1, 2)


class TestBaseRepository:
    """Tests for the shared query helpers."""

    def test_insert_builds_parameterized_query(self, repo, connection, cursor):
        repo.insert(Widget(id="w1", name="gear"))

        query, params = cursor.execute.call_args.args
        assert query.startswith("INSERT INTO widgets (id, name, version)")
        assert params == ["w1", "gear", 1]
        connection.commit.assert_called_once()

    def test_update_if_version_checks_version(self, repo, cursor):
        cursor.rowcount = 1

        repo.update_if_version(Widget(id="w1", name="cog", version=2), expected_version=1)

        query, params = cursor.execute.call_args.args
        assert "WHERE id = %s AND version = %s" in query
        assert params == ["cog", 2, "w1", 1]

    def test_update_if_version_conflict(self, repo, cursor):
        cursor.rowcount = 0

        with pytest.raises(ConcurrencyError) as exc_info:
            repo.update_if_version(Widget(id="w1", name="cog", version=2), expected_version=1)

        assert exc_info.value.entity_id == "w1"
        assert exc_info.value.expected_version == 1

    def test_insert_duplicate_raises(self, repo, cursor):
        cursor.execute.side_effect = errors.UniqueViolation("duplicate key")

        with pytest.raises(DuplicateError):
            repo.insert(Widget(id="w1", name="gear"))

    def test_no_delete_operation(self, repo):
        assert not hasattr(repo, "delete")
