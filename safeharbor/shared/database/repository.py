"""Base repository and error taxonomy for database operations.

Repository errors are split by what the caller should do about them:
``TransientRepositoryError`` is worth retrying, everything else is
permanent. Rows are never deleted; the base class has no delete.
"""
import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Dict, Generic, List, Optional, Sequence, TypeVar

import psycopg2
from psycopg2 import errorcodes, errors, pool

from .connection import ConnectionManager

logger = logging.getLogger(__name__)

T = TypeVar('T')


class RepositoryError(Exception):
    """Base exception for repository errors. Permanent unless subclassed."""
    pass


class DuplicateError(RepositoryError):
    """Entity with the same unique key already exists."""
    pass


class ConcurrencyError(RepositoryError):
    """Optimistic concurrency check failed: the row changed underneath."""

    def __init__(self, entity_id: str, expected_version: int, actual_version: Optional[int] = None):
        self.entity_id = entity_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Version conflict on {entity_id}: expected {expected_version}, "
            f"found {actual_version}"
        )


class TransientRepositoryError(RepositoryError):
    """Temporary failure (connection dropped, pool exhausted). Retry."""
    pass


@contextmanager
def translate_errors(operation: str, table_name: str):
    """Map psycopg2 exceptions onto the repository error taxonomy."""
    try:
        yield
    except RepositoryError:
        raise
    except psycopg2.IntegrityError as e:
        unique = getattr(e, "pgcode", None) == errorcodes.UNIQUE_VIOLATION
        if unique or isinstance(e, errors.UniqueViolation):
            raise DuplicateError(f"{operation} on {table_name}: {e}") from e
        raise RepositoryError(f"{operation} on {table_name}: {e}") from e
    except (psycopg2.OperationalError, psycopg2.InterfaceError, pool.PoolError) as e:
        logger.warning(
            "REPOSITORY_TRANSIENT_ERROR",
            extra={"operation": operation, "table_name": table_name, "error": str(e)}
        )
        raise TransientRepositoryError(f"{operation} on {table_name}: {e}") from e
    except psycopg2.Error as e:
        logger.error(
            "REPOSITORY_ERROR",
            extra={"operation": operation, "table_name": table_name, "error": str(e)}
        )
        raise RepositoryError(f"{operation} on {table_name}: {e}") from e


class BaseRepository(ABC, Generic[T]):
    """Abstract base repository.

    Subclasses implement row/entity conversion while inheriting
    connection handling, error translation and logging patterns.
    """

    def __init__(
        self,
        connection_manager: ConnectionManager,
        table_name: str,
    ):
        self.connection_manager = connection_manager
        self.table_name = table_name

        logger.info(
            "REPOSITORY_INITIALIZED",
            extra={"table_name": table_name}
        )

    @abstractmethod
    def _row_to_entity(self, row: tuple) -> T:
        """Convert a database row to an entity."""

    @abstractmethod
    def _entity_to_params(self, entity: T) -> Dict[str, Any]:
        """Convert an entity to a column-name to value mapping."""

    def _fetch_one(self, query: str, params: Sequence[Any]) -> Optional[T]:
        with translate_errors("fetch_one", self.table_name):
            with self.connection_manager.get_connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(query, params)
                    row = cur.fetchone()
        return self._row_to_entity(row) if row is not None else None

    def _fetch_all(self, query: str, params: Sequence[Any]) -> List[T]:
        with translate_errors("fetch_all", self.table_name):
            with self.connection_manager.get_connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(query, params)
                    rows = cur.fetchall()
        return [self._row_to_entity(row) for row in rows]

    def insert(self, entity: T) -> T:
        """Insert a new row.

        Raises:
            DuplicateError: If a unique key already exists
            TransientRepositoryError: On connection-level failures
        """
        params = self._entity_to_params(entity)
        columns = list(params.keys())
        placeholders = ", ".join(["%s"] * len(columns))
        query = (
            f"INSERT INTO {self.table_name} ({', '.join(columns)}) "
            f"VALUES ({placeholders})"
        )

        with translate_errors("insert", self.table_name):
            with self.connection_manager.get_connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(query, list(params.values()))
                conn.commit()
        return entity

    def update_if_version(self, entity: T, expected_version: int) -> T:
        """Overwrite a row only if its version still equals ``expected_version``.

        The single UPDATE is the atomic compare-and-swap; losing writers
        see zero affected rows.

        Raises:
            ConcurrencyError: If the stored version differs
        """
        params = self._entity_to_params(entity)
        entity_id = params["id"]
        assignments = ", ".join(f"{col} = %s" for col in params if col != "id")
        values = [value for col, value in params.items() if col != "id"]
        query = (
            f"UPDATE {self.table_name} SET {assignments} "
            f"WHERE id = %s AND version = %s"
        )

        with translate_errors("update_if_version", self.table_name):
            with self.connection_manager.get_connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(query, values + [entity_id, expected_version])
                    updated = cur.rowcount
                conn.commit()

        if updated == 0:
            raise ConcurrencyError(entity_id, expected_version)
        return entity
