"""Database access for SafeHarbor services.

Provides connection pooling and the repository base class used by the
PostgreSQL crisis event store.
"""

from .connection import (
    DatabaseConfig,
    ConnectionManager,
    get_connection_manager,
)
from .repository import (
    BaseRepository,
    RepositoryError,
    DuplicateError,
    ConcurrencyError,
    TransientRepositoryError,
    translate_errors,
)

__all__ = [
    "DatabaseConfig",
    "ConnectionManager",
    "get_connection_manager",
    "BaseRepository",
    "RepositoryError",
    "DuplicateError",
    "ConcurrencyError",
    "TransientRepositoryError",
    "translate_errors",
]
