"""
Database connection and management module.
Handles the PostgreSQL connection pool for the catalog database.
"""

from psycopg2 import pool, errors
from psycopg2.extensions import connection as Connection
from contextlib import contextmanager
from typing import Generator, Optional, Dict, Any, List
import logging

from app.config import settings
from app.core.exceptions import AppException, ConflictException, DatabaseException

logger = logging.getLogger(__name__)


def rows_to_dicts(cursor, rows=None) -> List[Dict[str, Any]]:
    """Convert fetched tuples into dictionaries keyed by column name."""
    if rows is None:
        rows = cursor.fetchall()
    col_names = [desc[0] for desc in cursor.description] if cursor.description else []
    return [dict(zip(col_names, row)) for row in rows]


def row_to_dict(cursor, row) -> Optional[Dict[str, Any]]:
    """Convert a single fetched tuple into a dictionary, or None."""
    if row is None:
        return None
    col_names = [desc[0] for desc in cursor.description]
    return dict(zip(col_names, row))


class DatabaseManager:
    """Manages the connection pool for the catalog database."""

    _instance: Optional["DatabaseManager"] = None
    _pool: Optional[pool.SimpleConnectionPool] = None

    def __new__(cls):
        """Singleton pattern for DatabaseManager."""
        if cls._instance is None:
            cls._instance = super(DatabaseManager, cls).__new__(cls)
            cls._instance._initialize_pool()
        return cls._instance

    def _initialize_pool(self) -> None:
        """Initialize the database connection pool."""
        try:
            self._pool = pool.SimpleConnectionPool(
                minconn=settings.DB_POOL_MIN_SIZE,
                maxconn=settings.DB_POOL_MAX_SIZE,
                dsn=settings.DATABASE_URL
            )
            logger.info("Database connection pool initialized successfully")
        except Exception as e:
            logger.error(f"Failed to initialize database pool: {str(e)}")
            raise DatabaseException(f"Database pool initialization failed: {str(e)}")

    @contextmanager
    def get_connection(self) -> Generator[Connection, None, None]:
        """
        Get a pooled connection wrapped in a transaction.

        Commits when the block exits normally and rolls back on any error.
        Application exceptions raised inside the block propagate unchanged;
        unique violations become ConflictException and every other driver
        error becomes DatabaseException.

        Yields:
            Database connection
        """
        connection = None
        try:
            if not self._pool:
                raise DatabaseException("Connection pool not initialized")

            connection = self._pool.getconn()
            yield connection
            connection.commit()

        except AppException:
            if connection:
                connection.rollback()
            raise
        except errors.UniqueViolation as e:
            if connection:
                connection.rollback()
            logger.warning(f"Unique constraint violated: {str(e)}")
            raise ConflictException("Resource already exists", details={"constraint": e.diag.constraint_name})
        except Exception as e:
            if connection:
                connection.rollback()
            logger.error(f"Database error: {str(e)}")
            raise DatabaseException(f"Database operation failed: {str(e)}")
        finally:
            if connection and self._pool:
                self._pool.putconn(connection)

    def execute_query(
        self,
        query: str,
        params: tuple = (),
        fetch_one: bool = False
    ):
        """
        Execute a read query and return dictionaries.

        Args:
            query: SQL query string
            params: Query parameters
            fetch_one: Whether to fetch single row

        Returns:
            A dict (fetch_one) or a list of dicts
        """
        with self.get_connection() as conn:
            cursor = conn.cursor()
            try:
                cursor.execute(query, params)
                if fetch_one:
                    return row_to_dict(cursor, cursor.fetchone())
                return rows_to_dicts(cursor)
            finally:
                cursor.close()

    def get_pool_status(self) -> Dict[str, Any]:
        """Get status of the connection pool."""
        return {
            "initialized": self._pool is not None and not self._pool.closed,
            "min_connections": settings.DB_POOL_MIN_SIZE,
            "max_connections": settings.DB_POOL_MAX_SIZE
        }

    def validate_connection(self) -> bool:
        """
        Validate that a database connection is working.

        Raises:
            DatabaseException: If connection validation fails
        """
        try:
            with self.get_connection() as conn:
                cursor = conn.cursor()
                try:
                    cursor.execute("SELECT 1")
                    return True
                finally:
                    cursor.close()
        except Exception as e:
            logger.error(f"Connection validation failed: {str(e)}")
            raise DatabaseException(f"Connection validation failed: {str(e)}")

    def close_pool(self) -> None:
        """Close all pooled connections."""
        if self._pool:
            self._pool.closeall()
            logger.info("Database connection pool closed")


def get_db_manager() -> DatabaseManager:
    """Get DatabaseManager singleton instance."""
    return DatabaseManager()
