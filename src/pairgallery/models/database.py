"""
DuckDB connection management for the local preferences database.
"""

from pathlib import Path
from typing import Any

import duckdb

from ..error_handling import DatabaseError
from ..logging_config import get_logger
from .schema import PREFERENCES_COLUMNS, get_schema_statements, validate_schema_compatibility

logger = get_logger(__name__)


class DatabaseManager:
    """
    Manages a DuckDB connection and the preferences schema.
    """

    def __init__(self, db_path: str):
        """
        Initialize DatabaseManager.

        Args:
            db_path: Path to the DuckDB database file, or ``":memory:"``
        """
        self.db_path = db_path
        self._connection: duckdb.DuckDBPyConnection | None = None

    def connect(self) -> duckdb.DuckDBPyConnection:
        """
        Get or create a database connection.

        Returns:
            DuckDB connection object
        """
        if self._connection is None:
            self._connection = duckdb.connect(self.db_path)
            logger.info("database_connected", db_path=self.db_path)

        return self._connection

    def close(self) -> None:
        """Close the database connection."""
        if self._connection is not None:
            self._connection.close()
            self._connection = None
            logger.info("database_closed", db_path=self.db_path)

    def initialize_schema(self) -> None:
        """
        Create the preferences table if it does not exist.

        Raises:
            DatabaseError: If schema validation or creation fails
        """
        if not validate_schema_compatibility():
            raise DatabaseError("Preferences schema is missing required columns", code="schema_incompatible")

        conn = self.connect()

        try:
            for statement in get_schema_statements():
                conn.execute(statement)
            logger.info("database_schema_initialized", db_path=self.db_path)
        except duckdb.Error as e:
            raise DatabaseError(
                f"Failed to initialize database schema: {e}",
                code="schema_init_failed",
                details={"db_path": self.db_path},
                original_exception=e,
            ) from e

    def verify_schema(self) -> bool:
        """
        Verify that the preferences table exists with the expected columns.

        Returns:
            True if schema is valid, False otherwise
        """
        conn = self.connect()

        try:
            columns = conn.execute("PRAGMA table_info('preferences')").fetchall()
        except duckdb.Error as e:
            logger.warning("database_schema_verification_failed", error=str(e))
            return False

        column_names = {col[1] for col in columns}
        missing_columns = PREFERENCES_COLUMNS - column_names
        if missing_columns:
            logger.warning("database_schema_missing_columns", missing=sorted(missing_columns))
            return False

        return True

    def execute_query(self, query: str, parameters: tuple | list | None = None) -> list[tuple]:
        """
        Execute a SQL query and return results.

        Args:
            query: SQL query string
            parameters: Optional query parameters

        Returns:
            List of result tuples (empty for statements without results)

        Raises:
            DatabaseError: If query execution fails
        """
        conn = self.connect()

        try:
            result = conn.execute(query, parameters) if parameters else conn.execute(query)
            return result.fetchall() if result.description else []
        except duckdb.Error as e:
            raise DatabaseError(
                f"Query execution failed: {e}",
                code="query_failed",
                details={"query": query.strip().split("\n")[0]},
                original_exception=e,
            ) from e

    def __enter__(self) -> "DatabaseManager":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()


def get_database_manager(db_path: str) -> DatabaseManager:
    """
    Open the preferences database, creating the file and schema when needed.

    Args:
        db_path: Path to the database file, or ``":memory:"``

    Returns:
        DatabaseManager with a verified schema

    Raises:
        DatabaseError: If the database cannot be created
    """
    if db_path != ":memory:":
        Path(db_path).expanduser().parent.mkdir(parents=True, exist_ok=True)
        db_path = str(Path(db_path).expanduser())

    db_manager = DatabaseManager(db_path)
    if not db_manager.verify_schema():
        db_manager.initialize_schema()
    return db_manager
