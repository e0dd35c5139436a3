"""
Schema of the local preferences database.

Only device-local state lives here (theme, slideshow interval, vault
password hash). Shared data stays in the remote gateway.
"""

PREFERENCES_TABLE_SCHEMA = """
CREATE TABLE IF NOT EXISTS preferences (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
);
"""

PREFERENCES_COLUMNS = {"key", "value", "updated_at"}

ALL_SCHEMA_STATEMENTS = [PREFERENCES_TABLE_SCHEMA]


def get_schema_statements() -> list[str]:
    """
    Get all database schema creation statements.

    Returns:
        List of SQL statements to create tables
    """
    return ALL_SCHEMA_STATEMENTS


def validate_schema_compatibility() -> bool:
    """Check that the table definition declares every column the store reads."""
    schema_lower = PREFERENCES_TABLE_SCHEMA.lower()
    return all(column in schema_lower for column in PREFERENCES_COLUMNS)
