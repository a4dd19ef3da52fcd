"""DuckDB connection manager for the DuckDB backend.

This module provides connection management and table initialization for
entity tables backed by DuckDB. Each entity table stores one JSON document
per object, keyed by the object's id.
"""

from __future__ import annotations

import os
import re
from collections.abc import Generator
from contextlib import contextmanager

import duckdb

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def get_db_path() -> str:
    """Get the database path from environment or use default.

    Returns:
        Database file path, or ":memory:" for in-memory database.
    """
    return os.getenv("STOREKIT_DB_PATH", ":memory:")


def check_identifier(name: str) -> str:
    """Validate a table name before it is interpolated into SQL.

    Raises:
        ValueError: If name is not a plain SQL identifier.
    """
    if not _IDENTIFIER.match(name):
        raise ValueError(f"Invalid table name: {name!r}")
    return name


def get_connection(db_path: str | None = None) -> duckdb.DuckDBPyConnection:
    """Open a DuckDB connection.

    Args:
        db_path: Optional database path. If None, uses get_db_path().
                Use ":memory:" for in-memory database.

    Returns:
        DuckDB connection.
    """
    if db_path is None:
        db_path = get_db_path()
    return duckdb.connect(db_path)


def table_exists(conn: duckdb.DuckDBPyConnection, table: str) -> bool:
    """Check if an entity table exists.

    Args:
        conn: DuckDB connection.
        table: Table name.

    Returns:
        True if the table exists.
    """
    result = conn.execute(
        "SELECT COUNT(*) FROM information_schema.tables WHERE table_name = ?",
        [table],
    ).fetchone()
    return result is not None and result[0] > 0


def init_table(conn: duckdb.DuckDBPyConnection, table: str) -> None:
    """Create the entity table if needed.

    Columns:
        id: Object identifier (primary key).
        position: Insertion sequence, used for stable fetch order.
        body: JSON document of the object's fields.

    Args:
        conn: DuckDB connection.
        table: Table name.
    """
    table = check_identifier(table)
    if table_exists(conn, table):
        return
    conn.execute(
        f"CREATE TABLE {table} ("
        "id VARCHAR PRIMARY KEY, "
        "position BIGINT NOT NULL, "
        "body VARCHAR NOT NULL)"
    )


@contextmanager
def connection(
    db_path: str | None = None,
) -> Generator[duckdb.DuckDBPyConnection, None, None]:
    """Context manager for DuckDB connections.

    Args:
        db_path: Optional database path. If None, uses get_db_path().

    Yields:
        DuckDB connection.

    Example:
        >>> with connection() as conn:
        ...     init_table(conn, "tasks")
    """
    conn = get_connection(db_path)
    try:
        yield conn
    finally:
        conn.close()
