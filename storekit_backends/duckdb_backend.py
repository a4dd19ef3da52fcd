"""DuckDB-backed structured database backend.

Stores mapping objects (dicts) as JSON documents in one table per entity
type. The table is unordered from the store's point of view: fetch order
is insertion order, and reordering calls are rejected.
"""

from __future__ import annotations

import json
import logging
import uuid
from collections.abc import MutableMapping, Sequence
from typing import TYPE_CHECKING, Any

import duckdb

from storekit.errors import BackendError, UnsupportedOperationError
from storekit.types import FetchOptions

from ._helpers import apply_fetch_options, passes_definition_rules
from .db import check_identifier, get_connection, init_table

if TYPE_CHECKING:
    from storekit.store import DataStore

logger = logging.getLogger(__name__)


class DuckDBBackend:
    """Entity table in a DuckDB database.

    Args:
        table: Table name for this entity type.
        db_path: Database file, ":memory:" for a private in-memory
            database, or None to use STOREKIT_DB_PATH.
        conn: Existing connection to use instead of opening one. The
            backend does not close a connection it did not open.
        id_key: Field holding the object id. Missing ids are generated.
    """

    def __init__(
        self,
        table: str,
        db_path: str | None = None,
        *,
        conn: duckdb.DuckDBPyConnection | None = None,
        id_key: str = "id",
    ) -> None:
        self.table = check_identifier(table)
        self.id_key = id_key
        self._owns_connection = conn is None
        self.conn = conn if conn is not None else get_connection(db_path)
        init_table(self.conn, self.table)

    def _object_id(self, obj: Any, operation: str) -> str:
        if not isinstance(obj, MutableMapping):
            raise BackendError(
                f"DuckDB backend stores mappings, got {type(obj).__name__}",
                operation=operation,
            )
        value = obj.get(self.id_key)
        if value is None:
            raise BackendError(
                f"Object has no {self.id_key!r}", payload=obj, operation=operation
            )
        return str(value)

    def _exists(self, object_id: str) -> bool:
        row = self.conn.execute(
            f"SELECT COUNT(*) FROM {self.table} WHERE id = ?", [object_id]
        ).fetchone()
        return row is not None and row[0] > 0

    def _execute(self, operation: str, sql: str, params: list[Any]) -> None:
        try:
            self.conn.execute(sql, params)
        except duckdb.Error as exc:
            raise BackendError(
                f"DuckDB {operation} failed: {exc}",
                payload=exc,
                operation=operation,
                cause=exc,
            ) from exc

    def insert(self, obj: Any) -> None:
        if isinstance(obj, MutableMapping) and obj.get(self.id_key) is None:
            obj[self.id_key] = uuid.uuid4().hex
        object_id = self._object_id(obj, "insert")
        row = self.conn.execute(
            f"SELECT COALESCE(MAX(position), 0) + 1 FROM {self.table}"
        ).fetchone()
        position = row[0] if row is not None else 1
        self._execute(
            "insert",
            f"INSERT INTO {self.table} (id, position, body) VALUES (?, ?, ?)",
            [object_id, position, json.dumps(dict(obj), default=str)],
        )
        logger.debug("Inserted %s into %s", object_id, self.table)

    def insert_at_order(self, obj: Any, order: int) -> None:
        raise UnsupportedOperationError(
            "DuckDB tables are unordered", operation="insert_at_order"
        )

    def change_order(self, obj: Any, order: int, subset: Sequence[Any]) -> None:
        raise UnsupportedOperationError(
            "DuckDB tables are unordered", operation="change_order"
        )

    def update(self, obj: Any) -> None:
        object_id = self._object_id(obj, "update")
        if not self._exists(object_id):
            raise BackendError(
                f"No row {object_id!r} in {self.table}", operation="update"
            )
        self._execute(
            "update",
            f"UPDATE {self.table} SET body = ? WHERE id = ?",
            [json.dumps(dict(obj), default=str), object_id],
        )

    def delete(self, obj: Any) -> None:
        object_id = self._object_id(obj, "delete")
        if not self._exists(object_id):
            raise BackendError(
                f"No row {object_id!r} in {self.table}", operation="delete"
            )
        self._execute("delete", f"DELETE FROM {self.table} WHERE id = ?", [object_id])

    def fetch(self, options: FetchOptions | None) -> list[Any]:
        rows = self.conn.execute(
            f"SELECT body FROM {self.table} ORDER BY position"
        ).fetchall()
        return apply_fetch_options((json.loads(row[0]) for row in rows), options)

    def validate_insert(self, store: DataStore, obj: Any) -> bool:
        return passes_definition_rules(store, obj)

    def validate_update(self, store: DataStore, obj: Any) -> bool:
        return passes_definition_rules(store, obj)

    def default_values(self) -> dict[str, Any]:
        return {"table": self.table, "id_key": self.id_key}

    def close(self) -> None:
        if self._owns_connection:
            self.conn.close()
