"""Key-value preference backend with DiskCache persistence.

Each object (a mapping) is stored under its own key in a DiskCache
directory, namespaced so several entity types can share one cache. An
insertion counter kept in the same cache gives fetches a stable order
across restarts. Ordering calls are rejected: preferences are a key-value
medium.

Storage path: $STOREKIT_PREFERENCES_PATH (default ~/.storekit/preferences/).
"""

from __future__ import annotations

import logging
import os
import uuid
from collections.abc import MutableMapping, Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Any

import diskcache  # type: ignore[import-untyped]

from storekit.errors import BackendError, UnsupportedOperationError
from storekit.types import FetchOptions

from ._helpers import apply_fetch_options, passes_definition_rules

if TYPE_CHECKING:
    from storekit.store import DataStore

logger = logging.getLogger(__name__)


def _default_storage_path() -> Path:
    """Resolve the DiskCache directory for preferences.

    Uses STOREKIT_PREFERENCES_PATH if set, otherwise ~/.storekit/preferences.
    Creates the directory tree if it does not exist.

    Returns:
        Path to the preferences storage directory.
    """
    path = Path(
        os.getenv(
            "STOREKIT_PREFERENCES_PATH",
            os.path.expanduser("~/.storekit/preferences"),
        )
    )
    path.mkdir(parents=True, exist_ok=True)
    return path


class PreferencesBackend:
    """Preference objects persisted in a DiskCache.

    Args:
        namespace: Key prefix for this entity type.
        storage_path: Override directory for the cache.
        id_key: Field holding the object id. Missing ids are generated.
    """

    def __init__(
        self,
        namespace: str = "preferences",
        storage_path: Path | str | None = None,
        *,
        id_key: str = "id",
    ) -> None:
        self.namespace = namespace
        self.id_key = id_key
        resolved = Path(storage_path) if storage_path else _default_storage_path()
        self._disk: diskcache.Cache = diskcache.Cache(str(resolved))
        self._sequence_key = f"{namespace}#sequence"

    def _key(self, obj: Any, operation: str) -> str:
        if not isinstance(obj, MutableMapping):
            raise BackendError(
                f"Preferences store mappings, got {type(obj).__name__}",
                operation=operation,
            )
        value = obj.get(self.id_key)
        if value is None:
            raise BackendError(
                f"Object has no {self.id_key!r}", payload=obj, operation=operation
            )
        return f"{self.namespace}/{value}"

    def _require_stored(self, key: str, operation: str) -> dict[str, Any]:
        try:
            return self._disk[key]
        except KeyError:
            raise BackendError(
                f"No preference stored under {key!r}", operation=operation
            ) from None

    def insert(self, obj: Any) -> None:
        if isinstance(obj, MutableMapping) and obj.get(self.id_key) is None:
            obj[self.id_key] = uuid.uuid4().hex
        key = self._key(obj, "insert")
        if key in self._disk:
            raise BackendError(f"Preference {key!r} already exists", operation="insert")
        position = self._disk.incr(self._sequence_key)
        self._disk[key] = {"position": position, "body": dict(obj)}
        logger.debug("Stored preference %s", key)

    def insert_at_order(self, obj: Any, order: int) -> None:
        raise UnsupportedOperationError(
            "Preferences are unordered", operation="insert_at_order"
        )

    def change_order(self, obj: Any, order: int, subset: Sequence[Any]) -> None:
        raise UnsupportedOperationError(
            "Preferences are unordered", operation="change_order"
        )

    def update(self, obj: Any) -> None:
        key = self._key(obj, "update")
        entry = self._require_stored(key, "update")
        self._disk[key] = {"position": entry["position"], "body": dict(obj)}

    def delete(self, obj: Any) -> None:
        key = self._key(obj, "delete")
        self._require_stored(key, "delete")
        del self._disk[key]

    def fetch(self, options: FetchOptions | None) -> list[Any]:
        prefix = f"{self.namespace}/"
        entries: list[dict[str, Any]] = []
        for key in list(self._disk):
            if not isinstance(key, str) or not key.startswith(prefix):
                continue
            entry = self._disk.get(key)
            if entry is None:
                continue
            entries.append(entry)
        entries.sort(key=lambda entry: entry["position"])
        return apply_fetch_options((dict(entry["body"]) for entry in entries), options)

    def validate_insert(self, store: DataStore, obj: Any) -> bool:
        return passes_definition_rules(store, obj)

    def validate_update(self, store: DataStore, obj: Any) -> bool:
        return passes_definition_rules(store, obj)

    def default_values(self) -> dict[str, Any]:
        return {"namespace": self.namespace, "id_key": self.id_key}

    def on_resume(self) -> None:
        """Drop expired entries; another process may have written meanwhile."""
        expired = self._disk.expire()
        if expired:
            logger.info("Expired %d preference entries on resume", expired)

    def close(self) -> None:
        """Close the DiskCache backend."""
        self._disk.close()
