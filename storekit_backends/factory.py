"""Build backends and stores from configuration."""

from __future__ import annotations

import logging
from typing import Any

from storekit.config import BackendConfig, StoreKitConfig
from storekit.events import EventBus
from storekit.store import DataStore
from storekit.types import DataDefinition

from .array import ArrayBackend
from .duckdb_backend import DuckDBBackend
from .preferences import PreferencesBackend
from .web import WebServiceBackend

logger = logging.getLogger(__name__)

BACKENDS: frozenset[str] = frozenset({"array", "duckdb", "preferences", "web"})


def build_backend(config: BackendConfig) -> Any:
    """Instantiate the backend named by config.backend.

    Args:
        config: Backend selection. `resource` is the DuckDB table, the
            preferences namespace or the web collection; `path` is the
            DuckDB file or DiskCache directory; `url` is the web base URL.

    Returns:
        The adapter instance.

    Raises:
        ValueError: If the backend name is unknown or a required setting
            is missing.
    """
    name = config.backend.strip().lower()
    id_key = str(config.extra.get("id_key", "id"))
    if name == "array":
        backend: Any = ArrayBackend()
    elif name == "duckdb":
        backend = DuckDBBackend(
            config.resource or "entities", config.path or None, id_key=id_key
        )
    elif name == "preferences":
        backend = PreferencesBackend(
            config.resource or "preferences", config.path or None, id_key=id_key
        )
    elif name == "web":
        if not config.url or not config.resource:
            raise ValueError("The web backend needs both url and resource")
        backend = WebServiceBackend(
            config.url,
            config.resource,
            id_key=id_key,
            results_key=config.extra.get("results_key"),
        )
    else:
        raise ValueError(
            f"Unknown backend {config.backend!r}; expected one of {sorted(BACKENDS)}"
        )
    logger.info("Built %s backend", name)
    return backend


def open_store(
    config: StoreKitConfig,
    definition: DataDefinition,
    *,
    bus: EventBus | None = None,
) -> DataStore:
    """Build the configured backend and wrap it in a DataStore.

    Example:
        store = open_store(StoreKitConfig.from_env(), tasks_definition)
    """
    return DataStore(
        build_backend(config.backend), definition, bus=bus, config=config.store
    )
