"""storekit configuration system.

Externalizes the settings a store and its backend need at runtime: dispatch
mode, nil-value policy, backend-specific defaults, and which backend to
build with what location.

Configuration can be loaded from:
- Environment variables (STOREKIT_*)
- Programmatic construction

This module defines the schema. Building a backend from it lives in
storekit_backends.build_backend().
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any

from storekit.types import StoreMode

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})


@dataclass
class StoreConfig:
    """Data store behaviour."""

    mode: StoreMode | None = None
    """Dispatch mode. None lets the store infer it from the backend."""

    supports_nil_values: bool = True
    defaults: dict[str, Any] = field(default_factory=dict)
    """Backend-specific default values, merged over the adapter's own.

    Example (preferences): {"namespace": "settings"}
    """


@dataclass
class BackendConfig:
    """Backend selection and location."""

    backend: str = "array"
    path: str = ""
    url: str = ""
    resource: str = ""
    extra: dict[str, Any] = field(default_factory=dict)
    """Backend-specific settings.

    Example (DuckDB): {"table": "tasks"}
    Example (web): {"id_key": "uuid"}
    """


@dataclass
class StoreKitConfig:
    """Top-level storekit configuration.

    Load from the environment:
        config = StoreKitConfig.from_env()

    Or construct programmatically:
        config = StoreKitConfig(
            store=StoreConfig(mode=StoreMode.ASYNCHRONOUS),
            backend=BackendConfig(backend="web", url="https://api.example.com"),
        )
    """

    store: StoreConfig = field(default_factory=StoreConfig)
    backend: BackendConfig = field(default_factory=BackendConfig)

    @classmethod
    def from_env(cls) -> StoreKitConfig:
        """Build a configuration from STOREKIT_* environment variables.

        Recognized variables:
        - STOREKIT_MODE: "synchronous" or "asynchronous" (default: inferred)
        - STOREKIT_SUPPORTS_NIL: "true"/"false" (default: true)
        - STOREKIT_BACKEND: array, duckdb, preferences or web (default: array)
        - STOREKIT_PATH: file or directory for duckdb/preferences
        - STOREKIT_URL: base URL for the web backend
        - STOREKIT_RESOURCE: table, namespace or endpoint name

        Raises:
            ValueError: If STOREKIT_MODE is not a known mode.
        """
        mode_env = os.getenv("STOREKIT_MODE", "").strip().lower()
        mode = StoreMode(mode_env) if mode_env else None
        supports_nil = (
            os.getenv("STOREKIT_SUPPORTS_NIL", "true").strip().lower() in _TRUE_VALUES
        )
        return cls(
            store=StoreConfig(mode=mode, supports_nil_values=supports_nil),
            backend=BackendConfig(
                backend=os.getenv("STOREKIT_BACKEND", "array"),
                path=os.getenv("STOREKIT_PATH", ""),
                url=os.getenv("STOREKIT_URL", ""),
                resource=os.getenv("STOREKIT_RESOURCE", ""),
            ),
        )
