"""Adapter protocol interfaces for storekit.

Each protocol defines the capability boundary a storage medium implements:

    storekit_backends.ArrayBackend        → BackendAdapter
    storekit_backends.DuckDBBackend       → BackendAdapter
    storekit_backends.PreferencesBackend  → BackendAdapter
    storekit_backends.WebServiceBackend   → AsyncBackendAdapter

Protocols use structural subtyping (PEP 544): adapters implement the
interface without inheriting from it.
"""

from storekit.adapters.backend import AsyncBackendAdapter, BackendAdapter

__all__ = [
    "BackendAdapter",
    "AsyncBackendAdapter",
]
