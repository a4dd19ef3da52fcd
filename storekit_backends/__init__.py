"""Reference backend adapters for storekit.

    ArrayBackend        in-memory ordered list (supports ordering)
    DuckDBBackend       JSON documents in a DuckDB table
    PreferencesBackend  key-value preferences in a DiskCache directory
    WebServiceBackend   JSON REST collection over aiohttp (asynchronous)
"""

__version__ = "0.1.0"

from storekit_backends.array import ArrayBackend
from storekit_backends.duckdb_backend import DuckDBBackend
from storekit_backends.factory import BACKENDS, build_backend, open_store
from storekit_backends.preferences import PreferencesBackend
from storekit_backends.web import WebServiceBackend

__all__ = [
    "ArrayBackend",
    "DuckDBBackend",
    "PreferencesBackend",
    "WebServiceBackend",
    "BACKENDS",
    "build_backend",
    "open_store",
]
