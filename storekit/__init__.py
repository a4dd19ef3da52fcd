"""
storekit: one data-access contract over any storage medium.

Create, fetch, update, delete and reorder objects in in-memory arrays,
databases, remote services or preference stores through a single
DataStore, synchronously or asynchronously, with pending-object tracking,
validation gating and connectivity-aware retry.
"""

__version__ = "0.1.0"

from storekit.adapters import AsyncBackendAdapter, BackendAdapter
from storekit.config import BackendConfig, StoreConfig, StoreKitConfig
from storekit.errors import (
    BackendError,
    ConnectivityError,
    DataStoreError,
    MissingDefinitionError,
    NotTrackedError,
    PropertyNotFoundError,
    UnsupportedOperationError,
    ValidationError,
)
from storekit.events import BusEvent, EventBus, StoreEvent, Subscription
from storekit.store import DataStore
from storekit.types import (
    # Enums
    ObjectState,
    StoreMode,
    # Definitions
    DataDefinition,
    PropertyDefinition,
    # Value objects
    Binding,
    FetchOptions,
    Outcome,
)

__all__ = [
    # Core
    "DataStore",
    # Adapter protocols
    "BackendAdapter",
    "AsyncBackendAdapter",
    # Events
    "EventBus",
    "StoreEvent",
    "BusEvent",
    "Subscription",
    # Configuration
    "StoreKitConfig",
    "StoreConfig",
    "BackendConfig",
    # Enums
    "ObjectState",
    "StoreMode",
    # Definitions
    "DataDefinition",
    "PropertyDefinition",
    # Value objects
    "Binding",
    "FetchOptions",
    "Outcome",
    # Errors
    "DataStoreError",
    "ValidationError",
    "ConnectivityError",
    "BackendError",
    "UnsupportedOperationError",
    "PropertyNotFoundError",
    "NotTrackedError",
    "MissingDefinitionError",
]
