"""Backend adapter protocols.

Implemented by: storekit_backends (array, DuckDB, diskcache preferences,
aiohttp web service), or any other storage medium.

A backend adapter performs the physical create/read/update/delete/reorder
work against one medium. The DataStore owns everything else: which objects
are pending, validation, sync/async dispatch and retry. The adapter never
sees the pending set and the store never sees SQL, keys or URLs.

Design:
    backend.insert(obj)                           -> None
    backend.insert_at_order(obj, 2)               -> None
    backend.change_order(obj, 0, visible_rows)    -> None
    backend.update(obj)                           -> None
    backend.delete(obj)                           -> None
    backend.fetch(FetchOptions(limit=20))         -> list[Any]

Failures are raised, not returned: ConnectivityError when the medium is
unreachable, UnsupportedOperationError for capabilities the medium lacks
(ordering on an unordered medium must raise, never silently succeed),
BackendError or any other exception for everything else.

Adapters may additionally define any of these optional hooks, which the
store looks up by name:

    validate_insert(store, obj) / validate_update(store, obj)
    validate_delete(store, obj) / validate_order_change(store, obj, order)
    default_values() -> dict      commit()      on_resume()
    close()      async aclose()
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Protocol, runtime_checkable

from storekit.types import FetchOptions


@runtime_checkable
class BackendAdapter(Protocol):
    """Synchronous storage medium.

    Principles:
    - Each call either completes or raises; there is no partial success.
    - Objects are the caller's instances; the adapter may keep references.
    - FetchOptions are interpreted by the adapter alone.
    """

    def insert(self, obj: Any) -> None:
        """Persist a new object."""
        ...

    def insert_at_order(self, obj: Any, order: int) -> None:
        """Persist a new object at a position in an ordered medium.

        Raises:
            UnsupportedOperationError: If the medium is unordered.
        """
        ...

    def change_order(self, obj: Any, order: int, subset: Sequence[Any]) -> None:
        """Move obj so it sits at index order within subset.

        subset is the (possibly filtered) view the caller is reordering; the
        resulting order of the medium must be a permutation that places obj
        at that index relative to the other members of subset.

        Raises:
            UnsupportedOperationError: If the medium is unordered.
        """
        ...

    def update(self, obj: Any) -> None:
        """Write back changes to an already persisted object."""
        ...

    def delete(self, obj: Any) -> None:
        """Remove a persisted object."""
        ...

    def fetch(self, options: FetchOptions | None) -> list[Any]:
        """Return the objects matching options (all objects when None)."""
        ...


@runtime_checkable
class AsyncBackendAdapter(Protocol):
    """Natively asynchronous storage medium (e.g. a remote service).

    Same contract as BackendAdapter, with every operation a coroutine.
    """

    async def insert(self, obj: Any) -> None: ...

    async def insert_at_order(self, obj: Any, order: int) -> None: ...

    async def change_order(
        self, obj: Any, order: int, subset: Sequence[Any]
    ) -> None: ...

    async def update(self, obj: Any) -> None: ...

    async def delete(self, obj: Any) -> None: ...

    async def fetch(self, options: FetchOptions | None) -> list[Any]: ...
