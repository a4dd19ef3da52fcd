"""In-memory ordered array backend.

Keeps objects in a plain Python list, in order. The only reference backend
that supports insert_at_order and change_order. Useful on its own for
lists owned by the caller, and as the backend of choice in tests.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from typing import Any

from storekit.errors import BackendError
from storekit.types import FetchOptions

from ._helpers import apply_fetch_options, index_of

logger = logging.getLogger(__name__)


class ArrayBackend:
    """Ordered list storage.

    Args:
        items: Initial list. The backend works on this list in place, so a
            caller-owned list reflects every change.
        on_commit: Called with the list when the store commits, e.g. to
            write it out to a file.
    """

    def __init__(
        self,
        items: list[Any] | None = None,
        on_commit: Callable[[list[Any]], None] | None = None,
    ) -> None:
        self.items: list[Any] = items if items is not None else []
        self._on_commit = on_commit

    def __len__(self) -> int:
        return len(self.items)

    def _require_stored(self, obj: Any, operation: str) -> int:
        index = index_of(self.items, obj)
        if index < 0:
            raise BackendError(
                "Object is not stored in this array", payload=obj, operation=operation
            )
        return index

    def insert(self, obj: Any) -> None:
        self.items.append(obj)

    def insert_at_order(self, obj: Any, order: int) -> None:
        if not 0 <= order <= len(self.items):
            raise BackendError(
                f"Order {order} is outside [0, {len(self.items)}]",
                operation="insert_at_order",
            )
        self.items.insert(order, obj)

    def change_order(self, obj: Any, order: int, subset: Sequence[Any]) -> None:
        """Move obj to index order relative to subset.

        Only the slots occupied by subset members are rewritten, so objects
        outside the subset keep their positions.
        """
        self._require_stored(obj, "change_order")
        members = [item for item in subset if index_of(self.items, item) >= 0]
        slots = sorted(index_of(self.items, item) for item in members)
        if not 0 <= order < len(members):
            raise BackendError(
                f"Order {order} is outside [0, {len(members)})",
                operation="change_order",
            )
        members.pop(index_of(members, obj))
        members.insert(order, obj)
        for slot, member in zip(slots, members):
            self.items[slot] = member
        logger.debug("Moved object to order %d within %d rows", order, len(members))

    def update(self, obj: Any) -> None:
        # Objects are stored by reference; only membership needs checking.
        self._require_stored(obj, "update")

    def delete(self, obj: Any) -> None:
        del self.items[self._require_stored(obj, "delete")]

    def fetch(self, options: FetchOptions | None) -> list[Any]:
        return apply_fetch_options(self.items, options)

    def commit(self) -> None:
        if self._on_commit is not None:
            self._on_commit(self.items)
