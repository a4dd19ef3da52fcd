"""Shared helpers for the reference backend adapters."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping, Sequence
from typing import TYPE_CHECKING, Any

from storekit.types import FetchOptions

if TYPE_CHECKING:
    from storekit.store import DataStore


def read_field(obj: Any, name: str) -> Any:
    """Read a field from a mapping or an attribute from an object."""
    if isinstance(obj, Mapping):
        return obj.get(name)
    return getattr(obj, name, None)


def index_of(items: Sequence[Any], obj: Any) -> int:
    """Return the index of obj in items by identity, or -1."""
    for index, item in enumerate(items):
        if item is obj:
            return index
    return -1


def _matches(obj: Any, predicate: Any) -> bool:
    if predicate is None:
        return True
    if isinstance(predicate, Mapping):
        return all(read_field(obj, key) == value for key, value in predicate.items())
    if callable(predicate):
        return bool(predicate(obj))
    raise TypeError(f"Unsupported fetch predicate: {predicate!r}")


def _sort_key(sort: Any) -> tuple[Callable[[Any], Any], bool]:
    """Translate a sort value into (key function, reverse).

    Accepts a callable key or a field name, where a leading "-" means
    descending.
    """
    if callable(sort):
        return sort, False
    if isinstance(sort, str):
        reverse = sort.startswith("-")
        name = sort.lstrip("-")
        return (lambda obj: read_field(obj, name)), reverse
    raise TypeError(f"Unsupported fetch sort: {sort!r}")


def apply_fetch_options(
    items: Iterable[Any], options: FetchOptions | None
) -> list[Any]:
    """Filter, sort and page items the way the in-process backends read FetchOptions.

    predicate: None, a mapping of field -> required value, or a callable.
    sort: None, a field name ("-name" for descending), or a key callable.
    offset/limit: applied after filtering and sorting.
    """
    if options is None:
        return list(items)
    selected = [obj for obj in items if _matches(obj, options.predicate)]
    if options.sort is not None:
        key, reverse = _sort_key(options.sort)
        selected.sort(key=key, reverse=reverse)
    end = None if options.limit is None else options.offset + options.limit
    return selected[options.offset : end]


def passes_definition_rules(store: DataStore, obj: Any) -> bool:
    """Validate obj against its definition using the store's nil policy."""
    definition = store.definition_for_object(obj)
    return definition.validate(obj, allow_nil=store.supports_nil_values)
