"""Shared data types for the data store and its backend adapters."""

from __future__ import annotations

import copy
from collections.abc import Callable, Iterable, Mapping, MutableMapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from storekit.errors import DataStoreError, PropertyNotFoundError

Getter = Callable[[Any], Any]
Setter = Callable[[Any, Any], None]


# ============================================================
# Enums
# ============================================================


class StoreMode(Enum):
    """Which call surface a store is driven through."""

    SYNCHRONOUS = "synchronous"
    ASYNCHRONOUS = "asynchronous"


class ObjectState(Enum):
    """Lifecycle states for an object created or fetched through a store."""

    PENDING = "pending"
    PERSISTED = "persisted"
    DISCARDED = "discarded"


# ============================================================
# Entity definitions
# ============================================================


def _default_getter(name: str) -> Getter:
    def get(obj: Any) -> Any:
        if isinstance(obj, Mapping):
            return obj.get(name)
        return getattr(obj, name, None)

    return get


def _default_setter(name: str) -> Setter:
    def set_(obj: Any, value: Any) -> None:
        if isinstance(obj, MutableMapping):
            obj[name] = value
        else:
            setattr(obj, name, value)

    return set_


@dataclass(frozen=True)
class PropertyDefinition:
    """One named, typed property of an entity.

    Attributes:
        name: Property name, unique within its definition.
        type: Expected value type (per item when multi_valued), or None for any.
        getter: Custom read accessor ``getter(obj)``. Defaults to item access
            for mappings and attribute access otherwise.
        setter: Custom write accessor ``setter(obj, value)``.
        required: Whether an absent (None) value fails validation.
        default: Value assigned by DataDefinition.create(). Copied per object.
        validator: Optional predicate applied to non-None values.
        multi_valued: Whether the value is a collection of items.
    """

    name: str
    type: type | tuple[type, ...] | None = None
    getter: Getter | None = None
    setter: Setter | None = None
    required: bool = False
    default: Any = None
    validator: Callable[[Any], bool] | None = None
    multi_valued: bool = False

    def accepts(self, value: Any) -> bool:
        """Check a non-None value against the declared type and validator."""
        items = value if self.multi_valued else (value,)
        if self.multi_valued and not isinstance(value, Iterable):
            return False
        if self.type is not None:
            if not all(isinstance(item, self.type) for item in items):
                return False
        if self.validator is not None and not self.validator(value):
            return False
        return True


@dataclass(frozen=True)
class DataDefinition:
    """Describes an entity type: its properties and how to reach them.

    Immutable once constructed. The accessor table (property name to a
    getter/setter pair) is built here, once, so lookups by name never need
    reflection on the object itself. A definition may be shared read-only by
    any number of stores.

    Example:
        tasks = DataDefinition(
            entity_type="task",
            properties=[
                PropertyDefinition("title", str, required=True),
                PropertyDefinition("tags", str, multi_valued=True, default=[]),
            ],
        )
        task = tasks.create()          # {"title": None, "tags": []}
        tasks.set(task, "title", "Write docs")
    """

    entity_type: str
    properties: tuple[PropertyDefinition, ...] = ()
    factory: Callable[[], Any] = dict
    object_class: type | None = None
    _accessors: Mapping[str, tuple[Getter, Setter]] = field(
        init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        props = tuple(self.properties)
        accessors: dict[str, tuple[Getter, Setter]] = {}
        for prop in props:
            if prop.name in accessors:
                raise DataStoreError(
                    f"Duplicate property {prop.name!r} in definition "
                    f"{self.entity_type!r}"
                )
            accessors[prop.name] = (
                prop.getter or _default_getter(prop.name),
                prop.setter or _default_setter(prop.name),
            )
        object.__setattr__(self, "properties", props)
        object.__setattr__(self, "_accessors", accessors)

    @property
    def property_names(self) -> list[str]:
        """Property names in declaration order."""
        return [prop.name for prop in self.properties]

    def has_property(self, name: str) -> bool:
        return name in self._accessors

    def property_definition(self, name: str) -> PropertyDefinition:
        """Return the PropertyDefinition for name.

        Raises:
            PropertyNotFoundError: If name is not part of this definition.
        """
        for prop in self.properties:
            if prop.name == name:
                return prop
        raise PropertyNotFoundError(name, self.entity_type)

    def accessor(self, name: str) -> tuple[Getter, Setter]:
        try:
            return self._accessors[name]
        except KeyError:
            raise PropertyNotFoundError(name, self.entity_type) from None

    def get(self, obj: Any, name: str) -> Any:
        getter, _ = self.accessor(name)
        return getter(obj)

    def set(self, obj: Any, name: str, value: Any) -> None:
        _, setter = self.accessor(name)
        setter(obj, value)

    def create(self) -> Any:
        """Allocate a fresh instance and apply property defaults.

        Mapping instances get every property key (None when no default is
        declared). Other objects only receive declared non-None defaults.
        """
        obj = self.factory()
        is_mapping = isinstance(obj, MutableMapping)
        for prop in self.properties:
            if prop.default is not None or is_mapping:
                self.set(obj, prop.name, copy.copy(prop.default))
        return obj

    def validate(self, obj: Any, allow_nil: bool = True) -> bool:
        """Check obj against the per-property rules.

        Args:
            obj: Instance to check.
            allow_nil: Whether absent values are acceptable for properties
                that are not marked required.

        Returns:
            True if every property passes.
        """
        for prop in self.properties:
            value = self.get(obj, prop.name)
            if value is None:
                if prop.required or not allow_nil:
                    return False
                continue
            if not prop.accepts(value):
                return False
        return True

    def matches(self, obj: Any) -> bool:
        """Whether obj is recognizably an instance of this entity type."""
        return self.object_class is not None and isinstance(obj, self.object_class)


# ============================================================
# Value objects passed through the store
# ============================================================


@dataclass(frozen=True)
class FetchOptions:
    """Filter, sort and paging criteria for a fetch.

    The store never looks inside; the options are handed to the backend
    adapter as-is and each adapter decides what predicate and sort mean
    for its medium.
    """

    predicate: Any = None
    sort: Any = None
    offset: int = 0
    limit: int | None = None
    extra: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Binding:
    """Ties a store to a single property on an external owner object."""

    owner: Any
    property_name: str
    definition: DataDefinition


@dataclass(frozen=True)
class Outcome:
    """Terminal result of an asynchronous store operation.

    Attributes:
        ok: True when the success continuation fired.
        value: Delivered value (fetch results; None for mutations).
        error: The reported error when ok is False.
        attempts: Number of times the backend was invoked.
    """

    ok: bool
    value: Any = None
    error: DataStoreError | None = None
    attempts: int = 0
