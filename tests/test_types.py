"""Tests for entity definitions and value types."""

from __future__ import annotations

import dataclasses

import pytest

from storekit.errors import DataStoreError, PropertyNotFoundError
from storekit.types import (
    DataDefinition,
    FetchOptions,
    ObjectState,
    Outcome,
    PropertyDefinition,
    StoreMode,
)


class Contact:
    def __init__(self) -> None:
        self.name = ""
        self.emails: list[str] = []


@pytest.fixture
def contact_definition() -> DataDefinition:
    return DataDefinition(
        entity_type="contact",
        properties=[
            PropertyDefinition("name", str, required=True),
            PropertyDefinition("emails", str, multi_valued=True, default=[]),
            PropertyDefinition(
                "age", int, validator=lambda value: 0 <= value < 150
            ),
        ],
        factory=Contact,
        object_class=Contact,
    )


class TestPropertyDefinition:
    """Test PropertyDefinition.accepts."""

    def test_type_check(self) -> None:
        prop = PropertyDefinition("title", str)
        assert prop.accepts("x") is True
        assert prop.accepts(3) is False

    def test_untyped_accepts_anything(self) -> None:
        assert PropertyDefinition("blob").accepts(object()) is True

    def test_multi_valued_checks_each_item(self) -> None:
        prop = PropertyDefinition("tags", str, multi_valued=True)
        assert prop.accepts(["a", "b"]) is True
        assert prop.accepts(["a", 1]) is False
        assert prop.accepts(5) is False

    def test_validator(self) -> None:
        prop = PropertyDefinition("age", int, validator=lambda value: value >= 0)
        assert prop.accepts(1) is True
        assert prop.accepts(-1) is False


class TestDataDefinition:
    """Test DataDefinition construction and accessors."""

    def test_properties_become_tuple(self, contact_definition: DataDefinition) -> None:
        assert isinstance(contact_definition.properties, tuple)
        assert contact_definition.property_names == ["name", "emails", "age"]

    def test_is_immutable(self, contact_definition: DataDefinition) -> None:
        with pytest.raises(dataclasses.FrozenInstanceError):
            contact_definition.entity_type = "other"  # type: ignore[misc]

    def test_duplicate_property_rejected(self) -> None:
        with pytest.raises(DataStoreError, match="Duplicate property"):
            DataDefinition(
                "dup", (PropertyDefinition("a"), PropertyDefinition("a"))
            )

    def test_property_lookup(self, contact_definition: DataDefinition) -> None:
        assert contact_definition.has_property("name") is True
        assert contact_definition.has_property("phone") is False
        assert contact_definition.property_definition("age").type is int
        with pytest.raises(PropertyNotFoundError) as excinfo:
            contact_definition.property_definition("phone")
        assert excinfo.value.entity_type == "contact"

    def test_unknown_accessor(self, contact_definition: DataDefinition) -> None:
        with pytest.raises(PropertyNotFoundError):
            contact_definition.get(Contact(), "phone")

    def test_create_object_class(self, contact_definition: DataDefinition) -> None:
        contact = contact_definition.create()
        assert isinstance(contact, Contact)
        assert contact.emails == []
        assert contact.name == ""

    def test_create_copies_defaults(self) -> None:
        tags = DataDefinition(
            "tagged", (PropertyDefinition("tags", str, multi_valued=True, default=[]),)
        )
        first = tags.create()
        second = tags.create()
        first["tags"].append("x")
        assert second["tags"] == []

    def test_mapping_gets_every_key(self) -> None:
        definition = DataDefinition(
            "row", (PropertyDefinition("a"), PropertyDefinition("b", default=2))
        )
        assert definition.create() == {"a": None, "b": 2}

    def test_custom_accessors(self) -> None:
        store: dict[str, str] = {}
        definition = DataDefinition(
            "upper",
            (
                PropertyDefinition(
                    "title",
                    getter=lambda obj: obj["_title"].upper(),
                    setter=lambda obj, value: obj.__setitem__("_title", value),
                ),
            ),
        )
        definition.set(store, "title", "hello")
        assert store == {"_title": "hello"}
        assert definition.get(store, "title") == "HELLO"

    def test_validate(self, contact_definition: DataDefinition) -> None:
        contact = contact_definition.create()
        contact.name = "Ada"
        contact.age = None
        assert contact_definition.validate(contact) is True
        assert contact_definition.validate(contact, allow_nil=False) is False

        contact.age = 200
        assert contact_definition.validate(contact) is False

        contact.age = 36
        contact.name = None
        assert contact_definition.validate(contact) is False

    def test_matches_object_class(self, contact_definition: DataDefinition) -> None:
        assert contact_definition.matches(Contact()) is True
        assert contact_definition.matches({"name": "Ada"}) is False
        assert DataDefinition("row").matches({}) is False


class TestValueTypes:
    """Test enums and small value objects."""

    def test_enum_values(self) -> None:
        assert StoreMode("asynchronous") is StoreMode.ASYNCHRONOUS
        assert ObjectState.PENDING.value == "pending"

    def test_fetch_options_defaults(self) -> None:
        options = FetchOptions()
        assert options.predicate is None
        assert options.offset == 0
        assert options.limit is None
        assert dict(options.extra) == {}

    def test_fetch_options_are_values(self) -> None:
        assert FetchOptions(limit=5) == FetchOptions(limit=5)

    def test_outcome_defaults(self) -> None:
        outcome = Outcome(ok=True)
        assert outcome.value is None
        assert outcome.error is None
        assert outcome.attempts == 0
