"""Shared test fixtures for storekit tests.

Provides a recording backend, a capturing event bus and a sample definition.
"""

from __future__ import annotations

import pytest
from fakes import CapturingBus, RecordingBackend

from storekit.store import DataStore
from storekit.types import DataDefinition, PropertyDefinition


@pytest.fixture
def task_definition() -> DataDefinition:
    """Provide a mapping-based task definition."""
    return DataDefinition(
        entity_type="task",
        properties=(
            PropertyDefinition("id", str),
            PropertyDefinition("title", str, required=True),
            PropertyDefinition("done", bool, default=False),
            PropertyDefinition("tags", str, multi_valued=True, default=[]),
        ),
    )


@pytest.fixture
def bus() -> CapturingBus:
    """Provide a fresh capturing bus."""
    return CapturingBus()


@pytest.fixture
def backend() -> RecordingBackend:
    """Provide a fresh recording backend."""
    return RecordingBackend()


@pytest.fixture
def store(
    backend: RecordingBackend, task_definition: DataDefinition, bus: CapturingBus
) -> DataStore:
    """Provide a synchronous store over the recording backend."""
    return DataStore(backend, task_definition, bus=bus)
