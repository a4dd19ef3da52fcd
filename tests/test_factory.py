"""Tests for building backends and stores from configuration."""

from __future__ import annotations

import os
from pathlib import Path
from unittest.mock import patch

import pytest

from storekit.config import BackendConfig, StoreConfig, StoreKitConfig
from storekit.events import EventBus
from storekit.types import DataDefinition, StoreMode
from storekit_backends import (
    BACKENDS,
    ArrayBackend,
    DuckDBBackend,
    PreferencesBackend,
    WebServiceBackend,
    build_backend,
    open_store,
)


class TestBuildBackend:
    """Test build_backend."""

    def test_known_names(self) -> None:
        assert BACKENDS == {"array", "duckdb", "preferences", "web"}

    def test_array_is_default(self) -> None:
        assert isinstance(build_backend(BackendConfig()), ArrayBackend)

    def test_duckdb(self) -> None:
        backend = build_backend(
            BackendConfig(backend="DuckDB", path=":memory:", resource="notes")
        )
        try:
            assert isinstance(backend, DuckDBBackend)
            assert backend.table == "notes"
        finally:
            backend.close()

    def test_preferences(self, tmp_path: Path) -> None:
        backend = build_backend(
            BackendConfig(
                backend="preferences",
                path=str(tmp_path),
                resource="ui",
                extra={"id_key": "key"},
            )
        )
        try:
            assert isinstance(backend, PreferencesBackend)
            assert backend.namespace == "ui"
            assert backend.id_key == "key"
        finally:
            backend.close()

    def test_web(self) -> None:
        backend = build_backend(
            BackendConfig(
                backend="web",
                url="https://api.example.com/v1/",
                resource="tasks",
                extra={"results_key": "items"},
            )
        )
        assert isinstance(backend, WebServiceBackend)
        assert backend.collection_url == "https://api.example.com/v1/tasks"
        assert backend.results_key == "items"

    def test_web_requires_url_and_resource(self) -> None:
        with pytest.raises(ValueError, match="url and resource"):
            build_backend(BackendConfig(backend="web", url="https://x"))

    def test_unknown_backend(self) -> None:
        with pytest.raises(ValueError, match="Unknown backend"):
            build_backend(BackendConfig(backend="cassette"))


class TestOpenStore:
    """Test open_store."""

    def test_wraps_configured_backend(self, task_definition: DataDefinition) -> None:
        bus = EventBus()
        config = StoreKitConfig(
            store=StoreConfig(supports_nil_values=False, defaults={"page": 1})
        )
        store = open_store(config, task_definition, bus=bus)
        assert isinstance(store.backend, ArrayBackend)
        assert store.bus is bus
        assert store.supports_nil_values is False
        assert store.defaults == {"page": 1}
        assert store.default_definition is task_definition

    def test_from_environment(self, task_definition: DataDefinition) -> None:
        env = {
            "STOREKIT_BACKEND": "duckdb",
            "STOREKIT_PATH": ":memory:",
            "STOREKIT_RESOURCE": "tasks",
            "STOREKIT_MODE": "synchronous",
        }
        with patch.dict(os.environ, env, clear=True):
            config = StoreKitConfig.from_env()
        with open_store(config, task_definition) as store:
            assert isinstance(store.backend, DuckDBBackend)
            assert store.store_mode is StoreMode.SYNCHRONOUS
            task = store.create_object()
            task["title"] = "configured"
            assert store.insert(task) is True
            assert len(store.fetch()) == 1
