"""Tests for the aiohttp web-service backend."""

from __future__ import annotations

import asyncio
import itertools
import threading
from collections.abc import Iterator
from typing import Any

import pytest
from aiohttp import web
from aiohttp.test_utils import AioHTTPTestCase, unused_port

from storekit.errors import BackendError, ConnectivityError, UnsupportedOperationError
from storekit.store import DataStore
from storekit.types import (
    DataDefinition,
    FetchOptions,
    ObjectState,
    PropertyDefinition,
    StoreMode,
)
from storekit_backends import WebServiceBackend
from storekit_backends.web import _query_params

NOTES = DataDefinition(
    entity_type="note",
    properties=(
        PropertyDefinition("id", str),
        PropertyDefinition("text", str, required=True),
    ),
)

NOTES_KEY = web.AppKey("notes", dict)
REQUESTS_KEY = web.AppKey("requests", list)


def create_app() -> web.Application:
    """Build a small JSON collection service keeping notes in memory."""
    notes: dict[str, dict[str, Any]] = {}
    ids = itertools.count(1)
    requests: list[tuple[str, str]] = []

    @web.middleware
    async def record(request: web.Request, handler: Any) -> web.StreamResponse:
        requests.append((request.method, request.path_qs))
        return await handler(request)

    async def list_notes(request: web.Request) -> web.Response:
        query = dict(request.query)
        offset = int(query.pop("offset", 0))
        limit = query.pop("limit", None)
        sort = query.pop("sort", None)
        rows = [
            note
            for note in notes.values()
            if all(str(note.get(key)) == value for key, value in query.items())
        ]
        if sort:
            rows.sort(key=lambda note: note[sort.lstrip("-")], reverse=sort[0] == "-")
        end = None if limit is None else offset + int(limit)
        return web.json_response(rows[offset:end])

    async def wrapped(request: web.Request) -> web.Response:
        return web.json_response({"results": list(notes.values()), "count": len(notes)})

    async def create_note(request: web.Request) -> web.Response:
        body = await request.json()
        note_id = str(next(ids))
        notes[note_id] = {**body, "id": note_id}
        return web.json_response({"id": note_id}, status=201)

    async def replace_note(request: web.Request) -> web.Response:
        note_id = request.match_info["id"]
        if note_id not in notes:
            return web.json_response({"error": "not found"}, status=404)
        notes[note_id] = await request.json()
        return web.json_response(notes[note_id])

    async def delete_note(request: web.Request) -> web.Response:
        note_id = request.match_info["id"]
        if notes.pop(note_id, None) is None:
            return web.json_response({"error": "not found"}, status=404)
        return web.Response(status=204)

    async def broken(request: web.Request) -> web.Response:
        return web.json_response({"error": "boom"}, status=500)

    app = web.Application(middlewares=[record])
    app[NOTES_KEY] = notes
    app[REQUESTS_KEY] = requests
    app.router.add_get("/api/notes", list_notes)
    app.router.add_post("/api/notes", create_note)
    app.router.add_put("/api/notes/{id}", replace_note)
    app.router.add_delete("/api/notes/{id}", delete_note)
    app.router.add_get("/api/wrapped", wrapped)
    app.router.add_get("/api/broken", broken)
    return app


class TestQueryParams:
    """Test FetchOptions translation."""

    def test_none(self) -> None:
        assert _query_params(None) == {}

    def test_full_options(self) -> None:
        options = FetchOptions(
            predicate={"done": True},
            sort="-created",
            offset=10,
            limit=5,
            extra={"expand": "owner"},
        )
        assert _query_params(options) == {
            "done": "True",
            "sort": "-created",
            "offset": "10",
            "limit": "5",
            "expand": "owner",
        }

    def test_callable_predicate_unsupported(self) -> None:
        with pytest.raises(UnsupportedOperationError):
            _query_params(FetchOptions(predicate=lambda row: True))

    def test_callable_sort_unsupported(self) -> None:
        with pytest.raises(UnsupportedOperationError):
            _query_params(FetchOptions(sort=len))


class TestWebServiceBackend(AioHTTPTestCase):
    """Test cases for WebServiceBackend against a live test server."""

    async def get_application(self) -> web.Application:
        """Return the application instance for testing.

        Returns:
            Configured aiohttp application.
        """
        return create_app()

    async def asyncSetUp(self) -> None:
        await super().asyncSetUp()
        self.base_url = str(self.server.make_url("/api"))
        self.backend = WebServiceBackend(self.base_url, "notes")

    async def asyncTearDown(self) -> None:
        await self.backend.aclose()
        await super().asyncTearDown()

    async def test_insert_merges_response(self) -> None:
        """POST response fields are merged into the object."""
        note = {"text": "hello"}
        await self.backend.insert(note)
        assert note == {"text": "hello", "id": "1"}
        assert self.app[NOTES_KEY]["1"] == {"text": "hello", "id": "1"}

    async def test_fetch_with_options(self) -> None:
        """Mapping predicates, sort and paging travel as query parameters."""
        for text in ("b", "a", "c"):
            await self.backend.insert({"text": text, "kind": "memo"})
        await self.backend.insert({"text": "z", "kind": "todo"})

        rows = await self.backend.fetch(
            FetchOptions(predicate={"kind": "memo"}, sort="text", limit=2)
        )
        assert [row["text"] for row in rows] == ["a", "b"]
        method, path = self.app[REQUESTS_KEY][-1]
        assert method == "GET"
        assert "kind=memo" in path

    async def test_update_and_delete(self) -> None:
        """PUT and DELETE address the object by id."""
        note = {"text": "draft"}
        await self.backend.insert(note)
        note["text"] = "final"
        await self.backend.update(note)
        assert self.app[NOTES_KEY][note["id"]]["text"] == "final"

        await self.backend.delete(note)
        assert self.app[NOTES_KEY] == {}
        assert ("DELETE", "/api/notes/1") in self.app[REQUESTS_KEY]

    async def test_http_error_is_backend_error(self) -> None:
        """Error statuses carry status and body in the payload."""
        with pytest.raises(BackendError) as excinfo:
            await self.backend.update({"id": "404", "text": "ghost"})
        assert excinfo.value.payload["status"] == 404
        assert "not found" in excinfo.value.payload["body"]

    async def test_server_error(self) -> None:
        """A 500 on fetch is a BackendError."""
        backend = WebServiceBackend(self.base_url, "broken")
        try:
            with pytest.raises(BackendError):
                await backend.fetch(None)
        finally:
            await backend.aclose()

    async def test_results_key(self) -> None:
        """Wrapped fetch responses are unwrapped by results_key."""
        await self.backend.insert({"text": "a"})
        backend = WebServiceBackend(self.base_url, "wrapped", results_key="results")
        try:
            rows = await backend.fetch(None)
        finally:
            await backend.aclose()
        assert rows == [{"text": "a", "id": "1"}]

    async def test_non_list_response_rejected(self) -> None:
        """A fetch response that is not a list is a BackendError."""
        backend = WebServiceBackend(self.base_url, "wrapped")
        try:
            with pytest.raises(BackendError):
                await backend.fetch(None)
        finally:
            await backend.aclose()

    async def test_missing_id(self) -> None:
        """Update without an id never reaches the server."""
        with pytest.raises(BackendError):
            await self.backend.update({"text": "no id"})
        assert self.app[REQUESTS_KEY] == []

    async def test_ordering_unsupported(self) -> None:
        """Collections are unordered."""
        with pytest.raises(UnsupportedOperationError):
            await self.backend.insert_at_order({"text": "a"}, 0)
        with pytest.raises(UnsupportedOperationError):
            await self.backend.change_order({"id": "1"}, 0, [])

    async def test_shared_session_not_closed(self) -> None:
        """A caller-provided session stays open after aclose()."""
        backend = WebServiceBackend(self.base_url, "notes", session=self.client.session)
        await backend.insert({"text": "via client"})
        await backend.aclose()
        assert not self.client.session.closed

    async def test_store_over_web_service(self) -> None:
        """A DataStore drives the web service through its async surface."""
        store = DataStore(self.backend, NOTES)
        assert store.store_mode is StoreMode.ASYNCHRONOUS
        assert store.defaults["url"] == f"{self.base_url}/notes"

        note = store.create_object()
        store.set_value("remote note", "text", note)
        outcome = await store.async_insert(note)
        assert outcome.ok is True
        assert note["id"] == "1"

        delivered: list[Any] = []
        await store.async_fetch(success=delivered.append)
        (rows,) = delivered
        assert rows == [{"text": "remote note", "id": "1"}]
        assert store.state_of(rows[0]) is ObjectState.PERSISTED

        outcome = await store.async_delete(rows[0])
        assert outcome.ok is True
        assert self.app[NOTES_KEY] == {}

    async def test_store_reports_http_failure(self) -> None:
        """HTTP errors bypass the retry decision."""
        store = DataStore(self.backend, NOTES)
        self.app[NOTES_KEY]["9"] = {"id": "9", "text": "server side"}
        (remote,) = (await store.async_fetch()).value
        del self.app[NOTES_KEY]["9"]

        decisions: list[bool] = []
        outcome = await store.async_update(
            remote, no_connection=lambda: decisions.append(True) or True
        )
        assert isinstance(outcome.error, BackendError)
        assert decisions == []


class TestUnreachableService:
    """Connection failures surface as ConnectivityError."""

    @pytest.mark.asyncio
    async def test_refused_connection(self) -> None:
        backend = WebServiceBackend("http://127.0.0.1:1", "notes", timeout=5)
        try:
            with pytest.raises(ConnectivityError):
                await backend.fetch(None)
        finally:
            await backend.aclose()

    @pytest.mark.asyncio
    async def test_store_declines_retry(self) -> None:
        backend = WebServiceBackend("http://127.0.0.1:1", "notes", timeout=5)
        store = DataStore(backend, NOTES)
        failures: list[Exception] = []
        outcome = await store.async_fetch(
            failure=failures.append, no_connection=lambda: False
        )
        await store.aclose()
        assert outcome.attempts == 1
        assert len(failures) == 1
        assert isinstance(failures[0], ConnectivityError)


@pytest.fixture
def notes_service() -> Iterator[tuple[str, web.Application]]:
    """Serve create_app() on its own loop in a background thread."""
    app = create_app()
    loop = asyncio.new_event_loop()
    runner = web.AppRunner(app)
    loop.run_until_complete(runner.setup())
    port = unused_port()
    loop.run_until_complete(web.TCPSite(runner, "127.0.0.1", port).start())
    thread = threading.Thread(target=loop.run_forever, daemon=True)
    thread.start()
    try:
        yield f"http://127.0.0.1:{port}/api", app
    finally:
        asyncio.run_coroutine_threadsafe(runner.cleanup(), loop).result(timeout=5)
        loop.call_soon_threadsafe(loop.stop)
        thread.join(timeout=5)
        loop.close()


class TestSyncSurfaceOverWebService:
    """The synchronous surface keeps one session alive across calls."""

    def test_consecutive_sync_calls(
        self, notes_service: tuple[str, web.Application]
    ) -> None:
        base_url, app = notes_service
        backend = WebServiceBackend(base_url, "notes", timeout=5)
        store = DataStore(backend, NOTES)

        for text in ("first", "second"):
            note = store.create_object()
            store.set_value(text, "text", note)
            assert store.insert(note) is True, store.last_error

        assert sorted(row["text"] for row in store.fetch()) == ["first", "second"]
        assert len(app[NOTES_KEY]) == 2

        store.close()
        assert backend._session is None
