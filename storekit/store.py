"""The data store: one contract over any backend adapter.

DataStore owns everything that is independent of the storage medium:

- Object lifecycle. Objects from create_object() are pending until they
  are inserted (persisted) or discarded. Objects from the latest fetch are
  persisted too. Deleting a persisted object stops tracking it.
- Validation gating. Every mutation runs its validate_* hook first; a
  rejected object never reaches the backend.
- Dispatch. The synchronous surface returns bool (details in last_error)
  or results. The asynchronous surface returns an asyncio.Task at once and
  reports through success/failure continuations.
- Connectivity retry. On a connectivity failure the caller's no_connection
  predicate decides whether to wait for CONNECTIVITY_RESTORED on the bus
  and try again, or to fail.
- Post-fetch augmentation. An optional action transforms asynchronous
  fetch results before delivery.

Usage:
    store = DataStore(ArrayBackend(), tasks_definition)
    task = store.create_object()
    store.set_value("Write docs", "title", task)
    if not store.insert(task):
        print(store.last_error)

    store.async_fetch(
        FetchOptions(limit=20),
        success=show_rows,
        failure=show_error,
        no_connection=lambda: True,
    )
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import threading
from collections.abc import Awaitable, Callable, Iterable, Mapping, Sequence
from types import MappingProxyType
from typing import Any

from storekit.config import StoreConfig
from storekit.errors import (
    ConnectivityError,
    DataStoreError,
    MissingDefinitionError,
    NotTrackedError,
    UnsupportedOperationError,
    ValidationError,
    wrap_backend_error,
)
from storekit.events import BusEvent, EventBus, StoreEvent, Subscription
from storekit.types import (
    Binding,
    DataDefinition,
    FetchOptions,
    ObjectState,
    Outcome,
    StoreMode,
)

logger = logging.getLogger(__name__)

SuccessCallback = Callable[..., None]
FailureCallback = Callable[[DataStoreError], None]
NoConnectionCallback = Callable[[], bool]
PostFetchAction = Callable[[list[Any]], Any]

# State an object must be in before each mutation may proceed.
_REQUIRED_STATE: dict[str, ObjectState] = {
    "insert": ObjectState.PENDING,
    "insert_at_order": ObjectState.PENDING,
    "change_order": ObjectState.PERSISTED,
    "update": ObjectState.PERSISTED,
    "delete": ObjectState.PERSISTED,
}


def _infer_mode(backend: Any) -> StoreMode:
    if inspect.iscoroutinefunction(getattr(backend, "insert", None)):
        return StoreMode.ASYNCHRONOUS
    return StoreMode.SYNCHRONOUS


async def _await(awaitable: Awaitable[Any]) -> Any:
    return await awaitable


class DataStore:
    """Uniform create/read/update/delete/reorder access to a backend adapter.

    Args:
        backend: Object implementing BackendAdapter or AsyncBackendAdapter.
        default_definition: Definition used when none is given. The store
            refuses to work until one is set.
        bus: Event bus to publish on and listen to. A private bus is
            created when omitted.
        mode: Dispatch mode. Falls back to config.mode, then to the
            backend's nature (coroutine methods mean asynchronous).
        config: Store settings (nil policy, defaults).

    Attributes:
        store_mode: Advisory. Tells the presentation layer which surface to
            drive; the store itself serves both surfaces in either mode.
        last_error: Reason the most recent synchronous mutation failed.
    """

    def __init__(
        self,
        backend: Any,
        default_definition: DataDefinition | None = None,
        *,
        bus: EventBus | None = None,
        mode: StoreMode | None = None,
        config: StoreConfig | None = None,
    ) -> None:
        config = config or StoreConfig()
        self.backend = backend
        self.bus = bus if bus is not None else EventBus()
        self.store_mode: StoreMode = mode or config.mode or _infer_mode(backend)
        self.supports_nil_values: bool = config.supports_nil_values
        self.post_fetch_action: PostFetchAction | None = None
        self.binding: Binding | None = None
        self.last_error: DataStoreError | None = None

        adapter_defaults = getattr(backend, "default_values", None)
        self.defaults: dict[str, Any] = {
            **(adapter_defaults() if adapter_defaults else {}),
            **config.defaults,
        }

        self._lock = threading.RLock()
        self._definitions: dict[str, DataDefinition] = {}
        self._default_definition: DataDefinition | None = None
        # id(obj) -> obj; holding the object keeps its id from being reused.
        self._pending: dict[int, Any] = {}
        self._persisted: dict[int, Any] = {}
        self._object_types: dict[int, str] = {}
        # Results of the latest fetch; replaced, not merged, by the next one.
        self._fetched: dict[int, Any] = {}
        self._runner: asyncio.Runner | None = None

        if default_definition is not None:
            self.default_definition = default_definition

        self._resume_subscription: Subscription | None = self.bus.subscribe(
            StoreEvent.APPLICATION_RESUMED, self._on_application_resumed
        )

    def __repr__(self) -> str:
        return (
            f"DataStore(backend={type(self.backend).__name__}, "
            f"mode={self.store_mode.value}, pending={len(self._pending)})"
        )

    def __enter__(self) -> DataStore:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    async def __aenter__(self) -> DataStore:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Definitions
    # ------------------------------------------------------------------

    @property
    def default_definition(self) -> DataDefinition | None:
        return self._default_definition

    @default_definition.setter
    def default_definition(self, definition: DataDefinition) -> None:
        with self._lock:
            self._definitions[definition.entity_type] = definition
            self._default_definition = definition

    @property
    def definitions(self) -> Mapping[str, DataDefinition]:
        """Registered definitions keyed by entity type (read-only snapshot)."""
        with self._lock:
            return MappingProxyType(dict(self._definitions))

    def add_definition(self, definition: DataDefinition) -> None:
        """Register a definition, replacing any previous one for its entity type."""
        with self._lock:
            self._definitions[definition.entity_type] = definition

    def definition_for(self, entity_type: str) -> DataDefinition | None:
        with self._lock:
            return self._definitions.get(entity_type)

    def definition_for_object(self, obj: Any) -> DataDefinition:
        """Return the definition describing obj.

        Objects created by this store use the definition they were created
        with. Others are matched by each definition's object_class, falling
        back to the default definition.
        """
        with self._lock:
            entity_type = self._object_types.get(id(obj))
            if entity_type is not None and self._is_tracked(obj):
                return self._definitions[entity_type]
            for definition in self._definitions.values():
                if definition.matches(obj):
                    return definition
        return self._require_default()

    def _require_default(self) -> DataDefinition:
        definition = self._default_definition
        if definition is None:
            raise MissingDefinitionError("Data store has no default data definition")
        return definition

    # ------------------------------------------------------------------
    # Object lifecycle
    # ------------------------------------------------------------------

    @property
    def pending(self) -> tuple[Any, ...]:
        """Objects created but not yet inserted or discarded."""
        with self._lock:
            return tuple(self._pending.values())

    def _is_persisted(self, obj: Any) -> bool:
        key = id(obj)
        return self._persisted.get(key) is obj or self._fetched.get(key) is obj

    def _is_tracked(self, obj: Any) -> bool:
        return self._pending.get(id(obj)) is obj or self._is_persisted(obj)

    def state_of(self, obj: Any) -> ObjectState:
        """Lifecycle state of obj.

        Objects this store does not track (discarded, deleted or never seen)
        report DISCARDED. Fetched objects count as persisted until the next
        fetch replaces them.
        """
        with self._lock:
            if self._pending.get(id(obj)) is obj:
                return ObjectState.PENDING
            if self._is_persisted(obj):
                return ObjectState.PERSISTED
        return ObjectState.DISCARDED

    def create_object(self, definition: DataDefinition | None = None) -> Any:
        """Allocate a new pending object. The backend is not contacted.

        Every object created here must later be inserted or discarded.

        Args:
            definition: Definition to build from. Defaults to the store's
                default definition; unregistered definitions are registered.

        Raises:
            MissingDefinitionError: If no definition is given and the store
                has no default.
        """
        if definition is None:
            definition = self._require_default()
        obj = definition.create()
        with self._lock:
            self._definitions.setdefault(definition.entity_type, definition)
            self._pending[id(obj)] = obj
            self._object_types[id(obj)] = definition.entity_type
        logger.debug("Created pending %s object", definition.entity_type)
        return obj

    def discard_uninserted(self, obj: Any) -> bool:
        """Drop a pending object.

        Returns:
            True if obj was pending and is now discarded, False (and no
            effect) otherwise.
        """
        key = id(obj)
        with self._lock:
            if self._pending.get(key) is not obj:
                return False
            del self._pending[key]
            self._object_types.pop(key, None)
        return True

    def force_discard_all_uninserted(self) -> int:
        """Discard every pending object at once.

        WILL_DISCARD_ALL_UNINSERTED is published first, even when nothing is
        pending, so observers can still inspect `pending` before the purge.

        Returns:
            Number of objects discarded.
        """
        self.bus.publish(StoreEvent.WILL_DISCARD_ALL_UNINSERTED, sender=self)
        with self._lock:
            discarded = len(self._pending)
            for key in self._pending:
                self._object_types.pop(key, None)
            self._pending.clear()
        logger.info("Discarded %d uninserted objects", discarded)
        return discarded

    def _mark_succeeded(self, operation: str, obj: Any) -> None:
        key = id(obj)
        with self._lock:
            if operation in ("insert", "insert_at_order"):
                self._pending.pop(key, None)
                self._persisted[key] = obj
            elif operation == "delete":
                self._persisted.pop(key, None)
                self._fetched.pop(key, None)
                self._object_types.pop(key, None)

    def _track_fetched(self, results: Any, replace: bool = True) -> None:
        """Remember fetched objects as persisted.

        Args:
            results: What the backend or post-fetch action returned.
            replace: Drop the previous fetch's objects first. Objects
                inserted through this store are unaffected.
        """
        with self._lock:
            if replace:
                self._fetched = {}
            if not isinstance(results, Iterable) or isinstance(results, (str, bytes)):
                return
            for obj in results:
                key = id(obj)
                if self._pending.get(key) is not obj:
                    self._fetched[key] = obj

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate_insert(self, obj: Any) -> bool:
        """Return True if obj may be inserted."""
        hook = getattr(self.backend, "validate_insert", None)
        return True if hook is None else bool(hook(self, obj))

    def validate_update(self, obj: Any) -> bool:
        """Return True if obj may be updated."""
        hook = getattr(self.backend, "validate_update", None)
        return True if hook is None else bool(hook(self, obj))

    def validate_delete(self, obj: Any) -> bool:
        """Return True if obj may be deleted."""
        hook = getattr(self.backend, "validate_delete", None)
        return True if hook is None else bool(hook(self, obj))

    def validate_order_change(self, obj: Any, order: int) -> bool:
        """Return True if obj may be moved to order."""
        hook = getattr(self.backend, "validate_order_change", None)
        return True if hook is None else bool(hook(self, obj, order))

    def _check(
        self,
        operation: str,
        obj: Any,
        order: int | None = None,
        subset: Sequence[Any] | None = None,
    ) -> None:
        """Run every local precondition of a mutation.

        A validate_* hook that raises instead of returning False counts as
        a rejection; the hook's exception becomes the error's cause.

        Raises:
            MissingDefinitionError, NotTrackedError, ValidationError, or the
            DataStoreError a hook raised.
        """
        self._require_default()
        required = _REQUIRED_STATE[operation]
        if self.state_of(obj) is not required:
            raise NotTrackedError(
                f"{operation} requires a {required.value} object of this store",
                operation=operation,
            )

        if operation == "insert_at_order" and order < 0:
            raise ValidationError(f"Order {order} is negative", operation=operation)
        if operation == "change_order":
            if not any(item is obj for item in subset):
                raise ValidationError(
                    "Object is not part of the given subset", operation=operation
                )
            if not 0 <= order < len(subset):
                raise ValidationError(
                    f"Order {order} is outside [0, {len(subset)})",
                    operation=operation,
                )

        try:
            if operation in ("insert", "insert_at_order"):
                valid = self.validate_insert(obj)
            elif operation == "change_order":
                valid = self.validate_order_change(obj, order)
            elif operation == "update":
                valid = self.validate_update(obj)
            else:
                valid = self.validate_delete(obj)
        except DataStoreError as exc:
            if exc.operation is None:
                exc.operation = operation
            raise
        except Exception as exc:
            raise ValidationError(
                f"{operation} validation raised {type(exc).__name__}: {exc}",
                operation=operation,
                cause=exc,
            ) from exc

        if not valid:
            raise ValidationError(
                f"{operation} rejected by validation", operation=operation
            )

    # ------------------------------------------------------------------
    # Synchronous data access
    # ------------------------------------------------------------------

    def _backend_method(self, operation: str) -> Callable[..., Any]:
        method = getattr(self.backend, operation, None)
        if method is None:
            raise UnsupportedOperationError(
                f"{type(self.backend).__name__} does not implement {operation}",
                operation=operation,
            )
        return method

    def _call_backend(self, operation: str, *args: Any) -> Any:
        method = self._backend_method(operation)
        try:
            result = method(*args)
            if inspect.isawaitable(result):
                result = self._run_to_completion(operation, result)
        except Exception as exc:
            raise wrap_backend_error(exc, operation)
        return result

    def _run_to_completion(self, operation: str, awaitable: Awaitable[Any]) -> Any:
        """Drive an adapter coroutine from the synchronous surface.

        Every call runs on the same loop, owned by the store and closed by
        close(), so adapter resources bound to a loop (an aiohttp session,
        for instance) stay usable from one call to the next.
        """
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            if self._runner is None:
                self._runner = asyncio.Runner()
            return self._runner.run(_await(awaitable))
        if inspect.iscoroutine(awaitable):
            awaitable.close()
        raise UnsupportedOperationError(
            f"Cannot run asynchronous backend {operation} synchronously inside "
            "a running event loop; use the async_* methods",
            operation=operation,
        )

    def _perform(
        self,
        operation: str,
        obj: Any,
        args: tuple[Any, ...],
        order: int | None = None,
        subset: Sequence[Any] | None = None,
    ) -> bool:
        self.last_error = None
        try:
            self._check(operation, obj, order, subset)
            logger.debug("Dispatching %s to %s", operation, type(self.backend).__name__)
            self._call_backend(operation, *args)
        except Exception as exc:
            self.last_error = wrap_backend_error(exc, operation)
            logger.warning("%s failed: %s", operation, self.last_error)
            return False
        self._mark_succeeded(operation, obj)
        return True

    def insert(self, obj: Any) -> bool:
        """Insert a pending object.

        Returns:
            True if successful. On False, last_error holds the reason.
        """
        return self._perform("insert", obj, (obj,))

    def insert_at_order(self, obj: Any, order: int) -> bool:
        """Insert a pending object at a position. Ordered backends only."""
        return self._perform("insert_at_order", obj, (obj, order), order=order)

    def change_order(self, obj: Any, order: int, subset: Sequence[Any]) -> bool:
        """Move a persisted object to index order within subset.

        subset is the list the index is relative to, e.g. a filtered view.
        An index outside [0, len(subset)) fails without touching the backend.
        """
        return self._perform(
            "change_order", obj, (obj, order, subset), order=order, subset=subset
        )

    def update(self, obj: Any) -> bool:
        """Write back a persisted object."""
        return self._perform("update", obj, (obj,))

    def delete(self, obj: Any) -> bool:
        """Delete a persisted object; the store stops tracking it."""
        return self._perform("delete", obj, (obj,))

    def fetch(self, options: FetchOptions | None = None) -> list[Any]:
        """Fetch objects matching options and return the backend's results.

        The post-fetch action is not applied here; it belongs to async_fetch.

        Raises:
            DataStoreError: Whatever the backend reported.
        """
        self._require_default()
        results = self._call_backend("fetch", options)
        if results is None:
            results = []
        self._track_fetched(results)
        return results

    # ------------------------------------------------------------------
    # Property access
    # ------------------------------------------------------------------

    def get_value(self, property_name: str, obj: Any) -> Any:
        """Return obj's value for property_name.

        Raises:
            PropertyNotFoundError: If the definition has no such property.
        """
        return self.definition_for_object(obj).get(obj, property_name)

    def set_value(self, value: Any, property_name: str, obj: Any) -> None:
        self.definition_for_object(obj).set(obj, property_name, value)

    def string_value(self, property_name: str, obj: Any, delimiter: str = ";") -> str:
        """Return the value as text, joining multiple values with delimiter."""
        value = self.get_value(property_name, obj)
        if value is None:
            return ""
        if isinstance(value, str):
            return value
        if isinstance(value, Iterable) and not isinstance(value, (bytes, Mapping)):
            return delimiter.join("" if item is None else str(item) for item in value)
        return str(value)

    # ------------------------------------------------------------------
    # Asynchronous data access
    # ------------------------------------------------------------------

    def async_insert(
        self,
        obj: Any,
        *,
        success: SuccessCallback | None = None,
        failure: FailureCallback | None = None,
        no_connection: NoConnectionCallback | None = None,
    ) -> asyncio.Task[Outcome]:
        """Insert a pending object without blocking.

        Must be called from a running event loop. Returns immediately; the
        returned task resolves to the Outcome once success() or
        failure(error) has been called. When the backend is unreachable,
        no_connection() is asked whether to retry once CONNECTIVITY_RESTORED
        is published on the bus (True) or to fail now (False).
        """
        return self._dispatch(
            "insert", obj, (obj,), success, failure, no_connection
        )

    def async_insert_at_order(
        self,
        obj: Any,
        order: int,
        *,
        success: SuccessCallback | None = None,
        failure: FailureCallback | None = None,
        no_connection: NoConnectionCallback | None = None,
    ) -> asyncio.Task[Outcome]:
        return self._dispatch(
            "insert_at_order",
            obj,
            (obj, order),
            success,
            failure,
            no_connection,
            order=order,
        )

    def async_change_order(
        self,
        obj: Any,
        order: int,
        subset: Sequence[Any],
        *,
        success: SuccessCallback | None = None,
        failure: FailureCallback | None = None,
        no_connection: NoConnectionCallback | None = None,
    ) -> asyncio.Task[Outcome]:
        return self._dispatch(
            "change_order",
            obj,
            (obj, order, subset),
            success,
            failure,
            no_connection,
            order=order,
            subset=subset,
        )

    def async_update(
        self,
        obj: Any,
        *,
        success: SuccessCallback | None = None,
        failure: FailureCallback | None = None,
        no_connection: NoConnectionCallback | None = None,
    ) -> asyncio.Task[Outcome]:
        return self._dispatch(
            "update", obj, (obj,), success, failure, no_connection
        )

    def async_delete(
        self,
        obj: Any,
        *,
        success: SuccessCallback | None = None,
        failure: FailureCallback | None = None,
        no_connection: NoConnectionCallback | None = None,
    ) -> asyncio.Task[Outcome]:
        return self._dispatch(
            "delete", obj, (obj,), success, failure, no_connection
        )

    def async_fetch(
        self,
        options: FetchOptions | None = None,
        *,
        success: SuccessCallback | None = None,
        failure: FailureCallback | None = None,
        no_connection: NoConnectionCallback | None = None,
    ) -> asyncio.Task[Outcome]:
        """Fetch without blocking and deliver the results to success(results).

        When post_fetch_action is set it is applied once to the backend's
        results and its return value is what success() receives. The action
        may be a plain function or a coroutine function.
        """
        return self._dispatch(
            "fetch", None, (options,), success, failure, no_connection
        )

    def _dispatch(
        self,
        operation: str,
        obj: Any,
        args: tuple[Any, ...],
        success: SuccessCallback | None,
        failure: FailureCallback | None,
        no_connection: NoConnectionCallback | None,
        order: int | None = None,
        subset: Sequence[Any] | None = None,
    ) -> asyncio.Task[Outcome]:
        loop = asyncio.get_running_loop()
        return loop.create_task(
            self._run(
                operation, obj, args, success, failure, no_connection, order, subset
            ),
            name=f"storekit-{operation}",
        )

    async def _run(
        self,
        operation: str,
        obj: Any,
        args: tuple[Any, ...],
        success: SuccessCallback | None,
        failure: FailureCallback | None,
        no_connection: NoConnectionCallback | None,
        order: int | None,
        subset: Sequence[Any] | None,
    ) -> Outcome:
        attempts = 0
        value: Any = None
        try:
            if operation == "fetch":
                self._require_default()
            else:
                self._check(operation, obj, order, subset)

            while True:
                attempts += 1
                try:
                    value = await self._call_backend_async(operation, *args)
                    break
                except ConnectivityError:
                    if not self._should_retry(operation, no_connection):
                        raise
                    await self._wait_for_connectivity(operation)
                    # The object may have been discarded or deleted meanwhile.
                    if operation == "fetch":
                        self._require_default()
                    else:
                        self._check(operation, obj, order, subset)

            if operation == "fetch":
                value = [] if value is None else value
                self._track_fetched(value)
                value = await self._post_fetch(value)
            else:
                self._mark_succeeded(operation, obj)
        except Exception as exc:
            error = wrap_backend_error(exc, operation)
            logger.warning(
                "Asynchronous %s failed after %d attempt(s): %s",
                operation,
                attempts,
                error,
            )
            self._notify(failure, error)
            return Outcome(ok=False, error=error, attempts=attempts)

        if operation == "fetch":
            self._notify(success, value)
        else:
            self._notify(success)
        return Outcome(ok=True, value=value, attempts=attempts)

    async def _call_backend_async(self, operation: str, *args: Any) -> Any:
        method = self._backend_method(operation)
        try:
            result = method(*args)
            if inspect.isawaitable(result):
                result = await result
        except Exception as exc:
            raise wrap_backend_error(exc, operation)
        return result

    def _should_retry(
        self, operation: str, no_connection: NoConnectionCallback | None
    ) -> bool:
        if no_connection is None:
            return False
        try:
            retry = bool(no_connection())
        except Exception:
            logger.exception("no_connection callback for %s raised", operation)
            return False
        logger.info(
            "Backend unreachable during %s; retry %s",
            operation,
            "requested" if retry else "declined",
        )
        return retry

    async def _wait_for_connectivity(self, operation: str) -> None:
        """Suspend until CONNECTIVITY_RESTORED is published on the bus."""
        loop = asyncio.get_running_loop()
        restored: asyncio.Future[None] = loop.create_future()

        def _resolve() -> None:
            if not restored.done():
                restored.set_result(None)

        def _on_restored(event: BusEvent) -> None:
            loop.call_soon_threadsafe(_resolve)

        subscription = self.bus.subscribe(
            StoreEvent.CONNECTIVITY_RESTORED, _on_restored
        )
        logger.info("Waiting for connectivity to retry %s", operation)
        try:
            await restored
        finally:
            self.bus.unsubscribe(subscription)
        logger.info("Connectivity restored; retrying %s", operation)

    async def _post_fetch(self, results: list[Any]) -> Any:
        action = self.post_fetch_action
        if action is None:
            return results
        try:
            augmented = action(results)
            if inspect.isawaitable(augmented):
                augmented = await augmented
        except Exception as exc:
            raise wrap_backend_error(exc, "fetch")
        self._track_fetched(augmented, replace=False)
        return augmented

    @staticmethod
    def _notify(callback: Callable[..., None] | None, *args: Any) -> None:
        if callback is None:
            return
        try:
            callback(*args)
        except Exception:
            logger.exception("Continuation %r raised", callback)

    # ------------------------------------------------------------------
    # Binding and data management
    # ------------------------------------------------------------------

    def bind_to(
        self, property_name: str, owner: Any, definition: DataDefinition
    ) -> None:
        """Bind the store to one property of an external owner object.

        Bookkeeping only: the presentation layer reads `binding` to know
        which owner property the store's contents represent.
        """
        self.add_definition(definition)
        self.binding = Binding(
            owner=owner, property_name=property_name, definition=definition
        )

    def commit(self) -> None:
        """Ask buffering backends to persist what they hold in memory."""
        hook = getattr(self.backend, "commit", None)
        if hook is not None:
            hook()

    def application_will_enter_foreground(self) -> None:
        """Give the backend a chance to reinitialize after a resume."""
        hook = getattr(self.backend, "on_resume", None)
        if hook is not None:
            logger.info("Reinitializing %s on resume", type(self.backend).__name__)
            hook()

    def _on_application_resumed(self, event: BusEvent) -> None:
        self.application_will_enter_foreground()

    def _stop_listening(self) -> None:
        if self._resume_subscription is not None:
            self.bus.unsubscribe(self._resume_subscription)
            self._resume_subscription = None

    def _runner_closable(self) -> bool:
        if self._runner is None:
            return False
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return True
        logger.warning(
            "Synchronous event loop left open; call close() outside a "
            "running loop to release it"
        )
        return False

    def close(self) -> None:
        """Stop listening on the bus and close the backend, if it can be.

        An asynchronous backend that only has aclose() is closed on the loop
        the synchronous surface used, so its loop-bound resources are
        released there.
        """
        self._stop_listening()
        hook = getattr(self.backend, "close", None)
        closable = self._runner_closable()
        try:
            if hook is not None:
                hook()
            elif closable:
                async_hook = getattr(self.backend, "aclose", None)
                if async_hook is not None:
                    self._runner.run(_await(async_hook()))
        finally:
            if closable:
                self._runner.close()
                self._runner = None

    async def aclose(self) -> None:
        """Like close(), but awaits the backend's aclose() when it has one."""
        hook = getattr(self.backend, "aclose", None)
        if hook is None:
            self.close()
            return
        self._stop_listening()
        await hook()
        # Warns when the synchronous surface's loop is still open.
        self._runner_closable()
