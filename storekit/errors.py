"""Error types raised and reported by the data store.

Every failure a DataStore reports is a DataStoreError subclass. Validation
and not-tracked errors are produced by the store itself and never reach a
backend. Connectivity errors are offered to the caller's retry decision
before they become terminal. Everything else an adapter raises is passed
through, wrapped in BackendError when it is not already a DataStoreError.
"""

from __future__ import annotations

from typing import Any


class DataStoreError(Exception):
    """Base class for all data store errors.

    Attributes:
        operation: Name of the store operation that failed (e.g. "insert").
        cause: Underlying exception, if the error wraps one.
    """

    def __init__(
        self,
        message: str,
        *,
        operation: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.operation = operation
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, operation={self.operation!r})"


class ValidationError(DataStoreError):
    """A validate_* hook rejected the object. The backend was not contacted."""


class ConnectivityError(DataStoreError):
    """The backend could not be reached."""


class BackendError(DataStoreError):
    """The backend was reached but the operation failed.

    Attributes:
        payload: Backend-specific detail, carried through untouched.
    """

    def __init__(
        self,
        message: str,
        *,
        payload: Any = None,
        operation: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message, operation=operation, cause=cause)
        self.payload = payload


class UnsupportedOperationError(DataStoreError):
    """The adapter does not support the requested capability (e.g. ordering)."""


class PropertyNotFoundError(DataStoreError):
    """A property name is not part of the entity definition."""

    def __init__(self, property_name: str, entity_type: str | None = None) -> None:
        where = f" on {entity_type!r}" if entity_type else ""
        super().__init__(f"Unknown property {property_name!r}{where}")
        self.property_name = property_name
        self.entity_type = entity_type


class NotTrackedError(DataStoreError):
    """The object is not tracked by the store in the state the operation needs."""


class MissingDefinitionError(DataStoreError):
    """The store has no default data definition and cannot be used yet."""


def wrap_backend_error(exc: BaseException, operation: str) -> DataStoreError:
    """Normalize an exception raised by an adapter into a DataStoreError.

    Args:
        exc: Exception raised by the adapter.
        operation: Name of the store operation being performed.

    Returns:
        exc itself when it already is a DataStoreError, a ConnectivityError
        for builtin ConnectionError, otherwise a BackendError carrying exc
        as its payload.
    """
    if isinstance(exc, DataStoreError):
        if exc.operation is None:
            exc.operation = operation
        return exc
    if isinstance(exc, ConnectionError):
        return ConnectivityError(
            str(exc) or "backend unreachable", operation=operation, cause=exc
        )
    return BackendError(
        f"{operation} failed: {exc}", payload=exc, operation=operation, cause=exc
    )
