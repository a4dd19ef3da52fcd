"""REST web-service backend over aiohttp.

Natively asynchronous. Objects are JSON mappings exchanged with a
collection endpoint:

    fetch   GET    {base_url}/{resource}?offset=&limit=&sort=&<field>=<value>
    insert  POST   {base_url}/{resource}           (response merged into obj)
    update  PUT    {base_url}/{resource}/{id}
    delete  DELETE {base_url}/{resource}/{id}

Connection-level failures (refused, reset, DNS, timeout) surface as
ConnectivityError so the store can consult the caller's retry decision.
HTTP error statuses surface as BackendError carrying the status and body.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping, MutableMapping, Sequence
from typing import Any

import aiohttp

from storekit.errors import BackendError, ConnectivityError, UnsupportedOperationError
from storekit.types import FetchOptions

logger = logging.getLogger(__name__)


def _query_params(options: FetchOptions | None) -> dict[str, str]:
    """Translate FetchOptions into query parameters.

    Mapping predicates become field=value pairs and string sorts are passed
    as sort=. Callable predicates or sorts cannot travel over the wire.
    """
    if options is None:
        return {}
    params: dict[str, str] = {}
    if options.offset:
        params["offset"] = str(options.offset)
    if options.limit is not None:
        params["limit"] = str(options.limit)
    if isinstance(options.sort, str):
        params["sort"] = options.sort
    elif options.sort is not None:
        raise UnsupportedOperationError(
            "Web service sort must be a field name", operation="fetch"
        )
    if isinstance(options.predicate, Mapping):
        params.update({str(k): str(v) for k, v in options.predicate.items()})
    elif options.predicate is not None:
        raise UnsupportedOperationError(
            "Web service predicate must be a mapping", operation="fetch"
        )
    params.update({str(k): str(v) for k, v in options.extra.items()})
    return params


class WebServiceBackend:
    """Collection resource on a JSON REST service.

    Args:
        base_url: Service root, e.g. "https://api.example.com/v1".
        resource: Collection path under base_url, e.g. "tasks".
        session: Existing aiohttp session. When omitted one is created on
            first use and closed by aclose().
        id_key: Field holding the object id.
        results_key: Field of the fetch response holding the list, when
            the service wraps results in an object.
        headers: Extra headers sent with every request.
        timeout: Total per-request timeout in seconds.
    """

    def __init__(
        self,
        base_url: str,
        resource: str,
        *,
        session: aiohttp.ClientSession | None = None,
        id_key: str = "id",
        results_key: str | None = None,
        headers: Mapping[str, str] | None = None,
        timeout: float | None = None,
    ) -> None:
        self.collection_url = f"{base_url.rstrip('/')}/{resource.strip('/')}"
        self.id_key = id_key
        self.results_key = results_key
        self.headers = dict(headers or {})
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session = session
        self._owns_session = session is None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers=self.headers, timeout=self._timeout
            )
            self._owns_session = True
        return self._session

    def _object_url(self, obj: Any, operation: str) -> str:
        object_id = obj.get(self.id_key) if isinstance(obj, Mapping) else None
        if object_id is None:
            raise BackendError(
                f"Object has no {self.id_key!r}", payload=obj, operation=operation
            )
        return f"{self.collection_url}/{object_id}"

    async def _request(
        self,
        operation: str,
        method: str,
        url: str,
        *,
        json: Any = None,
        params: Mapping[str, str] | None = None,
    ) -> Any:
        session = self._get_session()
        logger.debug("%s %s", method, url)
        try:
            async with session.request(method, url, json=json, params=params) as resp:
                if resp.status >= 400:
                    body = await resp.text()
                    raise BackendError(
                        f"{method} {url} returned {resp.status}",
                        payload={"status": resp.status, "body": body},
                        operation=operation,
                    )
                if resp.status == 204 or resp.content_length == 0:
                    return None
                return await resp.json(content_type=None)
        except (aiohttp.ClientConnectionError, asyncio.TimeoutError) as exc:
            raise ConnectivityError(
                f"{method} {url} failed: {exc}", operation=operation, cause=exc
            ) from exc
        except aiohttp.ClientError as exc:
            raise BackendError(
                f"{method} {url} failed: {exc}",
                payload=exc,
                operation=operation,
                cause=exc,
            ) from exc

    async def insert(self, obj: Any) -> None:
        created = await self._request("insert", "POST", self.collection_url, json=obj)
        if isinstance(created, Mapping) and isinstance(obj, MutableMapping):
            obj.update(created)

    async def insert_at_order(self, obj: Any, order: int) -> None:
        raise UnsupportedOperationError(
            "Web service collections are unordered", operation="insert_at_order"
        )

    async def change_order(self, obj: Any, order: int, subset: Sequence[Any]) -> None:
        raise UnsupportedOperationError(
            "Web service collections are unordered", operation="change_order"
        )

    async def update(self, obj: Any) -> None:
        await self._request("update", "PUT", self._object_url(obj, "update"), json=obj)

    async def delete(self, obj: Any) -> None:
        await self._request("delete", "DELETE", self._object_url(obj, "delete"))

    async def fetch(self, options: FetchOptions | None) -> list[Any]:
        payload = await self._request(
            "fetch", "GET", self.collection_url, params=_query_params(options)
        )
        if self.results_key is not None and isinstance(payload, Mapping):
            payload = payload.get(self.results_key)
        if payload is None:
            return []
        if not isinstance(payload, list):
            raise BackendError(
                "Fetch response is not a list", payload=payload, operation="fetch"
            )
        return payload

    def default_values(self) -> dict[str, Any]:
        return {"url": self.collection_url, "id_key": self.id_key}

    async def aclose(self) -> None:
        """Close the aiohttp session if this backend created it."""
        if self._owns_session and self._session is not None:
            await self._session.close()
        self._session = None
