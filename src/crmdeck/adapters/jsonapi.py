"""JSON:API resource adapter over httpx.

Example:
    adapter = JsonApiAdapter("https://crm.example.com/api/v1", "/leads", token=token)
    page = await adapter.fetch_collection({"page": 1, "per_page": 10})
    await adapter.delete(42)

Collections are returned as ``{"data": [...flattened...], "meta": {...},
"links": {...}}``, which ``normalize_collection`` understands.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping
from typing import Any

import httpx

from crmdeck.core.errors import (
    AdapterError,
    AuthenticationError,
    NetworkError,
    NotFoundError,
    PermissionDeniedError,
    RateLimitError,
    ServerError,
    ValidationError,
)

logger = logging.getLogger(__name__)

# Query parameters renamed on the wire; everything else passes through.
_PARAM_NAMES = {
    "page": "page",
    "per_page": "limit",
    "sort_by": "sortBy",
    "sort_order": "sortOrder",
    "search": "search",
}


# =============================================================================
# Serialization
# =============================================================================


def build_query_params(params: Mapping[str, Any] | None) -> dict[str, str]:
    """Translate view parameters into backend query parameters.

    ``per_page`` becomes ``limit``; ``sort_by``/``sort_order`` become
    camelCase; ``None`` and empty values are dropped.
    """
    query: dict[str, str] = {}
    for key, value in (params or {}).items():
        if value is None or value == "":
            continue
        if isinstance(value, bool):
            value = str(value).lower()
        query[_PARAM_NAMES.get(key, key)] = str(value)
    return query


Ref = tuple[str, str]


def _flatten(resource: Any, included: dict[Ref, Any], seen: frozenset[Ref]) -> Any:
    if not isinstance(resource, Mapping):
        return resource
    # Some backends wrap collection members in another "data" envelope.
    if "data" in resource and "attributes" not in resource and "id" not in resource:
        return _flatten(resource["data"], included, seen)
    if "attributes" not in resource:
        return dict(resource)

    ref = (str(resource.get("type")), str(resource.get("id")))
    result: dict[str, Any] = {"id": resource.get("id"), "type": resource.get("type")}
    result.update(resource.get("attributes") or {})

    for name, relationship in (resource.get("relationships") or {}).items():
        if not isinstance(relationship, Mapping) or "data" not in relationship:
            continue
        data = relationship["data"]
        if data is None:
            result[name] = None
        elif isinstance(data, list):
            result[name] = [_resolve(r, included, seen | {ref}) for r in data]
        else:
            result[name] = _resolve(data, included, seen | {ref})
    return result


def _resolve(ref: Mapping[str, Any], included: dict[Ref, Any], seen: frozenset[Ref]) -> Any:
    key = (str(ref.get("type")), str(ref.get("id")))
    found = included.get(key)
    if found is None or key in seen:
        return {"id": ref.get("id"), "type": ref.get("type")}
    return _flatten(found, included, seen)


def deserialize(document: Any) -> Any:
    """Flatten a JSON:API document.

    ``attributes`` are merged into each resource next to ``id`` and ``type``;
    relationships are replaced by the matching ``included`` resource (or a
    bare ``{"id", "type"}`` reference). Already-flat payloads pass through.
    """
    if not document:
        return None
    if isinstance(document, Mapping) and "data" in document:
        data = document["data"]
        included_list = document.get("included") or []
    else:
        data, included_list = document, []
    included = {
        (str(r.get("type")), str(r.get("id"))): r
        for r in included_list
        if isinstance(r, Mapping)
    }
    if isinstance(data, list):
        return [_flatten(r, included, frozenset()) for r in data]
    if data is None:
        return None
    return _flatten(data, included, frozenset())


# =============================================================================
# Adapter
# =============================================================================


class JsonApiAdapter:
    """Resource adapter for a JSON:API backend.

    Args:
        base_url: API root, e.g. ``https://crm.example.com/api/v1``.
        endpoint: Resource path, e.g. ``/leads``.
        token: Bearer token, if the backend requires one.
        timeout: Request timeout in seconds.
        client: Pre-built ``httpx.AsyncClient`` (tests pass one with a
            ``MockTransport``); otherwise a client is created per request.
        dedicated_search: Expose ``search()`` against ``{endpoint}/search``.
    """

    def __init__(
        self,
        base_url: str,
        endpoint: str,
        *,
        token: str | None = None,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
        dedicated_search: bool = True,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.endpoint = "/" + endpoint.strip("/")
        self.token = token
        self.timeout = timeout
        self._client = client
        if not dedicated_search:
            # has_search() looks for a callable attribute
            self.search = None  # type: ignore[assignment]

    @property
    def service_name(self) -> str:
        return self.endpoint.strip("/") or "api"

    # -- CRUD ----------------------------------------------------------------

    async def fetch_collection(self, params: dict[str, Any]) -> dict[str, Any]:
        return self._collection(await self._request("GET", self.endpoint, params=params))

    async def search(self, query: str, params: dict[str, Any]) -> dict[str, Any]:
        merged = {**params, "search": query}
        return self._collection(
            await self._request("GET", f"{self.endpoint}/search", params=merged)
        )

    async def get(self, entity_id: Any) -> Any:
        return deserialize(await self._request("GET", f"{self.endpoint}/{entity_id}"))

    async def create(self, data: dict[str, Any]) -> Any:
        return deserialize(await self._request("POST", self.endpoint, json=data))

    async def update(self, entity_id: Any, data: dict[str, Any]) -> Any:
        return deserialize(await self._request("PUT", f"{self.endpoint}/{entity_id}", json=data))

    async def delete(self, entity_id: Any) -> None:
        await self._request("DELETE", f"{self.endpoint}/{entity_id}")

    # -- transport -----------------------------------------------------------

    @staticmethod
    def _collection(document: Any) -> dict[str, Any]:
        document = document if isinstance(document, Mapping) else {"data": document}
        return {
            "data": deserialize(document) or [],
            "meta": document.get("meta") or {},
            "links": document.get("links") or {},
        }

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/vnd.api+json, application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> Any:
        url = f"{self.base_url}{path}"
        start_time = time.monotonic()
        try:
            if self._client is not None:
                response = await self._client.request(
                    method,
                    url,
                    params=build_query_params(params),
                    json=json,
                    headers=self._headers(),
                    timeout=self.timeout,
                )
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.request(
                        method,
                        url,
                        params=build_query_params(params),
                        json=json,
                        headers=self._headers(),
                    )
        except httpx.TimeoutException as e:
            raise NetworkError(f"Request to {path} timed out", details={"error": str(e)}) from e
        except httpx.RequestError as e:
            raise NetworkError(
                "Unable to connect to the server. Please ensure the backend is running "
                "and you are connected to the network.",
                details={"error": str(e)},
            ) from e

        latency_ms = (time.monotonic() - start_time) * 1000
        logger.debug(
            f"[{self.service_name}] {method} {path} -> {response.status_code} ({latency_ms:.1f}ms)"
        )
        return self._process_response(response)

    def _process_response(self, response: httpx.Response) -> Any:
        status = response.status_code
        if status == 204 or not response.content:
            data: Any = {}
        else:
            try:
                data = response.json()
            except ValueError:
                data = {"raw": response.text}

        if status < 400:
            return data

        details = data if isinstance(data, dict) else {"raw": data}
        message = _error_message(details)
        error_class: type[AdapterError]
        if status == 401:
            error_class, default = AuthenticationError, "Session expired. Please log in again."
        elif status == 403:
            error_class, default = (
                PermissionDeniedError,
                "You do not have permission to perform this action.",
            )
        elif status == 404:
            error_class, default = NotFoundError, "Resource not found."
        elif status == 422:
            error_class, default = ValidationError, "Validation failed."
        elif status == 429:
            error_class, default = RateLimitError, "Too many requests. Please slow down."
        elif status >= 500:
            error_class, default = ServerError, "Server error. Please try again later."
        else:
            error_class, default = AdapterError, f"API error: {status}"

        request = response.request
        logger.warning(f"[{self.service_name}] {request.method} {request.url.path} -> {status}")
        raise error_class(message or default, status_code=status, details=details)


def _error_message(details: Mapping[str, Any]) -> str | None:
    message = details.get("message")
    if isinstance(message, str) and message:
        return message
    errors = details.get("errors")
    if isinstance(errors, list) and errors and isinstance(errors[0], Mapping):
        detail = errors[0].get("detail") or errors[0].get("title")
        if detail:
            return str(detail)
    return None
