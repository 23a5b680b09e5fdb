"""
HTTP Data Source

REST-backed :class:`RemoteDataSource` on top of ``httpx.AsyncClient``.

Endpoints (relative to ``base_url``):
    GET    /{collection}          -> JSON array, or object with an "items" array
    POST   /{collection}          -> created item
    PUT    /{collection}/{id}     -> updated item
    DELETE /{collection}/{id}     -> any body, 404 treated as success

Error mapping:
    transport errors, timeouts   -> NetworkError
    400, 409, 422                -> ValidationError
    404                          -> NotFoundError
    other 4xx/5xx                -> ServerError (status_code preserved)
    undecodable/invalid payloads -> ServerError
"""

from __future__ import annotations

from typing import Any
from urllib.parse import quote

import httpx
import pydantic

from itemcache.base.errors import (
    DataSourceError,
    NetworkError,
    NotFoundError,
    ServerError,
    ValidationError,
)
from itemcache.models import Item, ItemId
from itemcache.utils.config import get_remote_config
from itemcache.utils.logger import get_logger

from .providers import RemoteDataSource

logger = get_logger("http_source")

VALIDATION_STATUS_CODES = frozenset({400, 409, 422})


class HttpDataSource(RemoteDataSource):
    """
    Data source speaking a plain JSON REST API.

    The source owns its ``httpx.AsyncClient`` unless one is passed in; use it as an
    async context manager, or call :meth:`aclose`, to release the connection pool.

    Args:
        base_url: API root, e.g. ``https://api.example.com``
        collection: Collection path segment
        timeout: Request timeout in seconds
        headers: Extra headers sent with every request
        client: Pre-built client (tests pass one with ``httpx.MockTransport``)
    """

    def __init__(
        self,
        base_url: str,
        *,
        collection: str = "items",
        timeout: float = 10.0,
        headers: dict[str, str] | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.collection = collection.strip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout, headers=headers or {})

    @classmethod
    def from_config(cls, config_path: str | None = None, **kwargs: Any) -> HttpDataSource:
        """Build a source from the ``remote`` configuration section."""
        remote = get_remote_config(config_path)
        if not remote.get("base_url"):
            raise ValueError("Missing required configuration: 'remote.base_url'")
        logger.info(f"Using remote collection {remote['base_url']}/{remote['collection']}")
        return cls(
            remote["base_url"],
            collection=remote["collection"],
            timeout=remote["timeout_seconds"],
            headers=remote["headers"],
            **kwargs,
        )

    @property
    def name(self) -> str:
        return f"http:{self.collection}"

    @property
    def description(self) -> str:
        return f"HTTP data source at {self._collection_url()}"

    def _collection_url(self) -> str:
        return f"{self.base_url}/{self.collection}"

    def _item_url(self, item_id: ItemId) -> str:
        return f"{self._collection_url()}/{quote(str(item_id), safe='')}"

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.TimeoutException as exc:
            raise NetworkError(
                f"Request timed out: {method} {url}", details={"url": url}
            ) from exc
        except httpx.TransportError as exc:
            raise NetworkError(
                f"Connection failed: {exc}", details={"url": url}
            ) from exc

        if response.status_code >= 400:
            raise self._error_for(response)
        return response

    @staticmethod
    def _error_for(response: httpx.Response) -> DataSourceError:
        status = response.status_code
        detail = _error_detail(response)
        details = {"url": str(response.request.url), "body": detail}

        if status == 404:
            return NotFoundError(detail or "Item not found", details=details, status_code=status)
        if status in VALIDATION_STATUS_CODES:
            return ValidationError(
                detail or f"Request rejected ({status})", details=details, status_code=status
            )
        return ServerError(
            f"Server responded with {status}" + (f": {detail}" if detail else ""),
            details=details,
            status_code=status,
        )

    @staticmethod
    def _decode_item(data: Any) -> Item:
        try:
            return Item.model_validate(data)
        except pydantic.ValidationError as exc:
            raise ServerError(
                "Remote returned an invalid item", details={"errors": exc.errors()}
            ) from exc

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise ServerError("Remote returned a non-JSON response") from exc

    async def list(self) -> list[Item]:
        response = await self._request("GET", self._collection_url())
        data = self._json(response)
        if isinstance(data, dict):
            data = data.get("items")
        if not isinstance(data, list):
            raise ServerError("Remote list response is not an array")
        logger.debug(f"GET {self._collection_url()} returned {len(data)} records")
        return [self._decode_item(record) for record in data]

    async def create(self, item: Item) -> Item:
        body = item.model_dump(exclude_none=True)
        response = await self._request("POST", self._collection_url(), json=body)
        return self._decode_item(self._json(response))

    async def update(self, item: Item) -> Item:
        if item.id is None:
            raise ValidationError("Cannot update an item without an id")
        response = await self._request("PUT", self._item_url(item.id), json=item.model_dump())
        return self._decode_item(self._json(response))

    async def delete(self, item_id: ItemId) -> None:
        try:
            await self._request("DELETE", self._item_url(item_id))
        except NotFoundError:
            logger.debug(f"DELETE {self._item_url(item_id)}: already absent")

    async def health_check(self) -> bool:
        try:
            await self._request("GET", self._collection_url())
        except DataSourceError as exc:
            logger.warning(f"Health check failed: {exc}")
            return False
        return True

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> HttpDataSource:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()


def _error_detail(response: httpx.Response) -> str:
    """Best-effort error text from a JSON ``{"error": {"message": ...}}`` or raw body."""
    try:
        data = response.json()
    except ValueError:
        return response.text.strip()[:500]

    if isinstance(data, dict):
        error = data.get("error", data)
        if isinstance(error, dict):
            return str(error.get("message") or error.get("detail") or "")
        return str(error)
    return str(data)[:500]
