"""
Networked storage backend speaking a SurrealDB-compatible HTTP document API.

Endpoints used:
- GET    /health
- POST   /key/{table}         create with server-assigned key
- GET    /key/{table}         select the whole table
- GET    /key/{table}/{key}   select one record
- PUT    /key/{table}/{key}   replace content
- DELETE /key/{table}/{key}   delete one record

Record endpoints answer with a list of statement results, each shaped like
{"status": "OK" | "ERR", "result": ..., "detail": ...}.
"""
from __future__ import annotations

import logging
from typing import Any, List, Optional
from urllib.parse import quote

import httpx

from .errors import StorageRejected, StorageUnavailable
from .models import Document
from .repositories import Backend, check_table
from .settings import RemoteStorage

logger = logging.getLogger(__name__)


class RemoteBackend(Backend):
    """
    Remote document database reached over HTTP.

    One AsyncClient (and its connection pool) is shared by every concurrent
    operation for the lifetime of the backend.
    """

    kind = "remote"

    def __init__(self, config: RemoteStorage, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self._config = config
        self._client = httpx.AsyncClient(
            base_url=config.address,
            auth=httpx.BasicAuth(config.username, config.password),
            headers={
                "Accept": "application/json",
                "NS": config.namespace,
                "DB": config.database,
                "Surreal-NS": config.namespace,
                "Surreal-DB": config.database,
            },
            transport=transport,
        )

    @staticmethod
    def _path(table: str, key: Optional[str] = None) -> str:
        check_table(table)
        if key is None:
            return f"/key/{table}"
        return f"/key/{table}/{quote(key, safe='')}"

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            raise StorageUnavailable(f"remote database timed out: {e}") from e
        except httpx.TransportError as e:
            raise StorageUnavailable(f"remote database unreachable: {e}") from e

        if response.status_code in (502, 503, 504):
            raise StorageUnavailable(f"remote database unavailable (HTTP {response.status_code})")
        if response.status_code in (401, 403):
            raise StorageRejected(f"remote database refused the credentials (HTTP {response.status_code})")
        if response.status_code >= 400:
            raise StorageRejected(f"remote database rejected the request: {_error_text(response)}")
        return response

    async def _statement(self, method: str, path: str, **kwargs: Any) -> List[Document]:
        """Run one request and return the documents of its single statement result."""
        response = await self._request(method, path, **kwargs)
        try:
            body = response.json()
        except ValueError as e:
            raise StorageRejected("remote database returned a non-JSON body") from e

        if not isinstance(body, list) or not body or not isinstance(body[0], dict):
            raise StorageRejected("remote database returned an unexpected response shape")
        statement = body[0]
        if statement.get("status") != "OK":
            raise StorageRejected(
                f"remote database reported an error: {statement.get('detail') or statement.get('result')}"
            )
        result = statement.get("result")
        if result is None:
            return []
        if isinstance(result, dict):
            return [result]
        if isinstance(result, list):
            return [doc for doc in result if isinstance(doc, dict)]
        raise StorageRejected("remote database returned an unexpected result")

    async def connect(self) -> None:
        response = await self._request("GET", "/health")
        logger.info(
            "Connected to remote database at %s (ns=%s, db=%s, HTTP %s)",
            self._config.address,
            self._config.namespace,
            self._config.database,
            response.status_code,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def create(self, table: str, content: Document) -> Document:
        docs = await self._statement("POST", self._path(table), json=content)
        if not docs:
            raise StorageRejected(f"remote database did not return the created record for {table}")
        return docs[0]

    async def list(self, table: str) -> List[Document]:
        return await self._statement("GET", self._path(table))

    async def get(self, table: str, key: str) -> Optional[Document]:
        docs = await self._statement("GET", self._path(table, key))
        return docs[0] if docs else None

    async def update(self, table: str, key: str, content: Document) -> Optional[Document]:
        # PUT upserts on this API; replace only what already exists
        if await self.get(table, key) is None:
            return None
        docs = await self._statement("PUT", self._path(table, key), json=content)
        return docs[0] if docs else None

    async def delete(self, table: str, key: str) -> bool:
        if await self.get(table, key) is None:
            return False
        await self._statement("DELETE", self._path(table, key))
        return True


def _error_text(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return f"HTTP {response.status_code}"
    if isinstance(body, dict):
        return str(body.get("information") or body.get("details") or body.get("description") or body)
    return f"HTTP {response.status_code}"
