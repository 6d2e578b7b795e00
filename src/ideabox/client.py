"""
Client stubs for the idea server functions.

Each method mirrors a server function's parameters and returns its result, so
callers write `await client.submit_idea(...)` without caring that the call
crosses HTTP. Failures come back as the same IdeaboxError subclasses the
server raised.
"""
from __future__ import annotations

import logging
from typing import Any, List, Optional

import httpx

from .errors import IdeaboxError, RpcTransportError, ServerOnly, error_from_payload
from .schemas import Idea

logger = logging.getLogger(__name__)


# PUBLIC_INTERFACE
class RpcClient:
    """Posts JSON parameters to a server function path and unwraps the reply."""

    def __init__(
        self,
        base_url: str,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 10.0,
    ) -> None:
        self._client = httpx.AsyncClient(base_url=base_url, transport=transport, timeout=timeout)

    async def __aenter__(self) -> "RpcClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def call(self, path: str, **params: Any) -> Any:
        try:
            response = await self._client.post(path, json=params)
        except httpx.HTTPError as e:
            raise RpcTransportError(f"cannot reach server for {path}: {e}") from e

        try:
            body = response.json()
        except ValueError as e:
            raise RpcTransportError(f"non-JSON reply from {path} (HTTP {response.status_code})") from e

        if response.is_success:
            return body
        if not isinstance(body, dict) or "error" not in body:
            raise RpcTransportError(f"unexpected failure reply from {path} (HTTP {response.status_code})")
        error: IdeaboxError = error_from_payload(body)
        if isinstance(error, ServerOnly):
            # deployment problem, not something to show an end user
            logger.error("Server reported %s for %s: %s", error.kind, path, error.reason)
        raise error


# PUBLIC_INTERFACE
class IdeasClient(RpcClient):
    """Typed stubs for the /api/ideas server functions."""

    async def submit_idea(
        self,
        title: str,
        description: str,
        tags_raw: str,
        conditions: List[str],
        notes: str,
    ) -> Idea:
        data = await self.call(
            "/api/ideas/submit",
            title=title,
            description=description,
            tags_raw=tags_raw,
            conditions=conditions,
            notes=notes,
        )
        return Idea.model_validate(data)

    async def list_ideas(self) -> List[Idea]:
        data = await self.call("/api/ideas/list")
        return [Idea.model_validate(item) for item in data]

    async def get_idea(self, id: str) -> Idea:
        return Idea.model_validate(await self.call("/api/ideas/get", id=id))

    async def update_idea(
        self,
        id: str,
        title: str,
        description: str,
        tags: List[str],
        what_must_be_true: List[str],
        development_notes: str,
    ) -> Idea:
        data = await self.call(
            "/api/ideas/update",
            id=id,
            title=title,
            description=description,
            tags=tags,
            what_must_be_true=what_must_be_true,
            development_notes=development_notes,
        )
        return Idea.model_validate(data)

    async def delete_idea(self, id: str) -> None:
        await self.call("/api/ideas/delete", id=id)
