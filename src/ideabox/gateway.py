"""
Process-wide storage gateway.

The first caller of initialize() builds the backend selected by the
configuration and connects it; every later caller gets the same handle.
Concurrent first callers share a single in-flight connection attempt and all
see its outcome. A failed attempt is forgotten so that a later call can retry.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, List, Optional, TypeVar

from .codec import content_of
from .errors import NotFound, StorageError, StorageRejected, StorageUnavailable
from .models import Document
from .repositories import Backend, build_backend
from .settings import StorageConfig, get_settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


# PUBLIC_INTERFACE
class StorageHandle:
    """
    Backend-agnostic CRUD surface over one connected backend.

    Each operation is bounded by the configured timeout; expiry is reported
    as StorageUnavailable. The timeout only stops waiting: an embedded write
    already handed to its worker thread still runs to completion, so a create
    reported as timed out may have been stored, and retrying it can store a
    second copy.
    """

    def __init__(self, backend: Backend, config: StorageConfig, timeout: Optional[float] = None) -> None:
        self.backend = backend
        self.config = config
        self.timeout = timeout

    @property
    def kind(self) -> str:
        return self.config.kind

    async def _bounded(self, operation: str, table: str, awaitable: Awaitable[T]) -> T:
        try:
            if self.timeout is None:
                return await awaitable
            return await asyncio.wait_for(awaitable, self.timeout)
        except asyncio.TimeoutError as e:
            logger.warning("Storage %s on %s timed out after %ss", operation, table, self.timeout)
            raise StorageUnavailable(f"{operation} on {table} timed out after {self.timeout}s") from e
        except StorageError as e:
            logger.warning("Storage %s on %s failed: %s", operation, table, e.reason)
            raise

    async def create(self, table: str, record: Document) -> Document:
        """
        Insert one record; the backend assigns its identity.

        Raises:
            StorageRejected if the backend hands the record back without an identity.
        """
        created = await self._bounded("create", table, self.backend.create(table, content_of(record)))
        if not created.get("id"):
            logger.warning("Storage create on %s returned a record without an identity", table)
            raise StorageRejected(f"backend did not assign an identity to the new {table} record")
        return created

    async def list(self, table: str) -> List[Document]:
        """All records of a table. No ordering guarantee across backends."""
        return await self._bounded("list", table, self.backend.list(table))

    async def get(self, table: str, key: str) -> Optional[Document]:
        return await self._bounded("get", table, self.backend.get(table, key))

    async def update(self, table: str, key: str, record: Document) -> Document:
        """
        Replace the full content of an existing record.

        Raises:
            NotFound if no record has that key.
        """
        updated = await self._bounded("update", table, self.backend.update(table, key, content_of(record)))
        if updated is None:
            raise NotFound(f"Record not found: {table}:{key}", {"id": f"{table}:{key}"})
        return updated

    async def delete(self, table: str, key: str) -> None:
        """
        Delete a record.

        Raises:
            NotFound if no record has that key, including one already deleted.
        """
        deleted = await self._bounded("delete", table, self.backend.delete(table, key))
        if not deleted:
            raise NotFound(f"Record not found: {table}:{key}", {"id": f"{table}:{key}"})


# PUBLIC_INTERFACE
class StorageGateway:
    """Memoized, exactly-once initializer for the process storage handle."""

    def __init__(self) -> None:
        self._handle: Optional[StorageHandle] = None
        self._pending: Optional["asyncio.Future[StorageHandle]"] = None
        self.connect_attempts = 0

    @property
    def handle(self) -> Optional[StorageHandle]:
        return self._handle

    async def _connect(self, config: StorageConfig, timeout: Optional[float]) -> StorageHandle:
        self.connect_attempts += 1
        logger.info("Initializing %s storage backend", config.kind)
        backend: Optional[Backend] = None
        try:
            backend = build_backend(config)
            await backend.connect()
        except Exception as e:
            self._pending = None
            logger.exception("Storage backend initialization failed")
            if backend is not None:
                await self._discard(backend)
            if isinstance(e, StorageError):
                raise
            raise StorageUnavailable(f"storage backend initialization failed: {e}") from e
        self._handle = StorageHandle(backend, config, timeout)
        return self._handle

    @staticmethod
    async def _discard(backend: Backend) -> None:
        """Release a backend whose connection failed; a close error must not mask the original one."""
        try:
            await backend.close()
        except Exception:
            logger.warning("Closing the failed %s backend also failed", backend.kind, exc_info=True)

    async def initialize(self, config: StorageConfig, timeout: Optional[float] = None) -> StorageHandle:
        """
        Return the process storage handle, connecting on first use.

        Later calls return the existing handle regardless of the config they
        pass.
        """
        if self._handle is not None:
            if self._handle.config != config:
                logger.debug("Storage already initialized as %s; ignoring new config", self._handle.kind)
            return self._handle
        if self._pending is None:
            self._pending = asyncio.ensure_future(self._connect(config, timeout))
        return await asyncio.shield(self._pending)

    async def close(self) -> None:
        """Tear the handle down; meant for process shutdown."""
        handle, self._handle, self._pending = self._handle, None, None
        if handle is not None:
            await handle.backend.close()
            logger.info("Closed %s storage backend", handle.kind)

    def reset(self) -> None:
        """Forget the handle without closing it. Used by tests."""
        self._handle = None
        self._pending = None
        self.connect_attempts = 0


_gateway = StorageGateway()


# PUBLIC_INTERFACE
def get_gateway() -> StorageGateway:
    """Return the process-wide gateway."""
    return _gateway


# PUBLIC_INTERFACE
async def get_db() -> StorageHandle:
    """Resolve the process storage handle from current settings."""
    if _gateway.handle is not None:
        return _gateway.handle
    settings = get_settings()
    try:
        config = settings.storage_config()
    except ValueError as e:
        logger.error("Storage misconfigured: %s", e)
        raise StorageUnavailable("storage backend misconfigured") from e
    return await _gateway.initialize(config, settings.storage_timeout)
