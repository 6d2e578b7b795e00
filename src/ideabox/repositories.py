from __future__ import annotations

import logging
import re
import secrets
import string
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from .errors import StorageRejected
from .models import Document, RecordId
from .settings import IN_MEMORY_PATH, EmbeddedStorage, RemoteStorage, StorageConfig

logger = logging.getLogger(__name__)

_KEY_ALPHABET = string.ascii_lowercase + string.digits
_KEY_LENGTH = 20
_TABLE_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def new_key() -> str:
    """Random record key in the same style the remote engine assigns."""
    return "".join(secrets.choice(_KEY_ALPHABET) for _ in range(_KEY_LENGTH))


def check_table(table: str) -> str:
    """Table names end up in SQL and URL paths; only plain identifiers are accepted."""
    if not _TABLE_NAME.match(table):
        raise StorageRejected(f"invalid table name {table!r}")
    return table


# PUBLIC_INTERFACE
class Backend(ABC):
    """
    Abstract contract for storage backends.

    Content passed in never carries an "id"; documents handed out always do.
    """

    kind: str = "abstract"

    async def connect(self) -> None:
        """Open connections or verify reachability. Called once by the gateway."""

    async def close(self) -> None:
        """Release resources. Called at process shutdown."""

    @abstractmethod
    async def create(self, table: str, content: Document) -> Document:
        """Insert one document, assign its identity and return it."""

    @abstractmethod
    async def list(self, table: str) -> List[Document]:
        """Return every document of a table in backend-native order."""

    @abstractmethod
    async def get(self, table: str, key: str) -> Optional[Document]:
        """Return a document by key, or None if not found."""

    @abstractmethod
    async def update(self, table: str, key: str, content: Document) -> Optional[Document]:
        """Replace the content of an existing document. Return it, or None if not found."""

    @abstractmethod
    async def delete(self, table: str, key: str) -> bool:
        """Delete a document by key. Return True if deleted, False if not found."""


class InMemoryBackend(Backend):
    """
    In-process document store suitable for testing and throwaway runs.

    Every operation completes without awaiting, so concurrent tasks on the
    event loop never observe a half-applied change.
    """

    kind = "memory"

    def __init__(self) -> None:
        self._tables: Dict[str, Dict[str, Document]] = {}

    def _table(self, table: str) -> Dict[str, Document]:
        return self._tables.setdefault(check_table(table), {})

    @staticmethod
    def _out(table: str, key: str, content: Document) -> Document:
        doc = dict(content)
        doc["id"] = RecordId(table, key)
        return doc

    async def create(self, table: str, content: Document) -> Document:
        items = self._table(table)
        key = new_key()
        while key in items:
            key = new_key()
        items[key] = dict(content)
        return self._out(table, key, items[key])

    async def list(self, table: str) -> List[Document]:
        return [self._out(table, key, content) for key, content in self._table(table).items()]

    async def get(self, table: str, key: str) -> Optional[Document]:
        content = self._table(table).get(key)
        return None if content is None else self._out(table, key, content)

    async def update(self, table: str, key: str, content: Document) -> Optional[Document]:
        items = self._table(table)
        if key not in items:
            return None
        items[key] = dict(content)
        return self._out(table, key, items[key])

    async def delete(self, table: str, key: str) -> bool:
        return self._table(table).pop(key, None) is not None


# PUBLIC_INTERFACE
def build_backend(config: StorageConfig) -> Backend:
    """
    Factory returning the backend selected by a StorageConfig.
    - EmbeddedStorage with ':memory:': InMemoryBackend
    - EmbeddedStorage with a path: SQLiteBackend
    - RemoteStorage: RemoteBackend
    """
    if isinstance(config, RemoteStorage):
        from .remote import RemoteBackend

        return RemoteBackend(config)
    if isinstance(config, EmbeddedStorage):
        if config.path == IN_MEMORY_PATH:
            return InMemoryBackend()
        from .db import SQLiteBackend

        return SQLiteBackend(config)
    raise TypeError(f"unsupported storage config: {config!r}")
