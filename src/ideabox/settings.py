from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List, Literal, Optional, Union

EMBEDDED = "embedded"
REMOTE = "remote"
IN_MEMORY_PATH = ":memory:"


# PUBLIC_INTERFACE
@dataclass(frozen=True)
class EmbeddedStorage:
    """
    Embedded (local, file-based) storage selection.

    path is a directory holding one file per namespace/database pair, or
    ':memory:' for an in-process store that lives as long as the process.
    """

    path: str
    namespace: str
    database: str
    kind: Literal["embedded"] = EMBEDDED


# PUBLIC_INTERFACE
@dataclass(frozen=True)
class RemoteStorage:
    """Networked storage selection: database address plus credentials."""

    address: str
    namespace: str
    database: str
    username: str
    password: str = field(repr=False)
    kind: Literal["remote"] = REMOTE


StorageConfig = Union[EmbeddedStorage, RemoteStorage]


@dataclass(frozen=True)
class Settings:
    """
    Application settings loaded from environment variables.

    Env vars:
    - STORAGE_BACKEND: 'embedded' (default) or 'remote'
    - EMBEDDED_DB_PATH: directory for embedded database files. Default './data/ideas.db'
      (':memory:' keeps everything in process)
    - DB_ADDRESS: remote database base URL. Default 'http://127.0.0.1:8000'
    - DB_NAMESPACE: namespace to select. Default 'ideas_ns'
    - DB_DATABASE: database to select. Default 'ideas_db'
    - DB_USERNAME / DB_PASSWORD: credentials, required when STORAGE_BACKEND=remote
    - STORAGE_TIMEOUT_SECONDS: per-operation storage timeout, 0 disables. Default 10
    - CORS_ALLOW_ORIGINS: comma-separated list of allowed origins; '*' by default
    - LOG_LEVEL: root log level. Default 'INFO'
    """

    storage_backend: str
    embedded_db_path: str
    db_address: str
    db_namespace: str
    db_database: str
    db_username: Optional[str]
    db_password: Optional[str] = field(repr=False)
    storage_timeout: Optional[float]
    cors_allow_origins: List[str]
    log_level: str

    # PUBLIC_INTERFACE
    def storage_config(self) -> StorageConfig:
        """
        Resolve the backend selection into a StorageConfig variant.

        Raises:
            ValueError if the remote backend is selected without credentials.
        """
        if self.storage_backend == REMOTE:
            if not self.db_username or not self.db_password:
                raise ValueError("DB_USERNAME and DB_PASSWORD are required for the remote storage backend")
            return RemoteStorage(
                address=self.db_address,
                namespace=self.db_namespace,
                database=self.db_database,
                username=self.db_username,
                password=self.db_password,
            )
        return EmbeddedStorage(
            path=self.embedded_db_path,
            namespace=self.db_namespace,
            database=self.db_database,
        )


def _get_env(name: str, default: str) -> str:
    value = os.getenv(name, default)
    if value is None or value == "":
        return default
    return value


def _parse_timeout(value: str, default: float) -> Optional[float]:
    try:
        seconds = float(value)
    except ValueError:
        return default
    return seconds if seconds > 0 else None


def _parse_origins(origins_value: str) -> List[str]:
    """
    Parse CORS origins from env. Supports:
    - '*' to allow all origins
    - Comma-separated list of origins
    """
    value = origins_value.strip()
    if value == "*":
        return ["*"]
    return [o.strip() for o in value.split(",") if o.strip()]


# PUBLIC_INTERFACE
def get_settings() -> Settings:
    """Return application settings loaded from environment variables."""
    backend = _get_env("STORAGE_BACKEND", EMBEDDED).strip().lower()
    if backend not in {EMBEDDED, REMOTE}:
        # Fallback to embedded if unsupported
        backend = EMBEDDED

    return Settings(
        storage_backend=backend,
        embedded_db_path=_get_env("EMBEDDED_DB_PATH", "./data/ideas.db").strip(),
        db_address=_get_env("DB_ADDRESS", "http://127.0.0.1:8000").strip().rstrip("/"),
        db_namespace=_get_env("DB_NAMESPACE", "ideas_ns").strip(),
        db_database=_get_env("DB_DATABASE", "ideas_db").strip(),
        db_username=os.getenv("DB_USERNAME") or None,
        db_password=os.getenv("DB_PASSWORD") or None,
        storage_timeout=_parse_timeout(_get_env("STORAGE_TIMEOUT_SECONDS", "10"), 10.0),
        cors_allow_origins=_parse_origins(_get_env("CORS_ALLOW_ORIGINS", "*")),
        log_level=_get_env("LOG_LEVEL", "INFO").strip().upper(),
    )
