# keyshare_core/storage/__init__.py

from .models import ListEntryRecord, ObjectRecord
from .provider import (
    NotFoundError,
    StorageError,
    StoragePermanentError,
    StorageProvider,
    StorageTimeoutError,
    StorageTransientError,
)
from .providers.http_provider import HTTPStorage
from .providers.memory_provider import InMemoryStorage
from .providers.sqlite_provider import SQLiteStorage
import os


def load_storage_provider(config: dict | None = None) -> StorageProvider:
    """
    Factory resolver for selecting the runtime storage backend.

        - sqlite (default)
        - memory
        - http
    """
    config = config or {}
    provider = config.get("provider") or os.getenv("KEYSHARE_STORAGE_PROVIDER", "sqlite")

    if provider == "memory":
        return InMemoryStorage()

    if provider == "sqlite":
        db_path = config.get("sqlite_path") or os.getenv("KEYSHARE_DB_PATH", "db/keyshare.db")
        return SQLiteStorage(db_path)

    if provider == "http":
        base_url = config.get("base_url") or os.getenv("KEYSHARE_STORAGE_URL", "http://localhost:8080")
        timeout = float(config.get("timeout") or os.getenv("KEYSHARE_HTTP_TIMEOUT", "5"))
        return HTTPStorage(base_url, timeout=timeout)

    raise ValueError(f"Unknown storage provider: {provider}")


__all__ = [
    "ObjectRecord",
    "ListEntryRecord",
    "StorageProvider",
    "StorageError",
    "NotFoundError",
    "StorageTransientError",
    "StorageTimeoutError",
    "StoragePermanentError",
    "InMemoryStorage",
    "SQLiteStorage",
    "HTTPStorage",
    "load_storage_provider",
]
