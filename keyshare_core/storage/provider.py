# keyshare_core/storage/provider.py
from __future__ import annotations
from typing import Any, Dict, List
from keyshare_core.errors import KeyshareError
from keyshare_core.utils import content_url


class StorageError(KeyshareError):
    pass


class NotFoundError(StorageError):
    pass


class StorageTransientError(StorageError):
    pass


class StorageTimeoutError(StorageTransientError):
    pass


class StoragePermanentError(StorageError):
    pass


class StorageProvider:
    """
    Content-addressed object store plus per-list append logs.

    url_for() is synchronous and deterministic so a caller can hand out a url
    before the store completes. All I/O methods are coroutines; cancellation
    is never swallowed by a provider.
    """
    name: str = "base"

    def url_for(self, obj: Dict[str, Any]) -> str:
        return content_url(obj)

    async def fetch(self, url: str) -> Dict[str, Any]:
        raise NotImplementedError

    async def store(self, obj: Dict[str, Any]) -> str:
        raise NotImplementedError

    async def append(self, list_url: str, entry: Dict[str, Any]) -> None:
        raise NotImplementedError

    async def list_entries(self, list_url: str) -> List[Dict[str, Any]]:
        raise NotImplementedError

    async def close(self) -> None:
        return
