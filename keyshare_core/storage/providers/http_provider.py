# keyshare_core/storage/providers/http_provider.py
import asyncio
from typing import Any, Dict, List
from urllib.parse import quote
import requests
from keyshare_core.logger import get_logger
from keyshare_core.storage.provider import (
    NotFoundError, StoragePermanentError, StorageProvider, StorageTimeoutError, StorageTransientError,
)

log = get_logger("storage.http")


class HTTPStorage(StorageProvider):
    """
    Remote object store reached over HTTP.

    Endpoints:
      GET  /objects/{url}          -> stored object
      POST /objects                -> {"url": ...}
      GET  /lists/{url}/entries    -> {"entries": [...]}
      POST /lists/{url}/entries    -> append one signed entry

    requests is blocking, so every call runs in a worker thread.
    """
    name = "http"

    def __init__(self, base_url: str, timeout: float = 5.0):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def _endpoint(self, *parts: str) -> str:
        return "/".join([self.base_url, *parts])

    @staticmethod
    def _quote(url: str) -> str:
        return quote(url, safe="")

    def _request(self, method: str, endpoint: str, **kwargs) -> Any:
        log.debug(f"[HTTP {method}] {endpoint}")
        try:
            if method == "GET":
                res = requests.get(endpoint, timeout=self.timeout, **kwargs)
            else:
                res = requests.post(endpoint, timeout=self.timeout, **kwargs)
        except requests.Timeout as e:
            raise StorageTimeoutError(f"{method} {endpoint} timed out after {self.timeout}s") from e
        except requests.ConnectionError as e:
            raise StorageTransientError(f"{method} {endpoint} connection failed: {e}") from e
        except requests.RequestException as e:
            raise StorageTransientError(f"{method} {endpoint} failed: {e!r}") from e

        if res.status_code == 404:
            raise NotFoundError(f"{method} {endpoint} -> 404")
        if res.status_code >= 500:
            log.error(f"[HTTP {method}] {res.status_code}: {res.text}")
            raise StorageTransientError(f"{method} {endpoint} -> {res.status_code}")
        if not res.ok:
            log.error(f"[HTTP {method}] {res.status_code}: {res.text}")
            raise StoragePermanentError(f"{method} {endpoint} -> {res.status_code}")
        try:
            return res.json() if res.content else None
        except ValueError as e:
            raise StoragePermanentError(f"{method} {endpoint} returned invalid JSON") from e

    async def fetch(self, url: str) -> Dict[str, Any]:
        return await asyncio.to_thread(self._request, "GET", self._endpoint("objects", self._quote(url)))

    async def store(self, obj: Dict[str, Any]) -> str:
        url = self.url_for(obj)
        body = await asyncio.to_thread(self._request, "POST", self._endpoint("objects"), json=obj)
        remote = (body or {}).get("url")
        if remote and remote != url:
            raise StoragePermanentError(f"server addressed object as {remote}, expected {url}")
        return url

    async def append(self, list_url: str, entry: Dict[str, Any]) -> None:
        await asyncio.to_thread(
            self._request, "POST", self._endpoint("lists", self._quote(list_url), "entries"), json=entry
        )

    async def list_entries(self, list_url: str) -> List[Dict[str, Any]]:
        body = await asyncio.to_thread(self._request, "GET", self._endpoint("lists", self._quote(list_url), "entries"))
        return list((body or {}).get("entries", []))
