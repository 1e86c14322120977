import copy
from typing import Any, Dict, List
from keyshare_core.storage.models import ListEntryRecord, ObjectRecord
from keyshare_core.storage.provider import NotFoundError, StorageProvider


class InMemoryStorage(StorageProvider):
    name = "memory"

    def __init__(self):
        self.objects: Dict[str, ObjectRecord] = {}
        self.lists: Dict[str, List[ListEntryRecord]] = {}

    async def fetch(self, url: str) -> Dict[str, Any]:
        rec = self.objects.get(url)
        if rec is None:
            raise NotFoundError(f"no object at {url}")
        return copy.deepcopy(rec.body)

    async def store(self, obj: Dict[str, Any]) -> str:
        url = self.url_for(obj)
        if url not in self.objects:
            self.objects[url] = ObjectRecord(url=url, kind=obj.get("kind", ""), body=copy.deepcopy(obj))
        return url

    async def append(self, list_url: str, entry: Dict[str, Any]) -> None:
        # Single list.append on the event loop thread, so an entry is either fully present or absent
        self.lists.setdefault(list_url, []).append(
            ListEntryRecord(list_url=list_url, signature=entry.get("signature", ""), body=copy.deepcopy(entry))
        )

    async def list_entries(self, list_url: str) -> List[Dict[str, Any]]:
        return [copy.deepcopy(rec.body) for rec in self.lists.get(list_url, [])]
