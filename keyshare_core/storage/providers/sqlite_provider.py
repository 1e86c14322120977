from __future__ import annotations
from typing import Optional, Dict, Any, List
import asyncio, json, sqlite3, os, threading
from keyshare_core.storage.models import ObjectRecord
from keyshare_core.storage.provider import NotFoundError, StoragePermanentError, StorageProvider
from keyshare_core.utils import canonical_json, now_ts


class SQLiteStorage(StorageProvider):
    name = "sqlite"

    def __init__(self, path="db/keyshare.db"):
        # If no directory, default to current working directory
        dir_path = os.path.dirname(path) or "."
        os.makedirs(dir_path, exist_ok=True)
        self.db = sqlite3.connect(path, check_same_thread=False)
        self._lock = threading.Lock()

        self._init()

    def _init(self) -> None:
        c = self.db.cursor()

        c.execute("""CREATE TABLE IF NOT EXISTS objects(
            url TEXT PRIMARY KEY,
            kind TEXT NOT NULL,
            body TEXT NOT NULL,
            stored_at TEXT NOT NULL
        )""")
        c.execute("""CREATE TABLE IF NOT EXISTS list_entries(
            seq INTEGER PRIMARY KEY AUTOINCREMENT,
            list_url TEXT NOT NULL,
            signature TEXT NOT NULL,
            body TEXT NOT NULL,
            stored_at TEXT NOT NULL,
            UNIQUE(list_url, signature)
        )""")
        c.execute("CREATE INDEX IF NOT EXISTS idx_list_entries_url ON list_entries(list_url)")

        self.db.commit()

    # --- sync helpers, always called under self._lock in a worker thread ---

    def get_object(self, url: str) -> Optional[ObjectRecord]:
        with self._lock:
            try:
                cur = self.db.execute("SELECT url,kind,body,stored_at FROM objects WHERE url=?", (url,))
                row = cur.fetchone()
            except sqlite3.Error as e:
                raise StoragePermanentError(f"read of {url} failed: {e}") from e
        if not row:
            return None
        url, kind, body, stored_at = row
        return ObjectRecord(url=url, kind=kind, body=json.loads(body), stored_at=stored_at)

    def put_object(self, rec: ObjectRecord) -> None:
        with self._lock:
            try:
                with self.db:
                    self.db.execute(
                        "INSERT OR IGNORE INTO objects(url,kind,body,stored_at) VALUES(?,?,?,?)",
                        (rec.url, rec.kind, canonical_json(rec.body).decode("utf-8"), rec.stored_at)
                    )
            except sqlite3.Error as e:
                raise StoragePermanentError(f"store of {rec.url} failed: {e}") from e

    def put_entry(self, list_url: str, entry: Dict[str, Any]) -> None:
        # One row per entry inside one transaction: readers never see a partial entry
        with self._lock:
            try:
                with self.db:
                    self.db.execute(
                        "INSERT OR IGNORE INTO list_entries(list_url,signature,body,stored_at) VALUES(?,?,?,?)",
                        (list_url, entry.get("signature", ""), canonical_json(entry).decode("utf-8"), now_ts())
                    )
            except sqlite3.Error as e:
                raise StoragePermanentError(f"append to {list_url} failed: {e}") from e

    def get_entries(self, list_url: str) -> List[Dict[str, Any]]:
        with self._lock:
            try:
                cur = self.db.execute("SELECT body FROM list_entries WHERE list_url=? ORDER BY seq", (list_url,))
                rows = cur.fetchall()
            except sqlite3.Error as e:
                raise StoragePermanentError(f"read of list {list_url} failed: {e}") from e
        return [json.loads(r[0]) for r in rows]

    def _close(self) -> None:
        with self._lock:
            self.db.close()

    # --- async provider interface ---

    async def fetch(self, url: str) -> Dict[str, Any]:
        rec = await asyncio.to_thread(self.get_object, url)
        if rec is None:
            raise NotFoundError(f"no object at {url}")
        return rec.body

    async def store(self, obj: Dict[str, Any]) -> str:
        url = self.url_for(obj)
        await asyncio.to_thread(self.put_object, ObjectRecord(url=url, kind=obj.get("kind", ""), body=obj))
        return url

    async def append(self, list_url: str, entry: Dict[str, Any]) -> None:
        await asyncio.to_thread(self.put_entry, list_url, entry)

    async def list_entries(self, list_url: str) -> List[Dict[str, Any]]:
        return await asyncio.to_thread(self.get_entries, list_url)

    async def close(self) -> None:
        await asyncio.to_thread(self._close)
