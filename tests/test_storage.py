import pytest
import requests
from keyshare_core import AccessControlList, Identity, KeyChain, Resolver
from keyshare_core.storage import (
    HTTPStorage, InMemoryStorage, NotFoundError, SQLiteStorage, StoragePermanentError,
    StorageTimeoutError, StorageTransientError, load_storage_provider,
)

# CMD Line Usage: pytest -v -s --log-cli-level=DEBUG tests/test_storage.py


async def test_sqlite_object_roundtrip(tmp_path):
    s = SQLiteStorage(str(tmp_path / "state.db"))
    obj = {"kind": "identity", "name": "x", "nested": {"b": 2, "a": 1}}
    url = await s.store(obj)
    assert url == s.url_for(obj)
    assert url == await s.store(dict(obj))  # idempotent
    assert await s.fetch(url) == obj
    with pytest.raises(NotFoundError):
        await s.fetch("ks:/sha256/none")
    await s.close()


async def test_sqlite_list_entries(tmp_path):
    s = SQLiteStorage(str(tmp_path / "state.db"))
    await s.append("list-1", {"signature": "s1", "data": {"n": 1}})
    await s.append("list-1", {"signature": "s2", "data": {"n": 2}})
    await s.append("list-1", {"signature": "s1", "data": {"n": 1}})
    await s.append("list-2", {"signature": "s3", "data": {"n": 3}})

    entries = await s.list_entries("list-1")
    assert [e["data"]["n"] for e in entries] == [1, 2]
    assert await s.list_entries("empty") == []
    await s.close()


async def test_sqlite_errors_are_storage_errors(tmp_path):
    s = SQLiteStorage(str(tmp_path / "state.db"))
    url = await s.store({"kind": "identity", "name": "x"})
    await s.close()

    with pytest.raises(StoragePermanentError):
        await s.fetch(url)
    with pytest.raises(StoragePermanentError):
        await s.store({"kind": "identity", "name": "y"})
    with pytest.raises(StoragePermanentError):
        await s.append("list-1", {"signature": "s1", "data": {}})
    with pytest.raises(StoragePermanentError):
        await s.list_entries("list-1")


def test_sqlite_schema_exists(tmp_path):
    s = SQLiteStorage(str(tmp_path / "state.db"))
    cur = s.db.execute("PRAGMA table_info(list_entries)")
    cols = {row[1] for row in cur.fetchall()}
    assert {"seq", "list_url", "signature", "body", "stored_at"} <= cols


async def test_acl_over_sqlite(tmp_path):
    s = SQLiteStorage(str(tmp_path / "acl.db"))
    owner = Identity.generate("owner")
    viewer = Identity.generate("viewer")
    await viewer.store(s)

    acl = await AccessControlList.create("acl", owner, s)
    await acl.add_viewer(viewer.url)
    env = acl.seal({"msg": "hi"})

    resolver = Resolver(s, KeyChain("viewer", [viewer]))
    assert await resolver.resolve_json(env.to_dict()) == {"msg": "hi"}
    await s.close()


async def test_memory_fetch_missing():
    with pytest.raises(NotFoundError):
        await InMemoryStorage().fetch("ks:/sha256/none")


def test_storage_factory_modes(monkeypatch, tmp_path):
    """Verify load_storage_provider picks the backend from config or environment."""
    monkeypatch.delenv("KEYSHARE_STORAGE_PROVIDER", raising=False)
    monkeypatch.setenv("KEYSHARE_DB_PATH", str(tmp_path / "default.db"))
    assert isinstance(load_storage_provider(), SQLiteStorage)

    monkeypatch.setenv("KEYSHARE_STORAGE_PROVIDER", "memory")
    assert isinstance(load_storage_provider(), InMemoryStorage)

    monkeypatch.setenv("KEYSHARE_STORAGE_PROVIDER", "http")
    monkeypatch.setenv("KEYSHARE_STORAGE_URL", "http://store.local:9000/")
    http = load_storage_provider()
    assert isinstance(http, HTTPStorage)
    assert http.base_url == "http://store.local:9000"

    assert isinstance(load_storage_provider({"provider": "memory"}), InMemoryStorage)
    with pytest.raises(ValueError):
        load_storage_provider({"provider": "floppy"})


class FakeResponse:
    def __init__(self, status_code=200, body=None):
        self.status_code = status_code
        self._body = body
        self.content = b"" if body is None else b"{}"
        self.text = str(body)

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        return self._body


def fake_get(responses, calls):
    def get(url, timeout=None, **kwargs):
        calls.append(url)
        result = responses[url]
        if isinstance(result, Exception):
            raise result
        return result
    return get


async def test_http_fetch_and_entries(monkeypatch):
    calls = []
    obj = {"kind": "identity", "name": "x"}
    store = HTTPStorage("http://store")
    url = store.url_for(obj)
    quoted = HTTPStorage._quote(url)
    monkeypatch.setattr(requests, "get", fake_get({
        f"http://store/objects/{quoted}": FakeResponse(200, obj),
        f"http://store/lists/{quoted}/entries": FakeResponse(200, {"entries": [{"signature": "s"}]}),
    }, calls))

    assert await store.fetch(url) == obj
    assert await store.list_entries(url) == [{"signature": "s"}]
    assert "/" not in quoted and len(calls) == 2


@pytest.mark.parametrize("result, error", [
    (FakeResponse(404), NotFoundError),
    (FakeResponse(503, "down"), StorageTransientError),
    (FakeResponse(400, "bad"), StoragePermanentError),
    (requests.Timeout("slow"), StorageTimeoutError),
    (requests.ConnectionError("refused"), StorageTransientError),
    (requests.TooManyRedirects("loop"), StorageTransientError),
    (requests.exceptions.InvalidURL("bad url"), StorageTransientError),
])
async def test_http_error_mapping(monkeypatch, result, error):
    store = HTTPStorage("http://store", timeout=0.1)
    url = "ks:/sha256/abc"
    monkeypatch.setattr(requests, "get", fake_get({f"http://store/objects/{HTTPStorage._quote(url)}": result}, []))
    with pytest.raises(error):
        await store.fetch(url)


async def test_http_store_checks_returned_url(monkeypatch):
    store = HTTPStorage("http://store")
    obj = {"kind": "acl", "name": "a"}
    posted = []

    def post(url, json=None, timeout=None, **kwargs):
        posted.append((url, json))
        return FakeResponse(200, {"url": store.url_for(obj)})

    monkeypatch.setattr(requests, "post", post)
    assert await store.store(obj) == store.url_for(obj)
    assert posted == [("http://store/objects", obj)]

    monkeypatch.setattr(requests, "post", lambda url, **kw: FakeResponse(200, {"url": "ks:/sha256/other"}))
    with pytest.raises(StoragePermanentError):
        await store.store(obj)
