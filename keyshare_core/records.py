"""
keyshare_core.records
---------------------
Stored objects are tagged records: every object carries a "kind" and the
loader registered for that kind rebuilds the in-memory type. Loaders get
the collaborators (persistence, crypto, keychain) they need passed in.
"""

from __future__ import annotations
from typing import Any, Callable, Dict, Optional, TYPE_CHECKING
from .errors import InvalidRecordError

if TYPE_CHECKING:
    from .storage.provider import StorageProvider

_LOADERS: Dict[str, Callable[..., Any]] = {}


def register(kind: str):
    def wrap(loader: Callable[..., Any]) -> Callable[..., Any]:
        _LOADERS[kind] = loader
        return loader
    return wrap


def load_object(obj: Dict[str, Any], **context) -> Any:
    kind = obj.get("kind") if isinstance(obj, dict) else None
    loader = _LOADERS.get(kind)
    if loader is None:
        raise InvalidRecordError(f"no loader for record kind={kind!r}")
    return loader(obj, **context)


async def fetch_object(persistence: "StorageProvider", url: str, expect: Optional[str] = None, **context) -> Any:
    """Fetch url and rebuild it, optionally insisting on a record kind."""
    obj = await persistence.fetch(url)
    if expect is not None and (not isinstance(obj, dict) or obj.get("kind") != expect):
        raise InvalidRecordError(f"{url} is not a {expect} record")
    return load_object(obj, persistence=persistence, **context)
