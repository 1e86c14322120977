# keyshare_core/storage/models.py
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict
from keyshare_core.utils import now_ts


@dataclass
class ObjectRecord:
    """
    Storage-level representation of one content-addressed object.

    Provider-agnostic: the memory and SQLite providers both hand these around,
    only body leaves the storage layer.
    """
    url: str
    kind: str
    body: Dict[str, Any]
    stored_at: str = field(default_factory=now_ts)


@dataclass
class ListEntryRecord:
    list_url: str
    signature: str
    body: Dict[str, Any]
    stored_at: str = field(default_factory=now_ts)
