from __future__ import annotations

from typing import Any, Callable, Dict

from . import __version__
from .kv_store import SqliteKV
from .model import now_ms

METADATA_KEY = "sync_metadata"


class Metadata:
    """Install/usage bookkeeping kept under its own key; staging expiry never touches it."""

    def __init__(self, kv: SqliteKV, *, clock: Callable[[], int] = now_ms):
        self.kv = kv
        self.clock = clock

    def read(self) -> Dict[str, Any]:
        data = self.kv.get(METADATA_KEY)
        return dict(data) if isinstance(data, dict) else {}

    def ensure(self) -> Dict[str, Any]:
        data = self.read()
        if not data:
            data = {"installedAt": self.clock(), "version": __version__, "totalSyncs": 0}
            self.kv.set(METADATA_KEY, data)
        elif data.get("version") != __version__:
            data["version"] = __version__
            self.kv.set(METADATA_KEY, data)
        return data

    def update(self, **fields: Any) -> Dict[str, Any]:
        data = self.ensure()
        data.update(fields)
        self.kv.set(METADATA_KEY, data)
        return data

    def record_sync(self) -> Dict[str, Any]:
        data = self.ensure()
        return self.update(totalSyncs=int(data.get("totalSyncs") or 0) + 1, lastUpdate=self.clock())
