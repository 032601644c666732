from __future__ import annotations

import threading
from typing import Callable, Iterable, List, Optional

from .dedupe import dedupe
from .kv_store import SqliteKV
from .log import get_logger
from .model import BookmarkRecord, StagedSnapshot, now_ms

log = get_logger(__name__)

STAGE_KEY = "bookmarks_data"
DEFAULT_TTL_MS = 24 * 60 * 60 * 1000


class StagingStore:
    """Owns the single staged snapshot.

    `save` replaces the whole snapshot in one write. Expiry removes only the
    exact value it judged stale, so a capture that lands between the check and
    the delete survives.
    """

    def __init__(self, kv: SqliteKV, *, clock: Callable[[], int] = now_ms, key: str = STAGE_KEY):
        self.kv = kv
        self.clock = clock
        self.key = key
        self._lock = threading.RLock()

    def save(self, records: Iterable[BookmarkRecord]) -> List[BookmarkRecord]:
        unique = dedupe(records)
        snap = StagedSnapshot(records=unique, captured_at=self.clock(), count=len(unique))
        with self._lock:
            self.kv.set(self.key, snap.to_dict())
        log.debug("Staged %d bookmarks", snap.count)
        return unique

    def snapshot(self) -> Optional[StagedSnapshot]:
        raw = self.kv.get(self.key)
        if not isinstance(raw, dict):
            return None
        return StagedSnapshot.from_dict(raw)

    def load(self) -> List[BookmarkRecord]:
        snap = self.snapshot()
        return snap.records if snap else []

    def is_expired(self, ttl_ms: int = DEFAULT_TTL_MS) -> bool:
        snap = self.snapshot()
        return snap is not None and self._is_stale(snap, ttl_ms)

    def expire_if_stale(self, ttl_ms: int = DEFAULT_TTL_MS) -> bool:
        with self._lock:
            raw = self.kv.get(self.key)
            if not isinstance(raw, dict):
                return False
            if not self._is_stale(StagedSnapshot.from_dict(raw), ttl_ms):
                return False
            removed = self.kv.remove_if(self.key, raw)
        if removed:
            log.info("Expired staged bookmarks older than %d h", ttl_ms // 3_600_000)
        return removed

    def clear(self) -> None:
        with self._lock:
            self.kv.remove(self.key)

    def _is_stale(self, snap: StagedSnapshot, ttl_ms: int) -> bool:
        return self.clock() - snap.captured_at > ttl_ms
