from __future__ import annotations

from typing import Optional

from .log import get_logger
from .metadata import Metadata
from .staging import DEFAULT_TTL_MS, StagingStore

log = get_logger(__name__)

_DAY_MS = 24 * 60 * 60 * 1000


def run_maintenance(stage: StagingStore, metadata: Optional[Metadata] = None, *, ttl_ms: int = DEFAULT_TTL_MS) -> bool:
    """Periodic tick handler: drop a stale stage. Returns True when it removed one."""
    snap = stage.snapshot()
    if snap is not None:
        log.info("Staged data is %d days old (%d bookmarks).", (stage.clock() - snap.captured_at) // _DAY_MS, snap.count)
    removed = stage.expire_if_stale(ttl_ms)
    if metadata is not None:
        metadata.update(lastMaintenance=stage.clock())
    return removed
