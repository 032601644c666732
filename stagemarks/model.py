from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

PLACEHOLDER_TITLE = "(No title)"


def now_ms() -> int:
    return int(time.time() * 1000)


def _timestamp_or_now(v: Any) -> int:
    if isinstance(v, bool) or not isinstance(v, (int, float)):
        return now_ms()
    try:
        return int(v)
    except (ValueError, OverflowError):
        # NaN and +/-inf survive json.loads.
        return now_ms()


@dataclass
class BookmarkRecord:
    title: str
    url: str
    added_at: int

    def to_dict(self) -> Dict[str, Any]:
        # Field order is part of the export format.
        return {"title": self.title, "url": self.url, "addedAt": self.added_at}

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "BookmarkRecord":
        return BookmarkRecord(
            title=str(data.get("title") or PLACEHOLDER_TITLE),
            url=str(data.get("url") or ""),
            added_at=_timestamp_or_now(data.get("addedAt", data.get("dateAdded"))),
        )


@dataclass
class StagedSnapshot:
    records: List[BookmarkRecord]
    captured_at: int
    count: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "records": [r.to_dict() for r in self.records],
            "capturedAt": self.captured_at,
            "count": self.count,
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "StagedSnapshot":
        # "data"/"savedAt" is the layout written by the browser extension.
        raw = data.get("records")
        if raw is None:
            raw = data.get("data") or []
        records = [BookmarkRecord.from_dict(x) for x in raw if isinstance(x, dict)]
        captured = data.get("capturedAt", data.get("savedAt"))
        return StagedSnapshot(
            records=records,
            captured_at=int(captured or 0),
            count=len(records),
        )


@dataclass
class TreeNode:
    """One node of the host's bookmark tree; containers have no url."""

    id: Any
    title: str = ""
    url: Optional[str] = None
    date_added: Optional[int] = None
    guid: Optional[str] = None
    children: List["TreeNode"] = field(default_factory=list)

    @property
    def is_container(self) -> bool:
        return self.url is None
