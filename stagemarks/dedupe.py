from __future__ import annotations

from typing import Dict, Iterable, List

from .model import BookmarkRecord


def dedupe(records: Iterable[BookmarkRecord]) -> List[BookmarkRecord]:
    """Collapse records to one per url.

    The last occurrence of a url wins (a later capture or import overwrites an
    earlier one). Each url keeps the position where it was first seen.
    """
    by_url: Dict[str, BookmarkRecord] = {}
    for r in records:
        by_url[r.url] = r
    return list(by_url.values())
