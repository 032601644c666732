from __future__ import annotations

import re
from typing import List, Optional

from bs4 import BeautifulSoup, ParserRejectedMarkup  # type: ignore

from .codec_json import DecodeResult
from .dedupe import dedupe
from .errors import MalformedInput, NoValidRecords
from .log import get_logger
from .model import PLACEHOLDER_TITLE, BookmarkRecord, now_ms
from .url_check import is_valid_url

log = get_logger(__name__)
_TAG_RE = re.compile(r"<\s*[A-Za-z!]")


def parse_bookmarks_html(text: str) -> DecodeResult:
    """Read every link of a Netscape bookmark export into a flat record list.

    Folder structure is ignored. The DOCTYPE/TITLE/H1 preamble is optional.
    """
    if not isinstance(text, str) or not _TAG_RE.search(text):
        raise MalformedInput("Not a bookmarks HTML document")
    try:
        soup = BeautifulSoup(text, "lxml")
    except ParserRejectedMarkup as e:
        raise MalformedInput(f"Failed to parse HTML file: {e}") from e

    out: List[BookmarkRecord] = []
    skipped = 0
    for a in soup.find_all("a", href=True):
        url = (a.get("href") or "").strip()
        if not is_valid_url(url):
            skipped += 1
            log.debug("Skipping link with rejected url: %r", url[:80])
            continue
        title = a.get_text().strip() or PLACEHOLDER_TITLE
        out.append(BookmarkRecord(title=title, url=url, added_at=_add_date_ms(a.get("add_date"))))

    if not out:
        raise NoValidRecords(skipped)
    records = dedupe(out)
    return DecodeResult(records=records, skipped=skipped, duplicates=len(out) - len(records))


def _add_date_ms(v: Optional[str]) -> int:
    seconds = _maybe_int(v)
    if not seconds or seconds <= 0:
        return now_ms()
    return seconds * 1000


def _maybe_int(v):
    if v is None:
        return None
    try:
        return int(str(v).strip())
    except ValueError:
        return None
