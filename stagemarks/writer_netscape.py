from __future__ import annotations

import html
from typing import Iterable, List

from .model import BookmarkRecord


def _esc(value: str) -> str:
    # quote=True covers all five metacharacters: & < > " '
    return html.escape(value or "", quote=True)


def write_bookmarks_html(records: Iterable[BookmarkRecord], *, title: str = "Bookmarks") -> str:
    """Render records as a flat Netscape bookmark file any browser can import."""
    lines: List[str] = []
    lines.append("<!DOCTYPE NETSCAPE-Bookmark-file-1>")
    lines.append("<!-- This is an automatically generated file.")
    lines.append("     It will be read and overwritten.")
    lines.append("     DO NOT EDIT! -->")
    lines.append('<META HTTP-EQUIV="Content-Type" CONTENT="text/html; charset=UTF-8">')
    lines.append(f"<TITLE>{_esc(title)}</TITLE>")
    lines.append(f"<H1>{_esc(title)}</H1>")
    lines.append("<DL><p>")
    for r in records:
        add_date = r.added_at // 1000
        lines.append(f'    <DT><A HREF="{_esc(r.url)}" ADD_DATE="{add_date}">{_esc(r.title)}</A>')
    lines.append("</DL><p>")
    return "\n".join(lines) + "\n"
