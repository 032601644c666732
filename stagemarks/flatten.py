from __future__ import annotations

from typing import Iterator, List, Set

from .model import PLACEHOLDER_TITLE, BookmarkRecord, TreeNode, now_ms


def iter_links(tree: TreeNode) -> Iterator[TreeNode]:
    """Depth-first, children in order; only link (leaf) nodes are yielded."""
    stack = [tree]
    while stack:
        node = stack.pop()
        if not node.is_container:
            yield node
            continue
        stack.extend(reversed(node.children or []))


def flatten_links(tree: TreeNode) -> List[BookmarkRecord]:
    out: List[BookmarkRecord] = []
    for node in iter_links(tree):
        out.append(
            BookmarkRecord(
                title=(node.title or "").strip() or PLACEHOLDER_TITLE,
                url=node.url or "",
                added_at=node.date_added if node.date_added else now_ms(),
            )
        )
    return out


def collect_urls(tree: TreeNode) -> Set[str]:
    return {node.url for node in iter_links(tree) if node.url}
