import itertools

from stagemarks.model import TreeNode


class FakeTreeProvider:
    """In-memory host tree that records every write request."""

    def __init__(self, tree: TreeNode, *, fail_urls=(), fail_reads: bool = False):
        self.tree = _copy(tree)
        self.fail_urls = set(fail_urls)
        self.fail_reads = fail_reads
        self.created_containers = []
        self.created_links = []
        self._ids = itertools.count(10_000)

    def get_tree(self) -> TreeNode:
        if self.fail_reads:
            raise RuntimeError("bookmarks API unavailable")
        return _copy(self.tree)

    def create_container(self, parent_id, title):
        node = TreeNode(id=next(self._ids), title=title)
        _find(self.tree, parent_id).children.append(node)
        self.created_containers.append((parent_id, title))
        return TreeNode(id=node.id, title=title)

    def create_link(self, parent_id, title, url):
        if url in self.fail_urls:
            raise RuntimeError(f"refused {url}")
        node = TreeNode(id=next(self._ids), title=title, url=url, date_added=1)
        _find(self.tree, parent_id).children.append(node)
        self.created_links.append((parent_id, title, url))
        return TreeNode(id=node.id, title=title, url=url, date_added=1)


def browser_tree(*links) -> TreeNode:
    """Chrome/Firefox-like tree: root -> toolbar, menu; links go under the toolbar."""
    return TreeNode(
        id="root________",
        children=[
            TreeNode(
                id="toolbar_____",
                title="toolbar",
                guid="toolbar_____",
                children=[TreeNode(id=f"l{i}", title=f"t{i}", url=u, date_added=1000) for i, u in enumerate(links)],
            ),
            TreeNode(id="menu________", title="menu", guid="menu________"),
        ],
    )


def _copy(node: TreeNode) -> TreeNode:
    return TreeNode(
        id=node.id,
        title=node.title,
        url=node.url,
        date_added=node.date_added,
        guid=node.guid,
        children=[_copy(c) for c in node.children],
    )


def _find(node: TreeNode, node_id) -> TreeNode:
    stack = [node]
    while stack:
        n = stack.pop()
        if n.id == node_id:
            return n
        stack.extend(n.children)
    raise ValueError(f"folder id not found: {node_id}")
