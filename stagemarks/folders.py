from __future__ import annotations

from typing import Optional

from .errors import CollaboratorError
from .log import get_logger
from .model import TreeNode

log = get_logger(__name__)


def find_container(tree: TreeNode, title: str) -> Optional[TreeNode]:
    """Depth-first search for the first container titled exactly `title`."""
    stack = [tree]
    while stack:
        node = stack.pop()
        if not node.is_container:
            continue
        if node.title == title:
            return node
        stack.extend(reversed(node.children))
    return None


def default_parent(tree: TreeNode, default_root: str) -> TreeNode:
    """Pick the top-level container new folders go under.

    Hosts name their roots differently (Firefox uses GUIDs like
    "toolbar_____"), so both the title and the guid are matched.
    """
    top = [c for c in tree.children if c.is_container]
    for c in top:
        if default_root in (c.title, c.guid, (c.guid or "").rstrip("_")):
            return c
    if top:
        log.warning("Root %r not found; using %r", default_root, top[0].title or top[0].id)
        return top[0]
    return tree


def resolve_folder(provider, tree: TreeNode, title: str, *, default_root: str = "toolbar") -> TreeNode:
    """Return the container titled `title`, creating exactly one if missing.

    The created node is attached to `tree`, so resolving the same title again
    against the same snapshot yields the same container.
    """
    found = find_container(tree, title)
    if found is not None:
        log.info("Using existing folder: %s", title)
        return found

    parent = default_parent(tree, default_root)
    try:
        created = provider.create_container(parent.id, title)
    except CollaboratorError:
        raise
    except (ValueError, RuntimeError) as e:
        raise CollaboratorError(f"Could not create folder {title!r}: {e}") from e
    log.info("Created folder: %s", title)
    parent.children.append(created)
    return created
