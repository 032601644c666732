from __future__ import annotations

import base64
import os
import sqlite3
import time
from pathlib import Path
from typing import Dict, List, Optional

from .errors import CollaboratorError
from .log import get_logger
from .model import TreeNode

log = get_logger(__name__)

_TYPE_LINK = 1
_TYPE_FOLDER = 2

_ROOT_GUID_TO_NAME = {
    "root________": "root",
    "menu________": "menu",
    "toolbar_____": "toolbar",
    "tags________": "tags",
    "unfiled_____": "unfiled",
    "mobile______": "mobile",
}


class PlacesDB:
    """Firefox bookmarks (places.sqlite) exposed as a live bookmark tree.

    Only additive writes are offered: a folder or a link under an existing
    folder. Nothing is ever moved or deleted.
    """

    def __init__(self, db_path: Path | str, *, readonly: bool = False, busy_timeout_ms: int = 5000):
        self.db_path = resolve_places_path(Path(db_path))
        self.readonly = readonly
        self.busy_timeout_ms = max(0, int(busy_timeout_ms))
        self.conn: sqlite3.Connection | None = None
        self._has_guid = False
        self._has_foreign_count = False
        self.root_ids: Dict[str, int] = {}

    def __enter__(self) -> "PlacesDB":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def open(self) -> None:
        mode = "ro" if self.readonly else "rw"
        uri = f"file:{self.db_path.as_posix()}?mode={mode}"
        timeout_s = max(0.1, self.busy_timeout_ms / 1000.0) if self.busy_timeout_ms > 0 else 0.1
        try:
            self.conn = sqlite3.connect(uri, uri=True, timeout=timeout_s)
            self.conn.row_factory = sqlite3.Row
            if self.busy_timeout_ms > 0:
                self.conn.execute(f"PRAGMA busy_timeout = {self.busy_timeout_ms}")
            self.conn.execute("PRAGMA foreign_keys = ON")
            self._has_guid = self._has_column("moz_bookmarks", "guid")
            self._has_foreign_count = self._has_column("moz_places", "foreign_count")
            self.root_ids = self._discover_root_ids()
        except sqlite3.Error as e:
            self.close()
            raise _collaborator_error(self.db_path, e) from e

    def close(self) -> None:
        if self.conn is not None:
            self.conn.close()
            self.conn = None

    def get_tree(self) -> TreeNode:
        try:
            rows = self._cursor().execute(
                """
                SELECT b.id, b.type, b.parent, b.title, b.dateAdded, {guid}, p.url, p.hidden
                FROM moz_bookmarks b
                LEFT JOIN moz_places p ON p.id = b.fk
                ORDER BY b.parent, b.position, b.id
                """.format(guid="b.guid" if self._has_guid else "NULL AS guid")
            ).fetchall()
        except sqlite3.Error as e:
            raise _collaborator_error(self.db_path, e) from e

        tags_root = self.root_ids.get("tags")
        nodes: Dict[int, TreeNode] = {}
        parents: Dict[int, int] = {}
        hidden = 0
        for r in rows:
            btype = int(r["type"] or 0)
            row_id = int(r["id"])
            if btype == _TYPE_FOLDER:
                nodes[row_id] = TreeNode(
                    id=row_id,
                    title=(r["title"] or "").strip(),
                    date_added=_moz_time_to_ms(r["dateAdded"]),
                    guid=r["guid"],
                )
            elif btype == _TYPE_LINK:
                url = (r["url"] or "").strip()
                if not url or url.startswith("place:"):
                    continue
                if int(r["hidden"] or 0) != 0:
                    hidden += 1
                    continue
                nodes[row_id] = TreeNode(
                    id=row_id,
                    title=(r["title"] or "").strip(),
                    url=url,
                    date_added=_moz_time_to_ms(r["dateAdded"]),
                    guid=r["guid"],
                )
            else:
                # Separators.
                continue
            parents[row_id] = int(r["parent"] or 0)
        if hidden:
            log.debug("Skipped %d bookmarks pointing at hidden places.", hidden)

        root: Optional[TreeNode] = None
        for r in rows:
            row_id = int(r["id"])
            node = nodes.get(row_id)
            if node is None:
                continue
            parent = nodes.get(parents[row_id])
            if parent is None:
                if root is None and node.is_container:
                    root = node
                continue
            if row_id == tags_root:
                # Tag folders hold second references to the same places.
                continue
            parent.children.append(node)
        if root is None:
            raise CollaboratorError(f"no bookmark root found in {self.db_path}", retryable=False)
        return root

    def create_container(self, parent_id: int, title: str) -> TreeNode:
        name = (title or "").strip()
        if not name:
            raise ValueError("folder title cannot be empty")
        self._assert_writable()
        try:
            self._require_folder(parent_id)
            new_id = self._insert_bookmark(
                btype=_TYPE_FOLDER,
                fk=None,
                parent_id=parent_id,
                position=self._next_position(parent_id),
                title=name,
            )
            self.conn.commit()
        except sqlite3.Error as e:
            self._rollback()
            raise _collaborator_error(self.db_path, e) from e
        log.debug("Created folder %r (id=%d) under %d", name, new_id, parent_id)
        return TreeNode(id=new_id, title=name, date_added=self._now_us() // 1000)

    def create_link(self, parent_id: int, title: str, url: str) -> TreeNode:
        if not (url or "").strip():
            raise ValueError("link URL cannot be empty")
        self._assert_writable()
        display_title = (title or "").strip() or url
        try:
            self._require_folder(parent_id)
            place_id = self._ensure_place(url, display_title)
            link_id = self._insert_bookmark(
                btype=_TYPE_LINK,
                fk=place_id,
                parent_id=parent_id,
                position=self._next_position(parent_id),
                title=display_title,
            )
            self.conn.commit()
        except sqlite3.Error as e:
            self._rollback()
            raise _collaborator_error(self.db_path, e) from e
        return TreeNode(id=link_id, title=display_title, url=url, date_added=self._now_us() // 1000)

    def validate_integrity(self) -> None:
        c = self._cursor()
        row = c.execute("PRAGMA integrity_check").fetchone()
        status = str(row[0]) if row is not None else ""
        if status.lower() != "ok":
            raise RuntimeError(f"sqlite integrity_check failed: {status or '<empty>'}")

        fk_rows = c.execute("PRAGMA foreign_key_check").fetchall()
        if fk_rows:
            raise RuntimeError(f"sqlite foreign_key_check failed with {len(fk_rows)} row(s)")

    def _discover_root_ids(self) -> Dict[str, int]:
        c = self._cursor()
        out: Dict[str, int] = {}
        if self._has_table("moz_bookmarks_roots"):
            rows = c.execute("SELECT root_name, folder_id FROM moz_bookmarks_roots").fetchall()
            for r in rows:
                out[str(r["root_name"])] = int(r["folder_id"])
        if not out and self._has_guid:
            guids = tuple(_ROOT_GUID_TO_NAME.keys())
            rows = c.execute(
                f"SELECT id, guid FROM moz_bookmarks WHERE guid IN ({', '.join('?' * len(guids))})",
                guids,
            ).fetchall()
            for r in rows:
                name = _ROOT_GUID_TO_NAME.get(str(r["guid"]))
                if name:
                    out[name] = int(r["id"])
        return out

    def _ensure_place(self, url: str, title: str) -> int:
        c = self._cursor()
        row = c.execute("SELECT id, title FROM moz_places WHERE url = ? LIMIT 1", (url,)).fetchone()
        if row:
            pid = int(row["id"])
            if title and not (row["title"] or ""):
                c.execute("UPDATE moz_places SET title = ? WHERE id = ?", (title, pid))
            return pid
        cols = ["url", "title"]
        vals: List[object] = [url, title]
        if self._has_column("moz_places", "guid"):
            cols.append("guid")
            vals.append(self._new_guid())
        placeholders = ", ".join(["?"] * len(vals))
        c.execute(
            f"INSERT INTO moz_places ({', '.join(cols)}) VALUES ({placeholders})",
            vals,
        )
        return int(c.lastrowid)

    def _insert_bookmark(
        self,
        *,
        btype: int,
        fk: Optional[int],
        parent_id: int,
        position: int,
        title: Optional[str],
    ) -> int:
        c = self._cursor()
        now = self._now_us()
        cols = ["type", "fk", "parent", "position", "title", "dateAdded", "lastModified"]
        vals: List[object] = [btype, fk, parent_id, position, title, now, now]
        if self._has_guid:
            cols.append("guid")
            vals.append(self._new_guid())
        placeholders = ", ".join(["?"] * len(vals))
        c.execute(
            f"INSERT INTO moz_bookmarks ({', '.join(cols)}) VALUES ({placeholders})",
            vals,
        )
        row_id = int(c.lastrowid)
        if fk is not None and fk > 0 and self._has_foreign_count:
            c.execute("UPDATE moz_places SET foreign_count = foreign_count + 1 WHERE id = ?", (fk,))
        c.execute("UPDATE moz_bookmarks SET lastModified = ? WHERE id = ?", (now, parent_id))
        return row_id

    def _next_position(self, parent_id: int) -> int:
        c = self._cursor()
        row = c.execute("SELECT COALESCE(MAX(position), -1) AS p FROM moz_bookmarks WHERE parent = ?", (parent_id,)).fetchone()
        return int(row["p"]) + 1

    def _require_folder(self, folder_id: int) -> None:
        c = self._cursor()
        row = c.execute("SELECT type FROM moz_bookmarks WHERE id = ?", (folder_id,)).fetchone()
        if not row:
            raise ValueError(f"folder id not found: {folder_id}")
        if int(row["type"] or 0) != _TYPE_FOLDER:
            raise ValueError(f"id is not a folder: {folder_id}")

    def _assert_writable(self) -> None:
        if self.readonly:
            raise RuntimeError("database opened in readonly mode")

    def _rollback(self) -> None:
        if self.conn is not None:
            self.conn.rollback()

    def _has_table(self, name: str) -> bool:
        c = self._cursor()
        row = c.execute(
            "SELECT 1 FROM sqlite_master WHERE type='table' AND name=? LIMIT 1",
            (name,),
        ).fetchone()
        return row is not None

    def _has_column(self, table_name: str, column_name: str) -> bool:
        rows = self._cursor().execute(f"PRAGMA table_info({table_name})").fetchall()
        return any(str(r[1]) == column_name for r in rows)

    def _cursor(self) -> sqlite3.Cursor:
        if self.conn is None:
            raise RuntimeError("database is not open")
        return self.conn.cursor()

    def _now_us(self) -> int:
        return int(time.time() * 1_000_000)

    def _new_guid(self) -> str:
        # Firefox GUIDs are 12-char URL-safe strings.
        return base64.urlsafe_b64encode(os.urandom(9)).decode("ascii").rstrip("=")


def resolve_places_path(profile_or_db_path: Path) -> Path:
    p = Path(profile_or_db_path)
    if p.is_dir():
        db = p / "places.sqlite"
        if db.exists():
            return db
        raise FileNotFoundError(f"places.sqlite not found in {p}")
    return p


def _collaborator_error(db_path: Path, e: sqlite3.Error) -> CollaboratorError:
    msg = str(e).strip()
    if "locked" in msg.lower() or "busy" in msg.lower():
        return CollaboratorError(f"Firefox database is locked ({db_path}). Close Firefox and rerun.")
    return CollaboratorError(f"places.sqlite error ({db_path}): {msg}")


def _moz_time_to_ms(value) -> Optional[int]:
    if value is None:
        return None
    try:
        iv = int(value)
    except (TypeError, ValueError):
        return None
    if iv <= 0:
        return None
    # PRTime is microseconds since the Unix epoch.
    if iv > 10_000_000_000_000:
        return iv // 1000
    return iv
