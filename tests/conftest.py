import sqlite3
import sys
from pathlib import Path

import pytest

# Allow `import stagemarks` without installing the package.
ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from stagemarks.kv_store import SqliteKV  # noqa: E402
from stagemarks.staging import StagingStore  # noqa: E402


def mk_places_db(path: Path, *, links=(), with_roots_table: bool = True) -> Path:
    """Minimal places.sqlite: the five Firefox roots plus `links` as (id, parent, url, title)."""
    conn = sqlite3.connect(path)
    try:
        conn.executescript(
            """
            CREATE TABLE moz_places (
              id INTEGER PRIMARY KEY,
              url TEXT,
              title TEXT,
              hidden INTEGER DEFAULT 0,
              guid TEXT,
              foreign_count INTEGER DEFAULT 0
            );
            CREATE TABLE moz_bookmarks (
              id INTEGER PRIMARY KEY,
              type INTEGER,
              fk INTEGER DEFAULT NULL,
              parent INTEGER,
              position INTEGER,
              title TEXT,
              keyword_id INTEGER,
              folder_type TEXT,
              dateAdded INTEGER,
              lastModified INTEGER,
              guid TEXT,
              syncStatus INTEGER NOT NULL DEFAULT 0,
              syncChangeCounter INTEGER NOT NULL DEFAULT 1
            );
            """
        )
        if with_roots_table:
            conn.execute("CREATE TABLE moz_bookmarks_roots (root_name TEXT PRIMARY KEY, folder_id INTEGER)")
            conn.executemany(
                "INSERT INTO moz_bookmarks_roots(root_name, folder_id) VALUES(?, ?)",
                [("toolbar", 3), ("menu", 2), ("tags", 4), ("unfiled", 5), ("mobile", 6)],
            )
        conn.executemany(
            "INSERT INTO moz_bookmarks(id,type,fk,parent,position,title,dateAdded,lastModified,guid) VALUES(?,?,?,?,?,?,?,?,?)",
            [
                (1, 2, None, 0, 0, "", 0, 0, "root________"),
                (2, 2, None, 1, 0, "menu", 0, 0, "menu________"),
                (3, 2, None, 1, 1, "toolbar", 0, 0, "toolbar_____"),
                (4, 2, None, 1, 2, "tags", 0, 0, "tags________"),
                (5, 2, None, 1, 3, "unfiled", 0, 0, "unfiled_____"),
                (6, 2, None, 1, 4, "mobile", 0, 0, "mobile______"),
            ],
        )
        for pos, (bid, parent, url, title) in enumerate(links):
            place_id = 1000 + bid
            conn.execute(
                "INSERT INTO moz_places(id,url,title,hidden,guid,foreign_count) VALUES(?,?,?,?,?,?)",
                (place_id, url, title, 0, f"p{bid}", 1),
            )
            conn.execute(
                "INSERT INTO moz_bookmarks(id,type,fk,parent,position,title,dateAdded,lastModified,guid) VALUES(?,?,?,?,?,?,?,?,?)",
                (bid, 1, place_id, parent, pos, title, 1_700_000_000_000_000, 0, f"l{bid}"),
            )
        conn.commit()
    finally:
        conn.close()
    return path


class FakeClock:
    def __init__(self, now_ms: int = 1_700_000_000_000):
        self.now = now_ms

    def __call__(self) -> int:
        return self.now

    def advance_hours(self, hours: float) -> None:
        self.now += int(hours * 60 * 60 * 1000)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def kv(tmp_path: Path) -> SqliteKV:
    return SqliteKV(tmp_path / "state" / "stage.sqlite")


@pytest.fixture
def stage(kv: SqliteKV, clock: FakeClock) -> StagingStore:
    return StagingStore(kv, clock=clock)


@pytest.fixture
def make_places(tmp_path: Path):
    def _make(links=(), **kwargs) -> Path:
        return mk_places_db(tmp_path / "places.sqlite", links=links, **kwargs)

    return _make
