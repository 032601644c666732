import json
import sqlite3
from pathlib import Path

from stagemarks.cli import main


def _run(tmp_path: Path, *args: str) -> int:
    return main([args[0], "--state-dir", str(tmp_path / "state"), "--no-color", *args[1:]])


def test_pull_export_import_push_roundtrip(tmp_path: Path, make_places):
    db_path = make_places(links=[(40, 3, "https://a.example/", "A"), (41, 2, "https://b.example/", "B")])

    assert _run(tmp_path, "pull", "--firefox-profile", str(db_path)) == 0

    out = tmp_path / "export.json"
    assert _run(tmp_path, "export", "--format", "json", "--out", str(out)) == 0
    data = json.loads(out.read_text(encoding="utf-8"))
    assert [x["url"] for x in data] == ["https://b.example/", "https://a.example/"]

    data.append({"title": "New", "url": "https://new.example/", "addedAt": 1})
    data.append({"title": "Evil", "url": "javascript:alert(1)"})
    out.write_text(json.dumps(data), encoding="utf-8")
    assert _run(tmp_path, "import", str(out)) == 0

    assert _run(tmp_path, "push", "--firefox-profile", str(db_path)) == 0
    with sqlite3.connect(db_path) as conn:
        rows = conn.execute(
            """
            SELECT f.title, p.url FROM moz_bookmarks b
            JOIN moz_places p ON p.id = b.fk
            JOIN moz_bookmarks f ON f.id = b.parent
            WHERE b.type = 1 ORDER BY b.id
            """
        ).fetchall()
    assert ("Imported Bookmarks", "https://new.example/") in rows
    assert len(rows) == 3

    # Nothing left to do: no second folder.
    assert _run(tmp_path, "push", "--firefox-profile", str(db_path)) == 0
    with sqlite3.connect(db_path) as conn:
        n = conn.execute("SELECT COUNT(*) FROM moz_bookmarks WHERE type = 2 AND title = 'Imported Bookmarks'").fetchone()[0]
    assert n == 1


def test_export_html_escapes(tmp_path: Path):
    src = tmp_path / "in.json"
    src.write_text(json.dumps([{"title": "<b>&</b>", "url": "https://x.example/?a=1&b=2"}]), encoding="utf-8")
    assert _run(tmp_path, "import", str(src)) == 0
    out = tmp_path / "out.html"
    assert _run(tmp_path, "export", "--format", "html", "--out", str(out)) == 0
    text = out.read_text(encoding="utf-8")
    assert "&lt;b&gt;&amp;&lt;/b&gt;" in text
    assert 'HREF="https://x.example/?a=1&amp;b=2"' in text


def test_import_errors_exit_2(tmp_path: Path):
    bad = tmp_path / "bad.json"
    bad.write_text('{"not": "a list"}', encoding="utf-8")
    assert _run(tmp_path, "import", str(bad)) == 2

    none_valid = tmp_path / "none.html"
    none_valid.write_text('<DL><p><DT><A HREF="data:text/html,x">x</A></DL><p>', encoding="utf-8")
    assert _run(tmp_path, "import", str(none_valid)) == 2

    csv = tmp_path / "bookmarks.csv"
    csv.write_text("a,b", encoding="utf-8")
    assert _run(tmp_path, "import", str(csv)) == 2

    assert _run(tmp_path, "import", str(tmp_path / "missing.json")) == 2


def test_push_with_empty_stage_is_not_an_error(tmp_path: Path, make_places):
    db_path = make_places()
    assert _run(tmp_path, "push", "--firefox-profile", str(db_path)) == 0
    with sqlite3.connect(db_path) as conn:
        assert conn.execute("SELECT COUNT(*) FROM moz_bookmarks").fetchone()[0] == 6


def test_missing_profile_exits_2(tmp_path: Path):
    empty = tmp_path / "profile"
    empty.mkdir()
    assert _run(tmp_path, "pull", "--firefox-profile", str(empty)) == 2


def test_status_and_maintain(tmp_path: Path, capsys):
    src = tmp_path / "in.json"
    src.write_text(json.dumps([{"title": "A", "url": "https://a.example/"}]), encoding="utf-8")
    assert _run(tmp_path, "import", str(src)) == 0
    assert _run(tmp_path, "maintain") == 0
    assert _run(tmp_path, "status") == 0
    assert "Staged: 1 bookmarks" in capsys.readouterr().out


def test_bad_config_exits_2(tmp_path: Path):
    assert main(["--config", str(tmp_path / "missing.yaml"), "status", "--state-dir", str(tmp_path / "state")]) == 2

    not_mapping = tmp_path / "list.yaml"
    not_mapping.write_text("- a\n- b\n", encoding="utf-8")
    assert main(["--config", str(not_mapping), "status", "--state-dir", str(tmp_path / "state")]) == 2


def test_unreadable_import_and_unwritable_export_exit_2(tmp_path: Path):
    folder = tmp_path / "folder.json"
    folder.mkdir()
    assert _run(tmp_path, "import", str(folder)) == 2

    src = tmp_path / "in.json"
    src.write_text(json.dumps([{"title": "A", "url": "https://a.example/"}]), encoding="utf-8")
    assert _run(tmp_path, "import", str(src)) == 0
    out = tmp_path / "no-such-dir" / "out.json"
    assert _run(tmp_path, "export", "--out", str(out)) == 2
