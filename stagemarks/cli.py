from __future__ import annotations

import argparse
import time
from datetime import date, datetime
from pathlib import Path
from typing import List

import yaml

from . import __version__
from .config import Settings, load_settings
from .errors import CollaboratorError, MalformedInput, NoValidRecords, OperationInProgress
from .kv_store import SqliteKV
from .log import LogConfig, get_logger, setup_logging
from .maintenance import run_maintenance
from .metadata import Metadata
from .places_db import PlacesDB
from .staging import StagingStore
from .sync import FORMAT_HTML, FORMAT_JSON, PushOutcome, StageSync, detect_format

log = get_logger(__name__)


def main(argv: List[str] | None = None) -> int:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--state-dir", default=None, help="Where the staged snapshot is kept (overrides env/config).")
    common.add_argument("--log-level", default=None, help="DEBUG/INFO/WARN/ERROR (overrides env/config).")
    common.add_argument("--no-color", action="store_true", help="Disable colored logging.")

    p = argparse.ArgumentParser(
        prog="stagemarks",
        description="Stage browser bookmarks, export/import them, and push them back additively.",
    )
    p.add_argument("-V", "--version", action="version", version=f"stagemarks {__version__}")
    p.add_argument("--config", default=None, help="YAML config file (optional). Env vars override defaults.")
    sub = p.add_subparsers(dest="cmd", required=True)

    pull = sub.add_parser("pull", parents=[common], help="Capture the Firefox profile's bookmarks into the stage.")
    pull.add_argument("--firefox-profile", required=True, help="Firefox profile dir or places.sqlite path.")

    push = sub.add_parser("push", parents=[common], help="Add staged bookmarks missing from the Firefox profile.")
    push.add_argument("--firefox-profile", required=True, help="Firefox profile dir or places.sqlite path.")
    push.add_argument("--folder", default=None, help="Destination folder title (default from config).")

    imp = sub.add_parser("import", parents=[common], help="Replace the stage with a .json or .html bookmarks file.")
    imp.add_argument("file", help="Bookmarks file (.json or Netscape .html/.htm).")

    exp = sub.add_parser("export", parents=[common], help="Write the stage as JSON or Netscape HTML.")
    exp.add_argument("--format", choices=[FORMAT_JSON, FORMAT_HTML], default=FORMAT_JSON)
    exp.add_argument("--out", default=None, help="Output path (default: bookmarks_YYYY-MM-DD.<format>).")

    sub.add_parser("status", parents=[common], help="Show what is staged.")
    sub.add_parser("maintain", parents=[common], help="Expire the stage when older than the TTL (for cron/timers).")

    args = p.parse_args(argv)
    try:
        cfg = load_settings(args.config)
    except (OSError, ValueError, yaml.YAMLError) as e:
        log.error("Failed to load config %s: %s", args.config, e)
        return 2
    if args.state_dir:
        cfg.state_dir = args.state_dir
    if args.log_level:
        cfg.log_level = args.log_level
    if args.no_color:
        cfg.no_color = True
    setup_logging(LogConfig(level=cfg.log_level, no_color=cfg.no_color))

    kv = SqliteKV(cfg.state_path / "stage.sqlite", busy_timeout_ms=cfg.busy_timeout_ms)
    stage = StagingStore(kv)
    metadata = Metadata(kv)
    metadata.ensure()
    engine = StageSync(
        stage,
        metadata=metadata,
        folder_title=getattr(args, "folder", None) or cfg.folder_title,
        default_root=cfg.default_root,
        export_title=cfg.export_title,
    )

    t0 = time.time()
    try:
        if args.cmd == "pull":
            rc = _cmd_pull(args, cfg, engine)
        elif args.cmd == "push":
            rc = _cmd_push(args, cfg, engine)
        elif args.cmd == "import":
            rc = _cmd_import(args, engine)
        elif args.cmd == "export":
            rc = _cmd_export(args, engine)
        elif args.cmd == "status":
            rc = _cmd_status(cfg, stage, metadata)
        elif args.cmd == "maintain":
            rc = 0
            run_maintenance(stage, metadata, ttl_ms=cfg.ttl_ms)
        else:
            return 2
    except (MalformedInput, NoValidRecords) as e:
        log.error("Import failed: %s", e)
        return 2
    except CollaboratorError as e:
        hint = " (retry may succeed)" if e.retryable else ""
        log.error("%s%s", e, hint)
        return 2
    except (OperationInProgress, FileNotFoundError) as e:
        log.error("%s", e)
        return 2
    log.debug("Done in %d ms.", int((time.time() - t0) * 1000))
    return rc


def _cmd_pull(args, cfg: Settings, engine: StageSync) -> int:
    with PlacesDB(args.firefox_profile, readonly=True, busy_timeout_ms=cfg.busy_timeout_ms) as db:
        result = engine.pull(db)
    log.info("Successfully pulled %d bookmarks.", result.count)
    return 0


def _cmd_push(args, cfg: Settings, engine: StageSync) -> int:
    with PlacesDB(args.firefox_profile, readonly=False, busy_timeout_ms=cfg.busy_timeout_ms) as db:
        result = engine.push(db)
        if result.added:
            try:
                db.validate_integrity()
            except RuntimeError as e:
                raise CollaboratorError(str(e), retryable=False) from e
    if result.outcome is PushOutcome.EMPTY_STAGE:
        log.warning("No bookmarks to push. Run pull or import first.")
        return 0
    if result.outcome is PushOutcome.NOTHING_TO_SYNC:
        log.info("All bookmarks already exist in browser.")
        return 0
    suffix = "" if result.added == 1 else "s"
    if result.failed:
        log.warning("Added %d bookmark%s (%d failed).", result.added, suffix, result.failed)
        return 1
    log.info("Added %d bookmark%s.", result.added, suffix)
    return 0


def _cmd_import(args, engine: StageSync) -> int:
    path = Path(args.file)
    if not path.exists():
        log.error("Input file not found: %s", path)
        return 2
    fmt = detect_format(path)
    try:
        text = path.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        log.error("Cannot read %s: %s", path, e)
        return 2
    result = engine.import_payload(text, fmt)
    msg = f"Imported {result.count} bookmark{'' if result.count == 1 else 's'}"
    if result.skipped:
        msg += f" (skipped {result.skipped} invalid)"
    log.info("%s. Use 'stagemarks push' to add them to the browser.", msg)
    return 0


def _cmd_export(args, engine: StageSync) -> int:
    payload = engine.export(args.format)
    if payload is None:
        log.warning("No bookmarks to export.")
        return 0
    out = Path(args.out) if args.out else Path(f"bookmarks_{date.today().isoformat()}.{args.format}")
    try:
        out.write_text(payload, encoding="utf-8")
    except OSError as e:
        log.error("Cannot write %s: %s", out, e)
        return 2
    log.info("Exported %d bookmarks as %s: %s", len(engine.stage.load()), args.format.upper(), out)
    return 0


def _cmd_status(cfg: Settings, stage: StagingStore, metadata: Metadata) -> int:
    snap = stage.snapshot()
    if snap is None:
        print("Staged: 0 bookmarks")
    else:
        captured = datetime.fromtimestamp(snap.captured_at / 1000).isoformat(timespec="seconds")
        expired = " (expired)" if stage.is_expired(cfg.ttl_ms) else ""
        print(f"Staged: {snap.count} bookmarks, captured {captured}{expired}")
    meta = metadata.read()
    print(f"Total syncs: {meta.get('totalSyncs', 0)}")
    return 0
