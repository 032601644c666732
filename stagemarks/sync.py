"""Pull (live tree -> stage), push (stage -> live tree), import and export.

A tree provider is any object with::

    get_tree() -> TreeNode
    create_container(parent_id, title) -> TreeNode
    create_link(parent_id, title, url) -> TreeNode

`places_db.PlacesDB` is the Firefox implementation. Push is additive only:
the engine never asks the provider to delete or move anything.
"""

from __future__ import annotations

import enum
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, Optional, Sequence

from .codec_json import DecodeResult, decode_json, encode_json
from .dedupe import dedupe
from .errors import CollaboratorError, MalformedInput, OperationInProgress
from .flatten import collect_urls, flatten_links
from .folders import resolve_folder
from .log import get_logger
from .metadata import Metadata
from .model import BookmarkRecord, TreeNode
from .notify import STAGED_DATA_CHANGED, Notifier
from .parse_netscape import parse_bookmarks_html
from .staging import StagingStore
from .url_check import is_valid_url
from .writer_netscape import write_bookmarks_html

log = get_logger(__name__)

FORMAT_JSON = "json"
FORMAT_HTML = "html"


class OpState(enum.Enum):
    IDLE = "idle"
    CAPTURING = "capturing"
    APPLYING = "applying"
    IMPORTING = "importing"
    EXPORTING = "exporting"


class PushOutcome(enum.Enum):
    EMPTY_STAGE = "empty-stage"
    NOTHING_TO_SYNC = "nothing-to-sync"
    ADDED = "added"
    ADDED_WITH_FAILURES = "added-with-failures"


@dataclass
class PushResult:
    outcome: PushOutcome
    added: int = 0
    failed: int = 0
    already_present: int = 0
    folder_id: object = None

    @property
    def nothing_to_do(self) -> bool:
        return self.outcome in (PushOutcome.EMPTY_STAGE, PushOutcome.NOTHING_TO_SYNC)


@dataclass
class PullResult:
    records: List[BookmarkRecord]
    skipped: int = 0
    duplicates: int = 0

    @property
    def count(self) -> int:
        return len(self.records)


@dataclass
class ImportResult:
    records: List[BookmarkRecord]
    skipped: int = 0
    duplicates: int = 0

    @property
    def count(self) -> int:
        return len(self.records)


def plan_push(staged: Sequence[BookmarkRecord], tree: TreeNode) -> List[BookmarkRecord]:
    """Staged records whose url is not in the live tree yet, in staged order."""
    existing = collect_urls(tree)
    return [r for r in staged if r.url not in existing]


def execute_push(
    to_add: Sequence[BookmarkRecord],
    tree: TreeNode,
    provider,
    *,
    folder_title: str = "Imported Bookmarks",
    default_root: str = "toolbar",
) -> PushResult:
    if not to_add:
        return PushResult(outcome=PushOutcome.NOTHING_TO_SYNC)

    folder = resolve_folder(provider, tree, folder_title, default_root=default_root)
    result = PushResult(outcome=PushOutcome.ADDED, folder_id=folder.id)
    total = len(to_add)
    for idx, r in enumerate(to_add, start=1):
        try:
            node = provider.create_link(folder.id, r.title, r.url)
        except Exception as e:
            # One bad link must not stop the rest; there is no rollback.
            result.failed += 1
            log.warning("Failed to add bookmark [%d/%d] %s: %s", idx, total, r.url, e)
            continue
        folder.children.append(node)
        result.added += 1
        log.debug("Added bookmark [%d/%d] %s", idx, total, r.url)
    if result.failed:
        result.outcome = PushOutcome.ADDED_WITH_FAILURES
    return result


def capture_pull(tree: TreeNode, stage: StagingStore) -> PullResult:
    """Replace the stage with the live tree's links (never merged with the old stage)."""
    flat = flatten_links(tree)
    valid = [r for r in flat if is_valid_url(r.url)]
    skipped = len(flat) - len(valid)
    if skipped:
        log.info("Skipped %d bookmarks with non-http(s) URLs.", skipped)
    records = stage.save(dedupe(valid))
    return PullResult(records=records, skipped=skipped, duplicates=len(valid) - len(records))


def detect_format(path: Path) -> str:
    suffix = Path(path).suffix.lower()
    if suffix == ".json":
        return FORMAT_JSON
    if suffix in (".html", ".htm"):
        return FORMAT_HTML
    raise MalformedInput("Unsupported file type. Please use .json or .html files")


def decode_payload(text: str, fmt: str) -> DecodeResult:
    if fmt == FORMAT_JSON:
        return decode_json(text)
    if fmt == FORMAT_HTML:
        return parse_bookmarks_html(text)
    raise MalformedInput(f"Unknown format: {fmt}")


class StageSync:
    """Runs one stage operation at a time; a second start while busy is rejected."""

    def __init__(
        self,
        stage: StagingStore,
        *,
        metadata: Optional[Metadata] = None,
        notifier: Optional[Notifier] = None,
        folder_title: str = "Imported Bookmarks",
        default_root: str = "toolbar",
        export_title: str = "Bookmarks",
    ):
        self.stage = stage
        self.metadata = metadata
        self.notifier = notifier or Notifier()
        self.folder_title = folder_title
        self.default_root = default_root
        self.export_title = export_title
        self._state = OpState.IDLE
        self._guard = threading.Lock()

    @property
    def state(self) -> OpState:
        return self._state

    @contextmanager
    def _running(self, state: OpState) -> Iterator[None]:
        if not self._guard.acquire(blocking=False):
            raise OperationInProgress(self._state.value)
        self._state = state
        try:
            yield
        finally:
            self._state = OpState.IDLE
            self._guard.release()

    def pull(self, provider) -> PullResult:
        with self._running(OpState.CAPTURING):
            tree = _read_tree(provider)
            result = capture_pull(tree, self.stage)
            self._after_stage_change(result.count, sync=True)
            log.info("Pulled %d bookmarks from browser.", result.count)
            return result

    def push(self, provider) -> PushResult:
        with self._running(OpState.APPLYING):
            staged = self.stage.load()
            if not staged:
                log.info("No bookmarks to push.")
                return PushResult(outcome=PushOutcome.EMPTY_STAGE)

            tree = _read_tree(provider)
            to_add = plan_push(staged, tree)
            result = execute_push(
                to_add,
                tree,
                provider,
                folder_title=self.folder_title,
                default_root=self.default_root,
            )
            result.already_present = len(staged) - len(to_add)
            if result.outcome is PushOutcome.NOTHING_TO_SYNC:
                log.info("All %d staged bookmarks already exist in browser.", len(staged))
            else:
                log.info("Added %d bookmarks (%d failed).", result.added, result.failed)
            if result.added and self.metadata is not None:
                self.metadata.record_sync()
            return result

    def import_payload(self, text: str, fmt: str) -> ImportResult:
        with self._running(OpState.IMPORTING):
            decoded = decode_payload(text, fmt)
            records = self.stage.save(decoded.records)
            self._after_stage_change(len(records), sync=False)
            if decoded.skipped:
                log.info("Imported %d bookmarks (skipped %d invalid).", len(records), decoded.skipped)
            else:
                log.info("Imported %d bookmarks.", len(records))
            return ImportResult(records=records, skipped=decoded.skipped, duplicates=decoded.duplicates)

    def export(self, fmt: str) -> Optional[str]:
        with self._running(OpState.EXPORTING):
            records = self.stage.load()
            if not records:
                return None
            if fmt == FORMAT_JSON:
                return encode_json(records)
            if fmt == FORMAT_HTML:
                return write_bookmarks_html(records, title=self.export_title)
            raise MalformedInput(f"Unknown format: {fmt}")

    def _after_stage_change(self, count: int, *, sync: bool) -> None:
        if self.metadata is not None:
            if sync:
                self.metadata.record_sync()
            else:
                self.metadata.update(lastUpdate=self.metadata.clock())
        self.notifier.emit(STAGED_DATA_CHANGED, count=count)


def _read_tree(provider) -> TreeNode:
    try:
        return provider.get_tree()
    except CollaboratorError:
        raise
    except (OSError, RuntimeError) as e:
        raise CollaboratorError(f"Failed to read bookmarks: {e}") from e
