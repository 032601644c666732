from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Iterable, List, Optional

from pydantic import AliasChoices, BaseModel, Field, StrictStr, ValidationError, field_validator

from .dedupe import dedupe
from .errors import InvalidRecord, MalformedInput, NoValidRecords
from .log import get_logger
from .model import BookmarkRecord, now_ms
from .url_check import is_valid_url

log = get_logger(__name__)


@dataclass
class DecodeResult:
    records: List[BookmarkRecord]
    skipped: int = 0
    duplicates: int = 0


class ImportedRecord(BaseModel):
    title: StrictStr = Field(..., min_length=1)
    url: StrictStr = Field(..., min_length=1)
    added_at: Optional[int] = Field(None, validation_alias=AliasChoices("addedAt", "dateAdded"))

    @field_validator("added_at", mode="before")
    @classmethod
    def _lenient_timestamp(cls, v: Any) -> Optional[int]:
        # A bad timestamp is not worth dropping the bookmark for.
        if isinstance(v, bool):
            return None
        try:
            return int(v) if v is not None else None
        except (TypeError, ValueError, OverflowError):
            return None


def encode_json(records: Iterable[BookmarkRecord]) -> str:
    return json.dumps([r.to_dict() for r in records], indent=2, ensure_ascii=False)


def decode_json(payload: str) -> DecodeResult:
    try:
        data = json.loads(payload)
    except (TypeError, ValueError) as e:
        raise MalformedInput(f"Invalid JSON: {e}") from e
    if not isinstance(data, list):
        raise MalformedInput("Invalid JSON format: expected array of bookmarks")

    out: List[BookmarkRecord] = []
    skipped = 0
    for idx, item in enumerate(data):
        try:
            out.append(_to_record(item))
        except InvalidRecord as e:
            skipped += 1
            log.debug("Skipping record #%d: %s", idx, e)

    if not out:
        raise NoValidRecords(skipped)
    records = dedupe(out)
    return DecodeResult(records=records, skipped=skipped, duplicates=len(out) - len(records))


def _to_record(item: Any) -> BookmarkRecord:
    try:
        parsed = ImportedRecord.model_validate(item)
    except ValidationError as e:
        raise InvalidRecord(f"{e.error_count()} validation error(s)") from e
    url = parsed.url.strip()
    if not is_valid_url(url):
        raise InvalidRecord(f"rejected url: {url[:80]!r}")
    added = parsed.added_at if parsed.added_at is not None else now_ms()
    return BookmarkRecord(title=parsed.title, url=url, added_at=added)
