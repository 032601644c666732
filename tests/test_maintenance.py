from stagemarks import __version__
from stagemarks.maintenance import run_maintenance
from stagemarks.metadata import METADATA_KEY, Metadata
from stagemarks.model import BookmarkRecord


def _records():
    return [BookmarkRecord(title="A", url="https://a/", added_at=1)]


def test_tick_expires_stale_stage_and_records_run(stage, kv, clock):
    meta = Metadata(kv, clock=clock)
    stage.save(_records())
    clock.advance_hours(25)
    assert run_maintenance(stage, meta) is True
    assert stage.snapshot() is None
    assert kv.get(METADATA_KEY)["lastMaintenance"] == clock.now


def test_tick_keeps_fresh_stage(stage, kv, clock):
    stage.save(_records())
    clock.advance_hours(1)
    assert run_maintenance(stage, Metadata(kv, clock=clock)) is False
    assert len(stage.load()) == 1


def test_tick_honours_custom_ttl(stage, clock):
    stage.save(_records())
    clock.advance_hours(2)
    assert run_maintenance(stage, ttl_ms=60 * 60 * 1000) is True


def test_metadata_initialises_once_and_counts_syncs(kv, clock):
    meta = Metadata(kv, clock=clock)
    first = meta.ensure()
    assert first == {"installedAt": clock.now, "version": __version__, "totalSyncs": 0}
    clock.advance_hours(1)
    assert meta.ensure()["installedAt"] == first["installedAt"]
    meta.record_sync()
    data = meta.record_sync()
    assert data["totalSyncs"] == 2
    assert data["lastUpdate"] == clock.now
