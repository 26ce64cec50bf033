from datetime import datetime, timedelta

from src.models.vote_snapshot import VoteSnapshot
from src.services.snapshot_service import (
    latest_snapshot,
    list_snapshots,
    record_snapshot_if_due,
    record_snapshot_task,
)

T0 = datetime(2026, 10, 18, 12, 0, 0)


def test_first_snapshot_is_always_recorded(db):
    snapshot = record_snapshot_if_due(db, 5, now=T0)
    assert snapshot is not None
    assert latest_snapshot(db).votes == 5


def test_snapshots_inside_interval_are_throttled(db):
    record_snapshot_if_due(db, 5, now=T0)
    assert record_snapshot_if_due(db, 6, now=T0 + timedelta(minutes=9, seconds=59)) is None
    assert db.query(VoteSnapshot).count() == 1


def test_snapshot_after_interval_is_recorded(db):
    record_snapshot_if_due(db, 5, now=T0)
    assert record_snapshot_if_due(db, 7, now=T0 + timedelta(minutes=10)) is not None
    assert db.query(VoteSnapshot).count() == 2
    assert latest_snapshot(db).votes == 7


def test_history_is_ascending(db):
    # Insertados fuera de orden
    db.add(VoteSnapshot(votes=3, recorded_at=T0 + timedelta(minutes=20)))
    db.add(VoteSnapshot(votes=1, recorded_at=T0))
    db.add(VoteSnapshot(votes=2, recorded_at=T0 + timedelta(minutes=10)))
    db.commit()

    history = list_snapshots(db)
    assert [s.recorded_at for s in history] == sorted(s.recorded_at for s in history)
    assert [s.votes for s in history] == [1, 2, 3]


def test_background_task_uses_own_session(db):
    record_snapshot_task(12)
    record_snapshot_task(13)

    db.expire_all()
    snapshots = list_snapshots(db)
    assert [s.votes for s in snapshots] == [12]
