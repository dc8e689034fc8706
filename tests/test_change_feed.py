# tests/test_change_feed.py

"""
Tests for the realtime change feed and local state folding.
"""

import threading
from datetime import datetime, timedelta, timezone

from core.change_feed import ChangeFeed, FoldedState, commit_time, fold_changes
from core.utils import utc_now
from models.change import ChangeEvent
from models.enums import ChangeOperation


def event(operation, record, table="visitors", building_id="b1", at=None):
    kwargs = {"committed_at": at} if at else {}
    return ChangeEvent(operation=operation, table=table, building_id=building_id, record=record, **kwargs)


def test_subscriber_receives_only_its_scope():
    feed = ChangeFeed(buffer_size=8)
    visitors_b1 = feed.subscribe("b1", "visitors")
    everything_b1 = feed.subscribe("b1")

    assert feed.publish(event(ChangeOperation.INSERT, {"id": "v1"})) == 2
    assert feed.publish(event(ChangeOperation.INSERT, {"id": "bk1"}, table="bookings")) == 1
    assert feed.publish(event(ChangeOperation.INSERT, {"id": "v2"}, building_id="b2")) == 0

    assert visitors_b1.get(timeout=0).record_id == "v1"
    assert visitors_b1.get(timeout=0) is None
    assert [everything_b1.get(timeout=0).record_id for _ in range(2)] == ["v1", "bk1"]


def test_publish_row_scopes_by_building_column():
    feed = ChangeFeed(buffer_size=8)
    sub = feed.subscribe("b1", "notices")

    feed.publish_row(ChangeOperation.INSERT, "notices", {"id": "n1", "building_id": "b1"})

    received = sub.get(timeout=0)
    assert received.table == "notices"
    assert received.building_id == "b1"


def test_lagging_subscriber_gets_single_resync():
    feed = ChangeFeed(buffer_size=3)
    sub = feed.subscribe("b1")

    for i in range(5):
        feed.publish(event(ChangeOperation.INSERT, {"id": f"v{i}"}))

    received = []
    while (item := sub.get(timeout=0)) is not None:
        received.append(item)

    assert received[0].operation == ChangeOperation.RESYNC
    assert [e.record_id for e in received[1:]] == ["v4"]


def test_iteration_blocks_until_published_and_stops_on_close():
    feed = ChangeFeed(buffer_size=8)
    sub = feed.subscribe("b1")
    seen = []

    def consume():
        for item in sub:
            seen.append(item.record_id)
            if len(seen) == 2:
                sub.close()

    worker = threading.Thread(target=consume)
    worker.start()
    feed.publish(event(ChangeOperation.INSERT, {"id": "v1"}))
    feed.publish(event(ChangeOperation.UPDATE, {"id": "v1", "status": "ENTERED"}))
    worker.join(timeout=5)

    assert not worker.is_alive()
    assert seen == ["v1", "v1"]
    assert feed.subscriber_count == 0


def test_resubscribe_starts_with_resync():
    feed = ChangeFeed(buffer_size=8)
    sub = feed.subscribe("b1", "bookings")
    sub.close()

    fresh = sub.resubscribe()

    assert fresh.get(timeout=0).operation == ChangeOperation.RESYNC
    assert fresh.table == "bookings"
    assert feed.subscriber_count == 1


# ============================================================
# Folding
# ============================================================
def test_replayed_events_are_idempotent():
    insert = event(ChangeOperation.INSERT, {"id": "v1", "status": "PENDING"})
    update = event(ChangeOperation.UPDATE, {"id": "v1", "status": "ENTERED"}, at=utc_now() + timedelta(seconds=1))

    once = fold_changes([insert, update])
    twice = fold_changes([insert, update, insert, update])

    assert once.records == twice.records == {"v1": {"id": "v1", "status": "ENTERED"}}


def test_newest_commit_wins_regardless_of_delivery_order():
    now = utc_now()
    older = event(ChangeOperation.UPDATE, {"id": "v1", "status": "WAITING_APPROVAL"}, at=now)
    newer = event(ChangeOperation.UPDATE, {"id": "v1", "status": "REJECTED"}, at=now + timedelta(seconds=1))

    state = fold_changes([newer, older])

    assert state.records["v1"]["status"] == "REJECTED"


def test_delete_is_not_resurrected_by_late_update():
    now = utc_now()
    state = FoldedState([{"id": "bk1", "start_time": "10:00"}])

    assert state.apply(event(ChangeOperation.DELETE, {"id": "bk1"}, table="bookings", at=now + timedelta(seconds=2)))
    assert not state.apply(event(ChangeOperation.UPDATE, {"id": "bk1", "start_time": "11:00"}, table="bookings", at=now))

    assert state.records == {}


def test_resync_flags_refetch():
    state = FoldedState([{"id": "v1"}])

    assert state.apply(event(ChangeOperation.RESYNC, {})) is False
    assert state.needs_refetch

    state.reset([{"id": "v2"}])
    assert not state.needs_refetch
    assert list(state.records) == ["v2"]


def test_publish_row_stamps_the_rows_write_time():
    feed = ChangeFeed(buffer_size=8)
    sub = feed.subscribe("b1", "visitors")

    feed.publish_row(
        ChangeOperation.UPDATE,
        "visitors",
        {"id": "v1", "building_id": "b1", "created_at": "2024-06-01T09:00:00+00:00",
         "updated_at": "2024-06-01T10:30:00Z"},
    )

    assert sub.get(timeout=0).committed_at == datetime(2024, 6, 1, 10, 30, tzinfo=timezone.utc)


def test_commit_time_fallbacks():
    created = {"id": "n1", "created_at": "2024-06-01T09:00:00"}
    before = utc_now()

    assert commit_time(ChangeOperation.INSERT, created) == datetime(2024, 6, 1, 9, 0, tzinfo=timezone.utc)
    assert commit_time(ChangeOperation.UPDATE, created) >= before
    assert commit_time(ChangeOperation.DELETE, {**created, "updated_at": "2024-06-01T09:30:00+00:00"}) >= before
