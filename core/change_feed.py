# core/change_feed.py

"""
In-process change feed.

Services publish a ChangeEvent after every successful write, and the
Supabase database webhook republishes writes made elsewhere. Subscribers
are scoped to one building and optionally one table.

Delivery is best-effort and at-least-once: the same change can arrive
twice (API publish + database webhook), and a subscriber that falls
behind gets a single ``resync`` event instead of the events it missed.
Consumers fold events with ``FoldedState``, which is idempotent and
resolves conflicting updates by ``committed_at``: the time the row was
written (``updated_at``, else ``created_at`` for inserts), never the time
the event happened to be published.
"""

from collections import deque
from datetime import datetime, timezone
from threading import Condition, Lock
from typing import Iterable, Iterator, Optional

from core.config import settings
from core.logging_config import logger
from core.utils import parse_timestamp, utc_now
from models.change import ChangeEvent
from models.enums import ChangeOperation


class Subscription:
    """
    Lazy, infinite stream of change events for one (building, table) scope.

    Iterating blocks until the next event and stops only when the
    subscription is closed. ``get(timeout)`` is the non-blocking form used
    by the websocket bridge.
    """

    def __init__(self, feed: "ChangeFeed", building_id: str, table: Optional[str], buffer_size: int):
        self.feed = feed
        self.building_id = building_id
        self.table = table
        self.buffer_size = buffer_size
        self._events: deque[ChangeEvent] = deque()
        self._cond = Condition()
        self._closed = False

    def matches(self, event: ChangeEvent) -> bool:
        if event.building_id != self.building_id:
            return False
        return self.table is None or event.table == self.table

    @property
    def closed(self) -> bool:
        return self._closed

    def _offer(self, event: ChangeEvent):
        with self._cond:
            if self._closed:
                return
            if len(self._events) >= self.buffer_size:
                # Too far behind: drop the backlog, ask for a re-fetch
                logger.warning(
                    f"Change feed subscriber for building {self.building_id} "
                    f"lagged behind ({self.buffer_size} events), forcing resync"
                )
                self._events.clear()
                self._events.append(self._resync_event())
            else:
                self._events.append(event)
            self._cond.notify_all()

    def _resync_event(self) -> ChangeEvent:
        return ChangeEvent(
            operation=ChangeOperation.RESYNC,
            table=self.table or "*",
            building_id=self.building_id,
        )

    def get(self, timeout: Optional[float] = None) -> Optional[ChangeEvent]:
        """Next event, or None on timeout / once closed and drained."""
        with self._cond:
            if not self._events and not self._closed:
                self._cond.wait(timeout)
            if self._events:
                return self._events.popleft()
            return None

    def __iter__(self) -> Iterator[ChangeEvent]:
        while True:
            event = self.get()
            if event is None:
                if self._closed:
                    return
                continue
            yield event

    def close(self):
        with self._cond:
            self._closed = True
            self._cond.notify_all()
        self.feed._remove(self)

    def resubscribe(self) -> "Subscription":
        """
        Restart the stream with the same scope. Anything published while
        this subscription was closed is lost, so the new stream opens with
        a resync event.
        """
        if not self._closed:
            self.close()
        fresh = self.feed.subscribe(self.building_id, self.table)
        fresh._offer(fresh._resync_event())
        return fresh


class ChangeFeed:
    """Fan-out hub. Thread-safe; publishers never block on slow subscribers."""

    def __init__(self, buffer_size: int = None):
        self.buffer_size = buffer_size or settings.CHANGE_FEED_BUFFER
        self._subscribers: list[Subscription] = []
        self._lock = Lock()

    def subscribe(self, building_id: str, table: Optional[str] = None) -> Subscription:
        sub = Subscription(self, building_id, table, self.buffer_size)
        with self._lock:
            self._subscribers.append(sub)
        return sub

    def _remove(self, sub: Subscription):
        with self._lock:
            if sub in self._subscribers:
                self._subscribers.remove(sub)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def publish(self, event: ChangeEvent) -> int:
        """Deliver to every matching subscriber. Returns the delivery count."""
        with self._lock:
            targets = [s for s in self._subscribers if s.matches(event)]
        for sub in targets:
            sub._offer(event)
        return len(targets)

    def publish_row(self, operation: ChangeOperation, table: str, record: dict) -> int:
        return self.publish(
            ChangeEvent(
                operation=operation,
                table=table,
                building_id=str(record["building_id"]) if record.get("building_id") else None,
                record=record,
                committed_at=commit_time(operation, record),
            )
        )


def commit_time(operation: ChangeOperation, record: dict) -> datetime:
    """
    When the change was written. Deletes carry the old row, so they are
    stamped on arrival; rows without timestamps fall back to now.
    """
    if operation == ChangeOperation.DELETE:
        return utc_now()
    written = record.get("updated_at")
    if written is None and operation == ChangeOperation.INSERT:
        written = record.get("created_at")
    if written is None:
        return utc_now()
    stamp = parse_timestamp(written)
    # "timestamp without time zone" columns are UTC
    return stamp if stamp.tzinfo else stamp.replace(tzinfo=timezone.utc)


# Process-wide hub, handed to routes through dependencies.database.get_change_feed
change_feed = ChangeFeed()


# ============================================================
# Folding events into local state
# ============================================================

class FoldedState:
    """
    Local copy of one table, kept current from change events.

    - Replaying an event already applied is a no-op.
    - For a given record the newest ``committed_at`` wins, whatever the
      delivery order; deletes leave a tombstone so a late update cannot
      resurrect the row.
    - A resync event sets ``needs_refetch``; call ``reset()`` with a
      fresh full read.
    """

    def __init__(self, records: Iterable[dict] = ()):
        self.records: dict[str, dict] = {}
        self._versions: dict[str, datetime] = {}
        self.needs_refetch = False
        self.reset(records)

    def reset(self, records: Iterable[dict]):
        self.records = {str(r["id"]): r for r in records}
        self._versions = {}
        self.needs_refetch = False

    def apply(self, event: ChangeEvent) -> bool:
        """Returns True when local state changed."""
        if event.operation == ChangeOperation.RESYNC:
            self.needs_refetch = True
            return False

        record_id = event.record_id
        if record_id is None:
            return False

        seen = self._versions.get(record_id)
        if seen is not None and event.committed_at <= seen:
            return False
        self._versions[record_id] = event.committed_at

        if event.operation == ChangeOperation.DELETE:
            return self.records.pop(record_id, None) is not None

        current = self.records.get(record_id)
        merged = {**(current or {}), **event.record}
        if merged == current:
            return False
        self.records[record_id] = merged
        return True


def fold_changes(events: Iterable[ChangeEvent], state: FoldedState = None) -> FoldedState:
    state = state or FoldedState()
    for event in events:
        state.apply(event)
    return state
