"""Keeps the offline booking snapshot and the remote bookings table in step."""

import threading
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional, Protocol, Union

from breserve.errors import BReserveError, RemoteApiError
from breserve.offline_store import OfflineBooking, OfflineStore, SyncAction, SyncQueueItem, is_data_stale
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="sync")

BOOKINGS_TABLE = "bookings"


class BookingsRemote(Protocol):
    """The remote operations the synchronizer needs."""

    def fetch_user_bookings(self, user_id: str) -> List[Mapping[str, Any]]:
        ...

    def insert_booking(self, data: Mapping[str, Any]) -> None:
        ...

    def update_booking(self, booking_id: str, data: Mapping[str, Any]) -> None:
        ...

    def delete_booking(self, booking_id: str) -> None:
        ...


@dataclass
class BookingsSnapshot:
    """Bookings handed to the caller, and where they came from."""
    bookings: List[OfflineBooking]
    from_cache: bool
    stale: bool


@dataclass
class SyncReport:
    """Outcome of one queue drain."""
    synced: int = 0
    failed: int = 0
    remaining: int = 0
    errors: List[str] = field(default_factory=list)


class BookingSynchronizer:
    """Reads bookings online or offline and replays queued mutations on reconnect.

    Replay is at-least-once: an item leaves the queue only after the remote
    accepted it, so a crash mid-replay repeats that item next time.
    """

    def __init__(self, store: OfflineStore, remote: BookingsRemote) -> None:
        self.store = store
        self.remote = remote
        self._sync_lock = threading.Lock()

    def _snapshot_from_store(self, user_id: str) -> BookingsSnapshot:
        bookings = self.store.get_offline_bookings(user_id)
        stale = any(is_data_stale(b.synced_at) for b in bookings)
        return BookingsSnapshot(bookings=bookings, from_cache=True, stale=stale)

    def fetch_bookings(self, user_id: str, online: bool = True) -> BookingsSnapshot:
        """Return the user's bookings, preferring the server when online.

        A successful remote fetch refreshes the local snapshot. When offline,
        or when the remote call fails, the local snapshot is returned instead.
        OfflineStoreError from saving or reading the snapshot always propagates.
        """
        if online:
            try:
                records = self.remote.fetch_user_bookings(user_id)
            except RemoteApiError as exc:
                logger.warning("Falling back to offline bookings: %s", exc)
            else:
                self.store.save_bookings_offline(records, user_id)
                bookings = self.store.get_offline_bookings(user_id)
                bookings.sort(key=lambda b: b.created_at or "", reverse=True)
                return BookingsSnapshot(bookings=bookings, from_cache=False, stale=False)

        snapshot = self._snapshot_from_store(user_id)
        if snapshot.bookings:
            logger.info("Serving %d cached booking(s) for user %s", len(snapshot.bookings), user_id)
        return snapshot

    def queue_mutation(
        self,
        action: Union[SyncAction, str],
        data: Mapping[str, Any],
        table: str = BOOKINGS_TABLE,
    ) -> int:
        """Record a local mutation for later replay; deletes also drop the local snapshot."""
        action = SyncAction(action)
        item_id = self.store.add_to_sync_queue(action, table, dict(data))
        if action is SyncAction.DELETE and table == BOOKINGS_TABLE and data.get("id"):
            self.store.delete_offline_booking(data["id"])
        return item_id

    def _replay(self, item: SyncQueueItem) -> None:
        """Apply one queued mutation to the remote side."""
        if item.table != BOOKINGS_TABLE:
            logger.warning("No remote handler for table %s; dropping item %s", item.table, item.id)
            return
        data = item.data or {}
        if not isinstance(data, Mapping):
            raise ValueError(f"queued payload is a {type(data).__name__}, expected an object")
        if item.action is SyncAction.CREATE:
            self.remote.insert_booking(data)
        elif item.action is SyncAction.UPDATE:
            self.remote.update_booking(data["id"], data)
        elif item.action is SyncAction.DELETE:
            self.remote.delete_booking(data["id"])

    def sync_pending_changes(self, user_id: Optional[str] = None) -> SyncReport:
        """Drain the sync queue in FIFO order, stopping at the first failure.

        The failed item and everything queued after it stay in place, since
        later mutations may depend on earlier ones. With `user_id`, a full
        drain is followed by a snapshot refresh; a local store failure during
        that refresh propagates like any other OfflineStoreError.
        """
        if not self._sync_lock.acquire(blocking=False):
            logger.info("Sync already in progress; skipping")
            return SyncReport()
        try:
            queue = self.store.get_sync_queue()
            report = SyncReport(remaining=len(queue))
            for item in queue:
                try:
                    self._replay(item)
                except (BReserveError, KeyError, ValueError) as exc:
                    logger.error("Error syncing item %s (%s %s): %s", item.id, item.action.value, item.table, exc)
                    report.failed += 1
                    report.errors.append(f"{item.id}: {exc}")
                    break
                self.store.remove_sync_queue_item(item.id)
                report.synced += 1
                report.remaining -= 1

            if queue:
                logger.info("Synced %d of %d queued change(s)", report.synced, len(queue))
            if user_id and report.remaining == 0:
                self.fetch_bookings(user_id, online=True)
            return report
        finally:
            self._sync_lock.release()
