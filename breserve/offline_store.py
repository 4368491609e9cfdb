"""Local booking snapshot and mutation queue for offline use.

Two tables live in an embedded database (SQLite by default):

- `bookings`: the last booking records pulled from the server, keyed by
  booking id and indexed by owner. Each row carries `synced_at`.
- `sync_queue`: mutations made locally that the server has not confirmed
  yet, replayed strictly in insertion order.

Every public operation runs in its own transaction. Engine failures are
raised as OfflineStoreError; losing offline data must never go unnoticed.
"""

from __future__ import annotations

import json
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Iterable, Iterator, List, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, ValidationError
from sqlalchemy import (
    Column,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    delete,
    func,
    insert,
    select,
)
from sqlalchemy.engine import Connection, Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool

from breserve.errors import OfflineStoreError
from utils.logging_utils import get_tagged_logger, mask_url

logger = get_tagged_logger(__name__, tag="offline_store")

STALE_AFTER = timedelta(minutes=5)

metadata = MetaData()

bookings_table = Table(
    "bookings",
    metadata,
    Column("id", String, primary_key=True),
    Column("user_id", String, nullable=False),
    Column("synced_at", String, nullable=False),
    Column("record", Text, nullable=False),
)
Index("by_user", bookings_table.c.user_id)

sync_queue_table = Table(
    "sync_queue",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("action", String(16), nullable=False),
    Column("table_name", String, nullable=False),
    Column("data", Text, nullable=False),
    Column("timestamp", String, nullable=False),
    sqlite_autoincrement=True,
)


class Booking(BaseModel):
    """A booking record as served by the remote bookings table.

    Fields the server adds later are kept as extras so a snapshot never
    silently drops data.
    """
    model_config = ConfigDict(extra="allow")

    id: str
    user_id: Optional[str] = None
    service_id: Optional[str] = None
    status: Optional[str] = None
    payment_status: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    guests: Optional[int] = None
    total_price: Optional[float] = None
    currency: Optional[str] = None
    booking_details: Any = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    notes: Optional[str] = None
    external_ref: Optional[str] = None
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None


class OfflineBooking(Booking):
    """A locally cached booking stamped with its last successful pull."""
    synced_at: datetime


class SyncAction(str, Enum):
    """Kind of mutation waiting in the sync queue."""
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


@dataclass
class SyncQueueItem:
    """One pending mutation; `id` reflects insertion order."""
    id: int
    action: SyncAction
    table: str
    data: Any
    timestamp: datetime


@dataclass(frozen=True)
class StorageStats:
    """Row counts of the two local tables."""
    bookings: int = 0
    pending_sync: int = 0


def _utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def _as_utc(value: Union[datetime, str, int, float]) -> datetime:
    """Coerce a datetime, ISO-8601 string or epoch-ms number to an aware UTC datetime."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if not isinstance(value, datetime):
        raise TypeError(f"Unsupported timestamp type: {type(value).__name__}")
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def is_data_stale(
    synced_at: Union[datetime, str, int, float],
    now: Optional[datetime] = None,
) -> bool:
    """Return True once `synced_at` is five minutes old or older."""
    current = _as_utc(now) if now is not None else _utcnow()
    return current - _as_utc(synced_at) >= STALE_AFTER


class OfflineStore:
    """Booking snapshots plus a FIFO sync queue in an embedded database.

    Build one per process at the composition root and pass it to callers.
    `init()` is idempotent and safe to call from several threads; every
    operation calls it lazily.
    """

    def __init__(self, engine: Engine, clock: Optional[Callable[[], datetime]] = None) -> None:
        """Bind to a SQLAlchemy engine; `clock` returns an aware datetime."""
        self.engine = engine
        self.clock = clock or _utcnow
        self._ready = False
        self._lock = threading.Lock()

    @classmethod
    def from_url(cls, database_url: str, **kwargs) -> "OfflineStore":
        """Create an engine for `database_url` and build the store.

        SQLite file databases get their parent directory created; in-memory
        SQLite shares one connection so every operation sees the same data.
        """
        url = make_url(database_url)
        engine_kwargs: dict[str, Any] = {"future": True}
        if url.get_backend_name() == "sqlite":
            database = url.database or ""
            if database in ("", ":memory:"):
                engine_kwargs["poolclass"] = StaticPool
                engine_kwargs["connect_args"] = {"check_same_thread": False}
            else:
                Path(database).expanduser().parent.mkdir(parents=True, exist_ok=True)
        logger.info("Opening offline database", extra={"db_url": mask_url(database_url)})
        return cls(create_engine(database_url, **engine_kwargs), **kwargs)

    def init(self) -> "OfflineStore":
        """Create the schema on first use and return this store."""
        if self._ready:
            return self
        with self._lock:
            if self._ready:
                return self
            try:
                metadata.create_all(self.engine)
            except SQLAlchemyError as exc:
                logger.error("Failed to initialize offline database: %s", exc)
                raise OfflineStoreError(f"Offline database unavailable: {exc}") from exc
            self._ready = True
            logger.debug("Offline database ready")
        return self

    def close(self) -> None:
        """Release pooled connections; the store re-initializes on next use."""
        self.engine.dispose()
        self._ready = False

    @contextmanager
    def _transaction(self, operation: str) -> Iterator[Connection]:
        """Run a block in one transaction, translating engine errors."""
        self.init()
        try:
            with self.engine.begin() as conn:
                yield conn
        except SQLAlchemyError as exc:
            logger.error("Offline store %s failed: %s", operation, exc)
            raise OfflineStoreError(f"Offline store {operation} failed: {exc}") from exc

    @staticmethod
    def _row_to_booking(record: str) -> OfflineBooking:
        """Decode a stored booking record."""
        try:
            return OfflineBooking.model_validate(json.loads(record))
        except (ValueError, ValidationError) as exc:
            raise OfflineStoreError(f"Corrupt offline booking record: {exc}") from exc

    # -- bookings ------------------------------------------------------------

    def save_bookings_offline(
        self,
        bookings: Iterable[Union[Booking, Mapping[str, Any]]],
        user_id: str,
    ) -> None:
        """Insert or fully replace each booking, stamping all with one `synced_at`.

        The batch commits as a whole or not at all. A booking without its own
        `user_id` is filed under `user_id`.
        """
        synced_at = self.clock().isoformat()
        rows: dict[str, dict[str, Any]] = {}
        for item in bookings:
            booking = item if isinstance(item, Booking) else Booking.model_validate(item)
            record = booking.model_dump(mode="json")
            record["user_id"] = booking.user_id or user_id
            record["synced_at"] = synced_at
            rows[booking.id] = {
                "id": booking.id,
                "user_id": record["user_id"],
                "synced_at": synced_at,
                "record": json.dumps(record),
            }
        if not rows:
            return

        with self._transaction("save_bookings_offline") as conn:
            conn.execute(delete(bookings_table).where(bookings_table.c.id.in_(list(rows))))
            conn.execute(insert(bookings_table), list(rows.values()))
        logger.info("Saved %d booking(s) offline for user %s", len(rows), user_id)

    def get_offline_bookings(self, user_id: str) -> List[OfflineBooking]:
        """Return every snapshot owned by `user_id`, in no particular order."""
        with self._transaction("get_offline_bookings") as conn:
            records = conn.execute(
                select(bookings_table.c.record).where(bookings_table.c.user_id == user_id)
            ).scalars().all()
        return [self._row_to_booking(r) for r in records]

    def get_offline_booking_by_id(self, booking_id: str) -> Optional[OfflineBooking]:
        """Return one snapshot by booking id, or None if it is not cached."""
        with self._transaction("get_offline_booking_by_id") as conn:
            record = conn.execute(
                select(bookings_table.c.record).where(bookings_table.c.id == booking_id)
            ).scalar_one_or_none()
        if record is None:
            return None
        return self._row_to_booking(record)

    def delete_offline_booking(self, booking_id: str) -> None:
        """Drop one snapshot; a missing id is a no-op."""
        with self._transaction("delete_offline_booking") as conn:
            conn.execute(delete(bookings_table).where(bookings_table.c.id == booking_id))

    def clear_offline_bookings(self) -> None:
        """Drop every cached booking for every user."""
        with self._transaction("clear_offline_bookings") as conn:
            conn.execute(delete(bookings_table))

    # -- sync queue ----------------------------------------------------------

    def add_to_sync_queue(self, action: Union[SyncAction, str], table: str, data: Any) -> int:
        """Append a pending mutation and return its assigned id.

        `data` must be JSON-serializable; it is stored opaquely and handed
        back unchanged to whoever replays the queue.
        """
        action = SyncAction(action)
        row = {
            "action": action.value,
            "table_name": table,
            "data": json.dumps(data),
            "timestamp": self.clock().isoformat(),
        }
        with self._transaction("add_to_sync_queue") as conn:
            result = conn.execute(insert(sync_queue_table), row)
            item_id = result.inserted_primary_key[0]
        logger.debug("Queued %s on %s as item %s", action.value, table, item_id)
        return item_id

    def get_sync_queue(self) -> List[SyncQueueItem]:
        """Return pending mutations oldest first."""
        with self._transaction("get_sync_queue") as conn:
            rows = conn.execute(
                select(sync_queue_table).order_by(sync_queue_table.c.id)
            ).mappings().all()
        items = []
        for row in rows:
            try:
                data = json.loads(row["data"])
            except ValueError as exc:
                raise OfflineStoreError(f"Corrupt sync queue item {row['id']}: {exc}") from exc
            items.append(
                SyncQueueItem(
                    id=row["id"],
                    action=SyncAction(row["action"]),
                    table=row["table_name"],
                    data=data,
                    timestamp=_as_utc(row["timestamp"]),
                )
            )
        return items

    def remove_sync_queue_item(self, item_id: int) -> None:
        """Acknowledge one replayed mutation; ids are never reused."""
        with self._transaction("remove_sync_queue_item") as conn:
            conn.execute(delete(sync_queue_table).where(sync_queue_table.c.id == item_id))

    def clear_sync_queue(self) -> None:
        """Drop every pending mutation."""
        with self._transaction("clear_sync_queue") as conn:
            conn.execute(delete(sync_queue_table))

    # -- introspection -------------------------------------------------------

    def get_storage_stats(self) -> StorageStats:
        """Count cached bookings and pending mutations in one read."""
        with self._transaction("get_storage_stats") as conn:
            bookings = conn.execute(select(func.count()).select_from(bookings_table)).scalar_one()
            pending = conn.execute(select(func.count()).select_from(sync_queue_table)).scalar_one()
        return StorageStats(bookings=bookings, pending_sync=pending)
