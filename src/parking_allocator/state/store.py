"""In-memory persistence collaborator with all-or-nothing transactions."""

import logging
import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Callable, Iterator, Optional, TypeVar

from ..errors import TransientStoreError, UnavailableError
from .models import QueueEntry, QueueStatus, RateSchedule, Session, SessionStatus, Spot

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ParkingStore:
    """
    CRUD storage for spots, sessions, rate schedules and queue entries.

    Every record handed out is a copy, so callers must write changes back
    with the matching ``save_*`` method. Multi-row updates are grouped with
    ``transaction()`` (or ``atomic()``), which holds a single re-entrant lock
    and rolls every table back if the block raises.
    """

    def __init__(
        self,
        spot_ids: list[int],
        retry_attempts: int = 1,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """
        Initialize the store.

        Args:
            spot_ids: Identifiers of the physical spots in the lot
            retry_attempts: Extra attempts after a transient fault (0 or 1)
            clock: Source of "now" for spot timestamps
        """
        self.retry_attempts = min(max(retry_attempts, 0), 1)
        self._lock = threading.RLock()
        self._owner: Optional[int] = None

        self._spots: dict[int, Spot] = {}
        self._sessions: dict[int, Session] = {}
        self._rates: dict[int, RateSchedule] = {}
        self._queue: dict[int, QueueEntry] = {}
        self._next_ids = {"session": 1, "rate": 1, "queue": 1}

        now = clock()
        for spot_id in sorted(set(spot_ids)):
            self._spots[spot_id] = Spot(id=spot_id, last_change=now)

        logger.info(f"Initialized ParkingStore with {len(self._spots)} spots")

    def ping(self) -> None:
        """Check connectivity. Raises TransientStoreError when unreachable."""

    def in_transaction(self) -> bool:
        """Whether the calling thread is inside a transaction."""
        return self._owner == threading.get_ident()

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """
        Group reads and writes into one atomic unit.

        Nested transactions on the same thread join the outermost one; only
        the outermost restores the snapshot on failure.
        """
        with self._lock:
            if self.in_transaction():
                yield
                return

            self.ping()
            snapshot = self._snapshot()
            self._owner = threading.get_ident()
            try:
                yield
            except BaseException:
                self._restore(snapshot)
                raise
            finally:
                self._owner = None

    def atomic(self, operation: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """
        Run ``operation`` inside a transaction, retrying transient faults once.

        Raises:
            UnavailableError: If the store is still unreachable after retrying
        """
        if self.in_transaction():
            return operation(*args, **kwargs)

        attempts = 1 + self.retry_attempts
        for attempt in range(1, attempts + 1):
            try:
                with self.transaction():
                    return operation(*args, **kwargs)
            except TransientStoreError as e:
                if attempt < attempts:
                    logger.warning(f"Transient store error, retrying ({attempt}/{attempts}): {e}")
                    continue
                logger.error(f"Store unavailable after {attempts} attempt(s): {e}")
                raise UnavailableError(f"Storage unavailable: {e}") from e

        raise UnavailableError("Storage unavailable")

    def _snapshot(self) -> dict:
        return {
            "spots": {k: v.model_copy() for k, v in self._spots.items()},
            "sessions": {k: v.model_copy() for k, v in self._sessions.items()},
            "rates": {k: v.model_copy() for k, v in self._rates.items()},
            "queue": {k: v.model_copy() for k, v in self._queue.items()},
            "next_ids": dict(self._next_ids),
        }

    def _restore(self, snapshot: dict) -> None:
        self._spots = snapshot["spots"]
        self._sessions = snapshot["sessions"]
        self._rates = snapshot["rates"]
        self._queue = snapshot["queue"]
        self._next_ids = snapshot["next_ids"]
        logger.debug("Transaction rolled back")

    def _allocate_id(self, table: str) -> int:
        new_id = self._next_ids[table]
        self._next_ids[table] += 1
        return new_id

    # Spots

    def get_spot(self, spot_id: int) -> Optional[Spot]:
        with self._lock:
            spot = self._spots.get(spot_id)
            return spot.model_copy() if spot else None

    def list_spots(self) -> list[Spot]:
        with self._lock:
            return [self._spots[k].model_copy() for k in sorted(self._spots)]

    def save_spot(self, spot: Spot) -> None:
        with self._lock:
            self._spots[spot.id] = spot.model_copy()

    # Rate schedules

    def get_active_rate(self) -> Optional[RateSchedule]:
        with self._lock:
            active = [r for r in self._rates.values() if r.active]
            if not active:
                return None
            return max(active, key=lambda r: r.id).model_copy()

    def list_rates(self) -> list[RateSchedule]:
        with self._lock:
            return [self._rates[k].model_copy() for k in sorted(self._rates)]

    def insert_rate(self, rate: RateSchedule) -> RateSchedule:
        with self._lock:
            stored = rate.model_copy(update={"id": self._allocate_id("rate")})
            self._rates[stored.id] = stored
            return stored.model_copy()

    def save_rate(self, rate: RateSchedule) -> None:
        with self._lock:
            self._rates[rate.id] = rate.model_copy()

    # Sessions

    def insert_session(self, session: Session) -> Session:
        with self._lock:
            stored = session.model_copy(update={"id": self._allocate_id("session")})
            self._sessions[stored.id] = stored
            return stored.model_copy()

    def save_session(self, session: Session) -> None:
        with self._lock:
            self._sessions[session.id] = session.model_copy()

    def find_sessions(
        self,
        status: Optional[SessionStatus] = None,
        plate: Optional[str] = None,
        spot_id: Optional[int] = None,
    ) -> list[Session]:
        """Sessions matching all given filters, in insertion order."""
        with self._lock:
            return [
                s.model_copy()
                for _, s in sorted(self._sessions.items())
                if (status is None or s.status == status)
                and (plate is None or s.plate == plate)
                and (spot_id is None or s.spot_id == spot_id)
            ]

    # Entry queue

    def insert_queue_entry(self, entry: QueueEntry) -> QueueEntry:
        with self._lock:
            stored = entry.model_copy(update={"id": self._allocate_id("queue")})
            self._queue[stored.id] = stored
            return stored.model_copy()

    def get_queue_entry(self, entry_id: int) -> Optional[QueueEntry]:
        with self._lock:
            entry = self._queue.get(entry_id)
            return entry.model_copy() if entry else None

    def save_queue_entry(self, entry: QueueEntry) -> None:
        with self._lock:
            self._queue[entry.id] = entry.model_copy()

    def delete_queue_entry(self, entry_id: int) -> bool:
        with self._lock:
            return self._queue.pop(entry_id, None) is not None

    def find_queue_entries(
        self,
        status: Optional[QueueStatus] = None,
        plate: Optional[str] = None,
    ) -> list[QueueEntry]:
        """Queue entries matching all given filters, in insertion order."""
        with self._lock:
            return [
                e.model_copy()
                for _, e in sorted(self._queue.items())
                if (status is None or e.status == status)
                and (plate is None or e.plate == plate)
            ]
