"""FIFO waiting list for vehicles when the lot is full."""

import logging
from datetime import datetime
from typing import Callable, Optional

from ..errors import ConflictError, NotFoundError, ValidationError
from ..metrics import update_queue_length
from .models import QueueEntry, QueueStatus
from .session_ledger import SessionLedger
from .store import ParkingStore

logger = logging.getLogger(__name__)


class EntryQueue:
    """
    Waiting vehicles in arrival order.

    A plate can wait at most once, and never while it is parked. Entries are
    only consumed on request (``mark_assigned``) or by an admission of the
    same plate; departures never pull from the queue on their own.
    """

    def __init__(
        self,
        store: ParkingStore,
        ledger: SessionLedger,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self._store = store
        self._ledger = ledger
        self._clock = clock

    def _waiting(self) -> list[QueueEntry]:
        entries = self._store.find_queue_entries(status=QueueStatus.WAITING)
        # ids grow with insertion, so they break arrival-time ties
        return sorted(entries, key=lambda e: (e.arrival_time, e.id))

    def _require(self, entry_id: int) -> QueueEntry:
        entry = self._store.get_queue_entry(entry_id)
        if entry is None:
            raise NotFoundError(f"Queue entry {entry_id} does not exist")
        return entry

    def get(self, entry_id: int) -> QueueEntry:
        """Fetch an entry in any status."""
        return self._store.atomic(self._require, entry_id)

    def head(self) -> Optional[QueueEntry]:
        """First waiting entry, or None when nobody is waiting."""
        waiting = self._store.atomic(self._waiting)
        return waiting[0] if waiting else None

    def waiting_for(self, plate: str) -> Optional[QueueEntry]:
        """The waiting entry for a plate, if any."""
        matches = self._store.atomic(
            self._store.find_queue_entries, QueueStatus.WAITING, plate
        )
        return matches[0] if matches else None

    def enqueue(self, plate: str) -> QueueEntry:
        """
        Add a vehicle to the end of the queue.

        Raises:
            ValidationError: If the plate is blank
            ConflictError: If the plate is already waiting or already parked
        """
        plate = (plate or "").strip()
        if not plate:
            raise ValidationError("plate must not be empty")

        def apply() -> QueueEntry:
            if self._store.find_queue_entries(status=QueueStatus.WAITING, plate=plate):
                raise ConflictError(f"Vehicle {plate} is already waiting in the queue")
            if self._ledger.active(plate=plate) is not None:
                raise ConflictError(f"Vehicle {plate} is already parked")
            return self._store.insert_queue_entry(
                QueueEntry(plate=plate, arrival_time=self._clock())
            )

        entry = self._store.atomic(apply)
        if not self._store.in_transaction():
            logger.info(f"Vehicle {plate} queued (entry {entry.id})")
            self.refresh_metrics()
        return entry

    def remove(self, entry_id: int) -> None:
        """
        Delete an entry whatever its status (manual cancellation).

        Raises:
            NotFoundError: If the entry does not exist
        """

        def apply() -> None:
            if not self._store.delete_queue_entry(entry_id):
                raise NotFoundError(f"Queue entry {entry_id} does not exist")

        self._store.atomic(apply)
        if not self._store.in_transaction():
            logger.info(f"Queue entry {entry_id} removed")
            self.refresh_metrics()

    def mark_assigned(self, entry_id: int) -> QueueEntry:
        """
        Consume a waiting entry.

        Raises:
            NotFoundError: If the entry does not exist
            ConflictError: If the entry is not waiting
        """

        def apply() -> QueueEntry:
            entry = self._require(entry_id)
            if entry.status != QueueStatus.WAITING:
                raise ConflictError(
                    f"Queue entry {entry_id} is {entry.status.value}, not waiting"
                )
            entry.status = QueueStatus.ASSIGNED
            self._store.save_queue_entry(entry)
            return entry

        entry = self._store.atomic(apply)
        if not self._store.in_transaction():
            logger.info(f"Queue entry {entry_id} ({entry.plate}) assigned")
            self.refresh_metrics()
        return entry

    def refresh_metrics(self) -> None:
        """Publish the waiting count gauge."""
        update_queue_length(len(self._store.atomic(self._waiting)))

    def list(self) -> list[QueueEntry]:
        """Waiting entries in FIFO order."""
        return self._store.atomic(self._waiting)
