"""Coordinated admission and departure across spots, sessions and the queue."""

import logging
from collections import Counter
from datetime import datetime
from typing import Optional

from ..errors import ConflictError, ParkingError, ValidationError
from ..metrics import record_admission, record_departure, record_queued_arrival, record_rejection
from .entry_queue import EntryQueue
from .models import Admission, Admitted, QueueEntry, QueueStatus, Queued, Session, SessionStatus
from .rate_registry import RateRegistry
from .session_ledger import SessionLedger
from .spot_pool import SpotPool
from .store import ParkingStore

logger = logging.getLogger(__name__)


class Allocator:
    """
    Single writer of the cross-entity invariants.

    Every admission and departure runs as one store transaction, so a spot
    is occupied exactly when one active session references it, and a plate
    is never both parked and waiting. Two concurrent arrivals for the same
    spot are serialized by that transaction and the loser gets a
    ConflictError; the same holds for two departures of one plate.
    """

    def __init__(
        self,
        store: ParkingStore,
        rates: RateRegistry,
        spots: SpotPool,
        ledger: SessionLedger,
        queue: EntryQueue,
    ):
        self._store = store
        self.rates = rates
        self.spots = spots
        self.ledger = ledger
        self.queue = queue

    def admit_or_queue(
        self,
        plate: str,
        preferred_spot_id: Optional[int] = None,
        entry_time: Optional[datetime] = None,
    ) -> Admission:
        """
        Park a vehicle, or queue it when no spot was requested and none is free.

        Args:
            plate: Vehicle licence plate
            preferred_spot_id: Spot to occupy; when omitted the lowest free id is used
            entry_time: When the vehicle entered (defaults to now)

        Returns:
            Admitted with the new session, or Queued with the queue entry

        Raises:
            ValidationError: If the plate is blank
            NotFoundError: If the requested spot does not exist
            ConflictError: If the requested spot is occupied, or the plate is
                already parked or already waiting
        """
        try:
            plate = (plate or "").strip()
            if not plate:
                raise ValidationError("plate must not be empty")

            result = self._store.atomic(self._admit, plate, preferred_spot_id, entry_time)
        except ParkingError as e:
            logger.warning(f"Arrival of {plate} rejected: {e.message}")
            record_rejection("admit", e.kind)
            raise

        if isinstance(result, Admitted):
            logger.info(f"Admitted {plate} to spot {result.session.spot_id} (session {result.session.id})")
            record_admission(result.session.spot_id)
        else:
            logger.info(f"Lot full, {plate} queued (entry {result.entry.id})")
            record_queued_arrival()
        self.spots.refresh_metrics()
        self.queue.refresh_metrics()
        return result

    def _admit(
        self,
        plate: str,
        preferred_spot_id: Optional[int],
        entry_time: Optional[datetime],
    ) -> Admission:
        if preferred_spot_id is not None:
            if not self.spots.is_free(preferred_spot_id):
                raise ConflictError(f"Spot {preferred_spot_id} is occupied")
            spot_id = preferred_spot_id
        else:
            spot_id = self.spots.first_free()
            if spot_id is None:
                return Queued(entry=self.queue.enqueue(plate))

        # read inside the transaction so a concurrent rate swap is seen whole
        rate = self.rates.get_active()
        session = self.ledger.open(plate, spot_id, rate, entry_time)
        self.spots.occupy(spot_id, plate)

        waiting = self.queue.waiting_for(plate)
        if waiting is not None:
            self.queue.mark_assigned(waiting.id)

        return Admitted(session=session)

    def depart(self, plate: str, exit_time: Optional[datetime] = None) -> Session:
        """
        Close and bill a vehicle's session and free its spot.

        The queue head is reported but not admitted; callers decide whether
        to follow up with ``admit_or_queue`` for it.

        Raises:
            NotFoundError: If the plate has no active session
        """
        try:
            session = self._store.atomic(self._depart, plate, exit_time)
        except ParkingError as e:
            logger.warning(f"Departure of {plate} rejected: {e.message}")
            record_rejection("depart", e.kind)
            raise

        logger.info(
            f"Departed {plate} from spot {session.spot_id} after {session.total_cost_minutes} min, "
            f"cost {session.total_cost}"
        )
        record_departure(session.spot_id, session.total_cost_minutes, float(session.total_cost))
        self.spots.refresh_metrics()

        head = self.queue_head()
        if head is not None:
            logger.info(f"Spot {session.spot_id} free; next in queue is {head.plate} (entry {head.id})")
        return session

    def _depart(self, plate: str, exit_time: Optional[datetime]) -> Session:
        session = self.ledger.close(plate, exit_time)
        self.spots.release(session.spot_id)
        return session

    def queue_head(self) -> Optional[QueueEntry]:
        """Vehicle that should be offered the next free spot, if any."""
        return self.queue.head()

    def check_invariants(self) -> list[str]:
        """
        Describe every spot, session or queue inconsistency found.

        Returns:
            Human readable violations; empty when the state is consistent
        """
        return self._store.atomic(self._collect_violations)

    def _collect_violations(self) -> list[str]:
        violations = []
        active = self._store.find_sessions(status=SessionStatus.ACTIVE)
        waiting = self._store.find_queue_entries(status=QueueStatus.WAITING)

        for spot in self._store.list_spots():
            on_spot = [s for s in active if s.spot_id == spot.id]
            if spot.occupied and len(on_spot) != 1:
                violations.append(f"Spot {spot.id} occupied with {len(on_spot)} active sessions")
            elif not spot.occupied and on_spot:
                violations.append(f"Spot {spot.id} free but referenced by {len(on_spot)} active sessions")
            elif spot.occupied and spot.occupant_plate != on_spot[0].plate:
                violations.append(
                    f"Spot {spot.id} occupant {spot.occupant_plate} does not match session plate {on_spot[0].plate}"
                )

        active_plates = Counter(s.plate for s in active)
        waiting_plates = Counter(e.plate for e in waiting)
        for plate, count in active_plates.items():
            if count > 1:
                violations.append(f"Vehicle {plate} has {count} active sessions")
            if plate in waiting_plates:
                violations.append(f"Vehicle {plate} is both parked and waiting")
        for plate, count in waiting_plates.items():
            if count > 1:
                violations.append(f"Vehicle {plate} has {count} waiting queue entries")

        return violations
