"""Parking spot occupancy state."""

import logging
from datetime import datetime
from typing import Callable, Optional

from ..errors import ConflictError, NotFoundError
from ..metrics import update_spot_counts, update_spot_status
from .models import Spot
from .store import ParkingStore

logger = logging.getLogger(__name__)


class SpotPool:
    """
    Fixed set of spots with their free/occupied state.

    The pool only tracks occupancy. Keeping it consistent with the session
    ledger is the allocator's job, which calls ``occupy``/``release`` inside
    its own transaction.
    """

    def __init__(
        self,
        store: ParkingStore,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """
        Initialize the spot pool.

        Args:
            store: Persistence collaborator holding the spot records
            clock: Source of "now" for change timestamps
        """
        self._store = store
        self._clock = clock
        self.refresh_metrics()

    def _require(self, spot_id: int) -> Spot:
        spot = self._store.get_spot(spot_id)
        if spot is None:
            raise NotFoundError(f"Spot {spot_id} does not exist")
        return spot

    def get(self, spot_id: int) -> Spot:
        """Get state for a specific spot."""
        return self._store.atomic(self._require, spot_id)

    def list_spots(self) -> list[Spot]:
        """All spots ordered by id."""
        return self._store.atomic(self._store.list_spots)

    def is_free(self, spot_id: int) -> bool:
        """
        Check whether a spot is free.

        Raises:
            NotFoundError: If the spot id is unknown
        """
        return not self.get(spot_id).occupied

    def first_free(self) -> Optional[int]:
        """Lowest free spot id, or None when the lot is full."""
        for spot in self.list_spots():
            if not spot.occupied:
                return spot.id
        return None

    def occupy(self, spot_id: int, plate: str) -> Spot:
        """
        Mark a spot occupied by ``plate``.

        Raises:
            NotFoundError: If the spot id is unknown
            ConflictError: If the spot is already occupied
        """

        def apply() -> Spot:
            spot = self._require(spot_id)
            if spot.occupied:
                raise ConflictError(
                    f"Spot {spot_id} is already occupied by {spot.occupant_plate}"
                )
            spot.occupied = True
            spot.occupant_plate = plate
            spot.last_change = self._clock()
            self._store.save_spot(spot)
            return spot

        spot = self._store.atomic(apply)
        if not self._store.in_transaction():
            logger.info(f"Spot {spot_id} changed: free -> occupied ({plate})")
            self.refresh_metrics()
        return spot

    def release(self, spot_id: int) -> Spot:
        """
        Mark a spot free.

        Raises:
            NotFoundError: If the spot id is unknown
            ConflictError: If the spot is already free
        """

        def apply() -> Spot:
            spot = self._require(spot_id)
            if not spot.occupied:
                raise ConflictError(f"Spot {spot_id} is already free")
            spot.occupied = False
            spot.occupant_plate = None
            spot.last_change = self._clock()
            self._store.save_spot(spot)
            return spot

        spot = self._store.atomic(apply)
        if not self._store.in_transaction():
            logger.info(f"Spot {spot_id} changed: occupied -> free")
            self.refresh_metrics()
        return spot

    def get_available_count(self) -> int:
        """Get count of free spots."""
        return sum(1 for s in self.list_spots() if not s.occupied)

    def get_occupied_count(self) -> int:
        """Get count of occupied spots."""
        return sum(1 for s in self.list_spots() if s.occupied)

    def refresh_metrics(self) -> None:
        """Publish occupancy gauges from the stored spot state."""
        spots = self.list_spots()
        occupied = sum(1 for s in spots if s.occupied)
        for spot in spots:
            update_spot_status(spot_id=spot.id, is_occupied=spot.occupied)
        update_spot_counts(
            total=len(spots),
            available=len(spots) - occupied,
            occupied=occupied,
        )
