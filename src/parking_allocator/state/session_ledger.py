"""Parking session lifecycle and billing."""

import logging
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, Optional

from ..errors import ConflictError, NotFoundError, ValidationError
from .models import RateSchedule, Session, SessionStatus
from .store import ParkingStore

logger = logging.getLogger(__name__)

INCLUDED_MINUTES = 60
CENT = Decimal("0.01")


def elapsed_minutes(entry_time: datetime, exit_time: datetime) -> int:
    """
    Whole minutes between entry and exit, rounded down.

    Raises:
        ValidationError: If the exit precedes the entry
    """
    seconds = (exit_time - entry_time).total_seconds()
    if seconds < 0:
        raise ValidationError(
            f"Exit time {exit_time.isoformat()} is before entry time {entry_time.isoformat()}"
        )
    return int(seconds // 60)


def require_naive(value: datetime, field: str) -> datetime:
    """
    Reject timezone-aware timestamps; every stored time is naive local time.

    Raises:
        ValidationError: If the timestamp carries a timezone
    """
    if value.tzinfo is not None and value.utcoffset() is not None:
        raise ValidationError(f"{field} must be a local time without timezone, got {value.isoformat()}")
    return value


def compute_cost(
    minutes: int,
    base_cost: Decimal,
    per_minute_cost: Decimal,
    included_minutes: int = INCLUDED_MINUTES,
) -> Decimal:
    """
    Apply the billing rule.

    The base cost covers the first ``included_minutes``; every minute past
    that adds ``per_minute_cost``. Rounded to cents, half-up.
    """
    cost = Decimal(base_cost)
    if minutes > included_minutes:
        cost += (minutes - included_minutes) * Decimal(per_minute_cost)
    return cost.quantize(CENT, rounding=ROUND_HALF_UP)


class SessionLedger:
    """
    Creates, tracks and closes parking sessions.

    Each session carries a copy of the rate that was active when it opened,
    and that copy is the only rate ever used to bill it.
    """

    def __init__(
        self,
        store: ParkingStore,
        included_minutes: int = INCLUDED_MINUTES,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """
        Initialize the ledger.

        Args:
            store: Persistence collaborator holding the session records
            included_minutes: Minutes covered by the base cost
            clock: Source of "now" when callers omit a timestamp
        """
        if included_minutes < 0:
            raise ValidationError("included_minutes must not be negative")
        self._store = store
        self._clock = clock
        self.included_minutes = included_minutes

    def _find_active(
        self,
        plate: Optional[str] = None,
        spot_id: Optional[int] = None,
    ) -> Optional[Session]:
        matches = self._store.find_sessions(
            status=SessionStatus.ACTIVE, plate=plate, spot_id=spot_id
        )
        return matches[0] if matches else None

    def active(
        self,
        plate: Optional[str] = None,
        spot_id: Optional[int] = None,
    ) -> Optional[Session]:
        """Active session for a plate and/or spot, if any."""
        return self._store.atomic(self._find_active, plate, spot_id)

    def list_active(self) -> list[Session]:
        """All active sessions, earliest entry first."""
        sessions = self._store.atomic(self._store.find_sessions, SessionStatus.ACTIVE)
        return sorted(sessions, key=lambda s: (s.entry_time, s.id))

    def history(self, limit: int = 50) -> list[Session]:
        """
        Most recent completed sessions, latest exit first.

        Raises:
            ValidationError: If limit is less than 1
        """
        if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
            raise ValidationError(f"limit must be a positive integer, got {limit!r}")

        sessions = self._store.atomic(self._store.find_sessions, SessionStatus.COMPLETED)
        sessions.sort(key=lambda s: (s.exit_time, s.id), reverse=True)
        return sessions[:limit]

    def completed(self) -> list[Session]:
        """Every completed session, in creation order."""
        return self._store.atomic(self._store.find_sessions, SessionStatus.COMPLETED)

    def open(
        self,
        plate: str,
        spot_id: int,
        rate: RateSchedule,
        entry_time: Optional[datetime] = None,
    ) -> Session:
        """
        Start an active session.

        Args:
            plate: Vehicle licence plate
            spot_id: Spot the vehicle occupies
            rate: Schedule to snapshot into the session
            entry_time: When the vehicle entered (defaults to now)

        Raises:
            ValidationError: If the entry time carries a timezone
            ConflictError: If the plate or the spot already has an active session
        """
        if entry_time is not None:
            require_naive(entry_time, "entry_time")

        def apply() -> Session:
            if self._find_active(plate=plate) is not None:
                raise ConflictError(f"Vehicle {plate} already has an active session")
            if self._find_active(spot_id=spot_id) is not None:
                raise ConflictError(f"Spot {spot_id} already has an active session")

            return self._store.insert_session(
                Session(
                    plate=plate,
                    spot_id=spot_id,
                    entry_time=entry_time or self._clock(),
                    rate_base_at_entry=rate.base_cost,
                    rate_minute_at_entry=rate.per_minute_cost,
                )
            )

        session = self._store.atomic(apply)
        if not self._store.in_transaction():
            logger.info(
                f"Session {session.id} opened: {plate} on spot {spot_id} "
                f"(base={session.rate_base_at_entry}, per_minute={session.rate_minute_at_entry})"
            )
        return session

    def close(self, plate: str, exit_time: Optional[datetime] = None) -> Session:
        """
        Complete the active session for a plate and bill it.

        The exit time is, in order of preference: the ``exit_time`` argument,
        the pending exit recorded by ``mark_pending_exit``, or now.

        Raises:
            NotFoundError: If the plate has no active session
            ValidationError: If the exit time precedes the entry time or
                carries a timezone
        """
        if exit_time is not None:
            require_naive(exit_time, "exit_time")

        def apply() -> Session:
            session = self._find_active(plate=plate)
            if session is None:
                raise NotFoundError(f"No active session for vehicle {plate}")

            exit_at = exit_time or session.exit_time or self._clock()
            minutes = elapsed_minutes(session.entry_time, exit_at)

            session.exit_time = exit_at
            session.total_cost_minutes = minutes
            session.total_cost = compute_cost(
                minutes,
                session.rate_base_at_entry,
                session.rate_minute_at_entry,
                self.included_minutes,
            )
            session.status = SessionStatus.COMPLETED
            self._store.save_session(session)
            return session

        session = self._store.atomic(apply)
        if not self._store.in_transaction():
            logger.info(
                f"Session {session.id} closed: {plate} after {session.total_cost_minutes} min, "
                f"cost {session.total_cost}"
            )
        return session

    def mark_pending_exit(self, plate: str) -> Optional[Session]:
        """
        Freeze the billing clock of an active session without closing it.

        A second call keeps the first freeze point. A plate with no active
        session is ignored.

        Returns:
            The active session, or None when the plate is not parked
        """

        def apply() -> Optional[Session]:
            session = self._find_active(plate=plate)
            if session is None:
                return None
            if session.exit_time is None:
                session.exit_time = self._clock()
                self._store.save_session(session)
                logger.info(f"Pending exit recorded for {plate} at {session.exit_time.isoformat()}")
            return session

        session = self._store.atomic(apply)
        if session is None:
            logger.debug(f"No active session for {plate}, pending exit ignored")
        return session
