"""Active fee schedule registry."""

import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Callable

from ..errors import ValidationError
from .models import RateSchedule
from .store import ParkingStore

logger = logging.getLogger(__name__)

DEFAULT_BASE_COST = Decimal("5.00")
DEFAULT_PER_MINUTE_COST = Decimal("0.10")


def parse_amount(value: Any, field: str) -> Decimal:
    """
    Convert a caller-supplied amount to a non-negative Decimal.

    Args:
        value: Number or numeric string
        field: Field name used in the error message

    Raises:
        ValidationError: If the value is not a finite, non-negative number
    """
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} must be a number")

    try:
        amount = Decimal(str(value).strip()) if not isinstance(value, Decimal) else value
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number, got {value!r}")

    if not amount.is_finite():
        raise ValidationError(f"{field} must be a finite number")
    if amount < 0:
        raise ValidationError(f"{field} must not be negative")

    return amount


class RateRegistry:
    """
    Holds the currently active fee schedule.

    Replacing the schedule deactivates the old one and activates the new
    one inside a single store transaction, so readers never see both or
    neither active. Superseded schedules are never deleted.
    """

    def __init__(
        self,
        store: ParkingStore,
        default_base: Decimal = DEFAULT_BASE_COST,
        default_per_minute: Decimal = DEFAULT_PER_MINUTE_COST,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self._store = store
        self._clock = clock
        self.default_base = parse_amount(default_base, "default_base")
        self.default_per_minute = parse_amount(default_per_minute, "default_per_minute")

    def get_active(self) -> RateSchedule:
        """Return the active schedule, or the built-in default if none was set."""
        rate = self._store.atomic(self._store.get_active_rate)
        if rate is None:
            return RateSchedule(
                base_cost=self.default_base,
                per_minute_cost=self.default_per_minute,
            )
        return rate

    def set_active(self, base: Any, per_minute: Any) -> RateSchedule:
        """
        Replace the active schedule.

        Args:
            base: Flat cost covering the included minutes
            per_minute: Cost per minute beyond the included minutes

        Returns:
            The newly active schedule

        Raises:
            ValidationError: If either amount is negative or non-numeric
        """
        base_cost = parse_amount(base, "base")
        per_minute_cost = parse_amount(per_minute, "perMinute")

        def swap() -> RateSchedule:
            for rate in self._store.list_rates():
                if rate.active:
                    rate.active = False
                    self._store.save_rate(rate)
            return self._store.insert_rate(
                RateSchedule(
                    base_cost=base_cost,
                    per_minute_cost=per_minute_cost,
                    active=True,
                    created_at=self._clock(),
                )
            )

        rate = self._store.atomic(swap)
        logger.info(f"Active rate changed to base={base_cost} per_minute={per_minute_cost} (id {rate.id})")
        return rate

    def ensure_active(self) -> RateSchedule:
        """Persist the default schedule if no schedule is active yet."""

        def seed() -> RateSchedule:
            existing = self._store.get_active_rate()
            if existing is not None:
                return existing
            logger.info("No active rate found, seeding default schedule")
            return self._store.insert_rate(
                RateSchedule(
                    base_cost=self.default_base,
                    per_minute_cost=self.default_per_minute,
                    active=True,
                    created_at=self._clock(),
                )
            )

        return self._store.atomic(seed)

    def history(self) -> list[RateSchedule]:
        """All schedules ever activated, oldest first."""
        return self._store.atomic(self._store.list_rates)
