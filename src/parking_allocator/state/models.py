"""Data models for spots, sessions, rates and the entry queue."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel


class SessionStatus(str, Enum):
    """Lifecycle of a parking session."""

    ACTIVE = "active"
    COMPLETED = "completed"


class QueueStatus(str, Enum):
    """Lifecycle of an entry queue item."""

    WAITING = "waiting"
    ASSIGNED = "assigned"


class RateSchedule(BaseModel):
    """Fee schedule. Superseded schedules are kept for auditing."""

    id: Optional[int] = None  # None for the built-in default
    base_cost: Decimal
    per_minute_cost: Decimal
    active: bool = True
    created_at: Optional[datetime] = None


class Spot(BaseModel):
    """Current state of a physical parking spot."""

    id: int
    occupied: bool = False
    occupant_plate: Optional[str] = None
    last_change: datetime


class Session(BaseModel):
    """One vehicle's occupancy of one spot, from entry to exit."""

    id: Optional[int] = None
    plate: str
    spot_id: int
    entry_time: datetime
    exit_time: Optional[datetime] = None  # pending freeze point while active
    rate_base_at_entry: Decimal
    rate_minute_at_entry: Decimal
    total_cost_minutes: Optional[int] = None
    total_cost: Optional[Decimal] = None
    status: SessionStatus = SessionStatus.ACTIVE


class QueueEntry(BaseModel):
    """A vehicle waiting for a free spot."""

    id: Optional[int] = None
    plate: str
    arrival_time: datetime
    status: QueueStatus = QueueStatus.WAITING


class Admitted(BaseModel):
    """Outcome of an arrival that got a spot."""

    session: Session


class Queued(BaseModel):
    """Outcome of an arrival that was placed in the entry queue."""

    entry: QueueEntry


Admission = Union[Admitted, Queued]


class DashboardMetrics(BaseModel):
    """Earnings and duration aggregates over completed sessions."""

    earnings_today: Decimal
    earnings_this_month: Decimal
    average_session_minutes: int
    best_earning_month_label: str
