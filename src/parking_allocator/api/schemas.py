"""API request and response schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, field_validator

from ..state.models import QueueStatus, SessionStatus


def to_local_naive(value: Optional[datetime]) -> Optional[datetime]:
    """Convert a timezone-aware timestamp to naive local time."""
    if value is not None and value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value


class RateUpdateRequest(BaseModel):
    """Request body for replacing the active rate."""

    base: Decimal
    per_minute: Decimal


class EntryRequest(BaseModel):
    """A vehicle arriving at the lot (sensor or manual entry)."""

    plate: str
    spot_id: Optional[int] = None  # None: lowest free spot, or queue when full
    entry_time: Optional[datetime] = None

    @field_validator("entry_time")
    @classmethod
    def local_entry_time(cls, v):
        return to_local_naive(v)


class ExitRequest(BaseModel):
    """A vehicle leaving and paying."""

    plate: str
    exit_time: Optional[datetime] = None

    @field_validator("exit_time")
    @classmethod
    def local_exit_time(cls, v):
        return to_local_naive(v)


class PlateRequest(BaseModel):
    """Request body carrying only a plate."""

    plate: str


class RateResponse(BaseModel):
    """Response schema for a fee schedule."""

    id: Optional[int] = None
    base_cost: Decimal
    per_minute_cost: Decimal
    active: bool


class SpotResponse(BaseModel):
    """Response schema for a single parking spot."""

    id: int
    occupied: bool
    occupant_plate: Optional[str] = None
    last_change: datetime


class SessionResponse(BaseModel):
    """Response schema for a parking session."""

    id: int
    plate: str
    spot_id: int
    entry_time: datetime
    exit_time: Optional[datetime] = None
    rate_base_at_entry: Decimal
    rate_minute_at_entry: Decimal
    total_cost_minutes: Optional[int] = None
    total_cost: Optional[Decimal] = None
    status: SessionStatus


class QueueEntryResponse(BaseModel):
    """Response schema for an entry queue item."""

    id: int
    plate: str
    arrival_time: datetime
    status: QueueStatus


class EntryResponse(BaseModel):
    """Outcome of an arrival: either a session or a queue entry."""

    status: str  # "admitted" or "queued"
    session: Optional[SessionResponse] = None
    queue_entry: Optional[QueueEntryResponse] = None


class ExitResponse(BaseModel):
    """Completed session plus the vehicle to offer the freed spot to."""

    session: SessionResponse
    next_in_queue: Optional[QueueEntryResponse] = None


class DashboardResponse(BaseModel):
    """Dashboard aggregates."""

    earnings_today: Decimal
    earnings_this_month: Decimal
    average_session_minutes: int
    best_earning_month_label: str


class ConfirmationResponse(BaseModel):
    """Generic success acknowledgement."""

    success: bool = True
    message: str


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    total_spots: int
    available: int
    occupied: int
    waiting: int
    uptime_seconds: float
