"""FastAPI route definitions."""

import logging
from datetime import datetime
from typing import Callable, Optional

from fastapi import APIRouter, HTTPException, Response

from ..errors import (
    ConflictError,
    NotFoundError,
    ParkingError,
    UnavailableError,
    ValidationError,
)
from ..metrics import get_metrics, record_rejection
from ..state.allocator import Allocator
from ..state.models import Admitted, QueueEntry, Session
from ..state.reports import build_dashboard
from .schemas import (
    ConfirmationResponse,
    DashboardResponse,
    EntryRequest,
    EntryResponse,
    ExitRequest,
    ExitResponse,
    HealthResponse,
    PlateRequest,
    QueueEntryResponse,
    RateResponse,
    RateUpdateRequest,
    SessionResponse,
    SpotResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()

STATUS_CODES = {
    ValidationError: 422,
    NotFoundError: 404,
    ConflictError: 409,
    UnavailableError: 503,
}

# Dependencies injected at startup
_allocator: Optional[Allocator] = None
_history_limit: int = 50
_clock: Callable[[], datetime] = datetime.now
_start_time: datetime = datetime.now()


def init_router(
    allocator: Allocator,
    history_limit: int = 50,
    clock: Callable[[], datetime] = datetime.now,
) -> None:
    """
    Initialize router with dependencies.

    Args:
        allocator: Allocator wired to the rate registry, spots, ledger and queue
        history_limit: Default number of sessions returned by /history
        clock: Source of "now" for dashboard aggregation
    """
    global _allocator, _history_limit, _clock, _start_time

    _allocator = allocator
    _history_limit = history_limit
    _clock = clock
    _start_time = datetime.now()

    logger.info("API router initialized")


def _require_allocator() -> Allocator:
    if _allocator is None:
        raise HTTPException(status_code=503, detail="Service not initialized")
    return _allocator


def _http_error(e: ParkingError, operation: Optional[str] = None) -> HTTPException:
    """Translate a typed failure; ``operation`` also counts it as a rejection."""
    if operation:
        logger.warning(f"{operation} rejected: {e.message}")
        record_rejection(operation, e.kind)
    return HTTPException(status_code=STATUS_CODES.get(type(e), 500), detail=e.message)


def _session_response(session: Session) -> SessionResponse:
    return SessionResponse(**session.model_dump())


def _queue_response(entry: QueueEntry) -> QueueEntryResponse:
    return QueueEntryResponse(**entry.model_dump())


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """
    Health check endpoint.

    Returns occupancy and queue counts with the service uptime.
    """
    allocator = _require_allocator()
    uptime = (datetime.now() - _start_time).total_seconds()

    try:
        spots = allocator.spots.list_spots()
        waiting = len(allocator.queue.list())
    except ParkingError as e:
        raise _http_error(e)

    occupied = sum(1 for s in spots if s.occupied)
    return HealthResponse(
        status="healthy",
        total_spots=len(spots),
        available=len(spots) - occupied,
        occupied=occupied,
        waiting=waiting,
        uptime_seconds=uptime,
    )


# Rates


@router.get("/rates", response_model=RateResponse)
async def get_active_rate() -> RateResponse:
    """Get the active fee schedule (the default one if none was ever set)."""
    allocator = _require_allocator()
    try:
        rate = allocator.rates.get_active()
    except ParkingError as e:
        raise _http_error(e)
    return RateResponse(**rate.model_dump())


@router.post("/rates", response_model=ConfirmationResponse)
async def set_active_rate(request: RateUpdateRequest) -> ConfirmationResponse:
    """
    Replace the active fee schedule.

    Sessions already in progress keep billing at the rate they started with.
    """
    allocator = _require_allocator()
    try:
        rate = allocator.rates.set_active(request.base, request.per_minute)
    except ParkingError as e:
        raise _http_error(e, "set_rate")
    return ConfirmationResponse(message=f"Rate {rate.id} is now active")


# Spots and vehicles


@router.get("/spots", response_model=list[SpotResponse])
async def list_spots() -> list[SpotResponse]:
    """Get every spot with its occupant."""
    allocator = _require_allocator()
    try:
        spots = allocator.spots.list_spots()
    except ParkingError as e:
        raise _http_error(e)
    return [SpotResponse(**s.model_dump()) for s in spots]


@router.get("/vehicles/active", response_model=list[SessionResponse])
async def list_active_sessions() -> list[SessionResponse]:
    """Get vehicles currently parked, including any pending exit time."""
    allocator = _require_allocator()
    try:
        sessions = allocator.ledger.list_active()
    except ParkingError as e:
        raise _http_error(e)
    return [_session_response(s) for s in sessions]


@router.post("/vehicles/entry", response_model=EntryResponse)
async def register_entry(request: EntryRequest) -> EntryResponse:
    """
    Register a vehicle arrival.

    With a spot id the vehicle is parked there or the request fails with 409.
    Without one it gets the lowest free spot, or joins the queue when the lot
    is full.
    """
    allocator = _require_allocator()
    try:
        result = allocator.admit_or_queue(
            request.plate,
            preferred_spot_id=request.spot_id,
            entry_time=request.entry_time,
        )
    except ParkingError as e:
        raise _http_error(e)

    if isinstance(result, Admitted):
        return EntryResponse(status="admitted", session=_session_response(result.session))
    return EntryResponse(status="queued", queue_entry=_queue_response(result.entry))


@router.post("/vehicles/exit", response_model=ExitResponse)
async def register_exit(request: ExitRequest) -> ExitResponse:
    """
    Register a departure: bill the session and free its spot.

    The response names the first waiting vehicle, if any; it is not
    admitted automatically.
    """
    allocator = _require_allocator()
    try:
        session = allocator.depart(request.plate, exit_time=request.exit_time)
        head = allocator.queue_head()
    except ParkingError as e:
        raise _http_error(e)

    return ExitResponse(
        session=_session_response(session),
        next_in_queue=_queue_response(head) if head else None,
    )


@router.post("/vehicles/mark-exit", response_model=ConfirmationResponse)
async def mark_pending_exit(request: PlateRequest) -> ConfirmationResponse:
    """Stop the billing clock of a parked vehicle before payment."""
    allocator = _require_allocator()
    try:
        session = allocator.ledger.mark_pending_exit(request.plate)
    except ParkingError as e:
        raise _http_error(e, "mark_exit")
    if session is None:
        return ConfirmationResponse(message=f"No active session for {request.plate}")
    return ConfirmationResponse(
        message=f"Exit time for {session.plate} is {session.exit_time.isoformat()}"
    )


# Dashboard and history


@router.get("/dashboard", response_model=DashboardResponse)
async def get_dashboard() -> DashboardResponse:
    """Get earnings today and this month, average stay and best month."""
    allocator = _require_allocator()
    try:
        metrics = build_dashboard(allocator.ledger.completed(), now=_clock())
    except ParkingError as e:
        raise _http_error(e)
    return DashboardResponse(**metrics.model_dump())


@router.get("/history", response_model=list[SessionResponse])
async def list_history(limit: Optional[int] = None) -> list[SessionResponse]:
    """
    Get the most recent completed sessions, latest exit first.

    Args:
        limit: Maximum number of sessions (defaults to the configured limit)
    """
    allocator = _require_allocator()
    try:
        sessions = allocator.ledger.history(limit if limit is not None else _history_limit)
    except ParkingError as e:
        raise _http_error(e, "history")
    return [_session_response(s) for s in sessions]


# Entry queue


@router.get("/queue", response_model=list[QueueEntryResponse])
async def list_queue() -> list[QueueEntryResponse]:
    """Get waiting vehicles in arrival order."""
    allocator = _require_allocator()
    try:
        entries = allocator.queue.list()
    except ParkingError as e:
        raise _http_error(e)
    return [_queue_response(e) for e in entries]


@router.post("/queue", response_model=QueueEntryResponse)
async def enqueue(request: PlateRequest) -> QueueEntryResponse:
    """Add a vehicle to the end of the queue."""
    allocator = _require_allocator()
    try:
        entry = allocator.queue.enqueue(request.plate)
    except ParkingError as e:
        raise _http_error(e, "enqueue")
    return _queue_response(entry)


@router.delete("/queue/{entry_id}", response_model=ConfirmationResponse)
async def remove_from_queue(entry_id: int) -> ConfirmationResponse:
    """Cancel a queue entry."""
    allocator = _require_allocator()
    try:
        allocator.queue.remove(entry_id)
    except ParkingError as e:
        raise _http_error(e, "remove_from_queue")
    return ConfirmationResponse(message=f"Queue entry {entry_id} removed")


@router.post("/queue/{entry_id}/assign", response_model=ConfirmationResponse)
async def mark_queue_assigned(entry_id: int) -> ConfirmationResponse:
    """Mark a waiting entry as assigned to a spot."""
    allocator = _require_allocator()
    try:
        entry = allocator.queue.mark_assigned(entry_id)
    except ParkingError as e:
        raise _http_error(e, "assign")
    return ConfirmationResponse(message=f"Queue entry {entry_id} ({entry.plate}) assigned")


@router.get("/metrics")
async def prometheus_metrics() -> Response:
    """
    Prometheus metrics endpoint.

    Returns metrics in Prometheus text format including:
    - parking_spot_occupied: Gauge of current spot status (1=occupied, 0=available)
    - parking_spots_total / _available / _occupied: Spot counts
    - parking_queue_waiting: Vehicles waiting in the entry queue
    - parking_admissions_total / parking_departures_total: Session counters
    - parking_revenue_total: Amount billed
    - parking_session_duration_minutes: Histogram of billed durations
    - parking_rejected_operations_total: Typed failures by operation and kind
    """
    return Response(
        content=get_metrics(),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )
