"""State management module."""

from .allocator import Allocator
from .entry_queue import EntryQueue
from .models import (
    Admitted,
    DashboardMetrics,
    QueueEntry,
    QueueStatus,
    Queued,
    RateSchedule,
    Session,
    SessionStatus,
    Spot,
)
from .rate_registry import RateRegistry
from .session_ledger import SessionLedger
from .spot_pool import SpotPool
from .store import ParkingStore

__all__ = [
    "Allocator",
    "EntryQueue",
    "RateRegistry",
    "SessionLedger",
    "SpotPool",
    "ParkingStore",
    "Admitted",
    "Queued",
    "DashboardMetrics",
    "QueueEntry",
    "QueueStatus",
    "RateSchedule",
    "Session",
    "SessionStatus",
    "Spot",
]
