from datetime import datetime
from decimal import Decimal

from parking_allocator.state.reports import build_dashboard


def _stay(allocator, clock, plate, entered, minutes):
    clock.set(entered)
    allocator.admit_or_queue(plate)
    clock.advance(minutes=minutes)
    return allocator.depart(plate)


def test_empty_dashboard():
    metrics = build_dashboard([], now=datetime(2026, 3, 14, 12, 0))

    assert metrics.earnings_today == Decimal("0")
    assert metrics.earnings_this_month == Decimal("0")
    assert metrics.average_session_minutes == 0
    assert metrics.best_earning_month_label == "N/A"


def test_dashboard_aggregates(allocator, clock):
    _stay(allocator, clock, "FEB", datetime(2026, 2, 10, 8, 0), 210)  # 20.00
    _stay(allocator, clock, "EARLY", datetime(2026, 3, 2, 10, 0), 30)  # 5.00
    _stay(allocator, clock, "TODAY", datetime(2026, 3, 14, 9, 0), 90)  # 8.00

    metrics = build_dashboard(allocator.ledger.completed(), now=clock())

    assert metrics.earnings_today == Decimal("8.00")
    assert metrics.earnings_this_month == Decimal("13.00")
    assert metrics.average_session_minutes == 110
    assert metrics.best_earning_month_label == "February 2026"


def test_active_sessions_are_ignored(allocator, clock):
    _stay(allocator, clock, "DONE", datetime(2026, 3, 14, 9, 0), 20)
    allocator.admit_or_queue("PARKED")

    metrics = build_dashboard(allocator.ledger.completed(), now=clock())
    assert metrics.earnings_today == Decimal("5.00")
    assert metrics.average_session_minutes == 20
