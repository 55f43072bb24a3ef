from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from parking_allocator.errors import ConflictError, NotFoundError, ValidationError
from parking_allocator.state.models import RateSchedule, SessionStatus
from parking_allocator.state.session_ledger import SessionLedger, compute_cost, elapsed_minutes
from parking_allocator.state.store import ParkingStore

RATE = RateSchedule(id=1, base_cost=Decimal("5.00"), per_minute_cost=Decimal("0.10"))


@pytest.fixture
def ledger(clock):
    return SessionLedger(ParkingStore([1, 2, 3], clock=clock), clock=clock)


@pytest.mark.parametrize(
    "minutes, expected",
    [
        (0, "5.00"),
        (45, "5.00"),
        (60, "5.00"),
        (61, "5.10"),
        (90, "8.00"),
        (600, "59.00"),
    ],
)
def test_billing_rule(minutes, expected):
    assert compute_cost(minutes, Decimal("5.00"), Decimal("0.10")) == Decimal(expected)


def test_cost_rounds_half_up():
    # 5.00 + 1 * 0.125 = 5.125
    assert compute_cost(61, Decimal("5.00"), Decimal("0.125")) == Decimal("5.13")


def test_elapsed_minutes_rounds_down():
    start = datetime(2026, 3, 14, 9, 0)
    assert elapsed_minutes(start, start + timedelta(minutes=90, seconds=59)) == 90
    assert elapsed_minutes(start, start + timedelta(seconds=59)) == 0


def test_open_snapshots_rate(ledger, clock):
    session = ledger.open("ABC123", 1, RATE)

    assert session.status == SessionStatus.ACTIVE
    assert session.entry_time == clock.now
    assert session.rate_base_at_entry == Decimal("5.00")
    assert session.rate_minute_at_entry == Decimal("0.10")
    assert session.exit_time is None


def test_open_with_backdated_entry(ledger, clock):
    entered = clock.now - timedelta(hours=2)
    session = ledger.open("ABC123", 1, RATE, entry_time=entered)
    assert session.entry_time == entered

    closed = ledger.close("ABC123")
    assert closed.total_cost_minutes == 120
    assert closed.total_cost == Decimal("11.00")


def test_open_conflicts_on_plate_or_spot(ledger):
    ledger.open("ABC123", 1, RATE)
    with pytest.raises(ConflictError):
        ledger.open("ABC123", 2, RATE)
    with pytest.raises(ConflictError):
        ledger.open("XYZ789", 1, RATE)


def test_close_bills_ninety_minutes(ledger, clock):
    ledger.open("ABC123", 1, RATE)
    clock.advance(minutes=90)

    session = ledger.close("ABC123")

    assert session.status == SessionStatus.COMPLETED
    assert session.exit_time == clock.now
    assert session.total_cost_minutes == 90
    assert session.total_cost == Decimal("8.00")


def test_close_twice_fails_without_double_billing(ledger, clock):
    ledger.open("ABC123", 1, RATE)
    clock.advance(minutes=45)
    first = ledger.close("ABC123")
    assert first.total_cost == Decimal("5.00")

    with pytest.raises(NotFoundError):
        ledger.close("ABC123")
    assert len(ledger.history()) == 1


def test_close_unknown_plate(ledger):
    with pytest.raises(NotFoundError):
        ledger.close("NOPE")


def test_close_before_entry_is_rejected(ledger, clock):
    ledger.open("ABC123", 1, RATE)
    with pytest.raises(ValidationError):
        ledger.close("ABC123", exit_time=clock.now - timedelta(minutes=1))
    assert ledger.active(plate="ABC123") is not None


def test_pending_exit_freezes_billing(ledger, clock):
    ledger.open("ABC123", 1, RATE)
    clock.advance(minutes=30)
    frozen = ledger.mark_pending_exit("ABC123").exit_time
    clock.advance(minutes=60)

    assert ledger.mark_pending_exit("ABC123").exit_time == frozen
    assert ledger.active(plate="ABC123").status == SessionStatus.ACTIVE

    session = ledger.close("ABC123")
    assert session.exit_time == frozen
    assert session.total_cost_minutes == 30
    assert session.total_cost == Decimal("5.00")


def test_explicit_exit_time_overrides_pending_exit(ledger, clock):
    entered = clock.now
    ledger.open("ABC123", 1, RATE)
    clock.advance(minutes=30)
    ledger.mark_pending_exit("ABC123")

    session = ledger.close("ABC123", exit_time=entered + timedelta(minutes=90))
    assert session.total_cost == Decimal("8.00")


def test_mark_pending_exit_without_session(ledger):
    assert ledger.mark_pending_exit("NOPE") is None
    assert ledger.list_active() == []


def test_timezone_aware_times_are_rejected(ledger, clock):
    aware = clock.now.replace(tzinfo=timezone.utc)
    with pytest.raises(ValidationError):
        ledger.open("ABC123", 1, RATE, entry_time=aware)
    assert ledger.active(plate="ABC123") is None

    ledger.open("ABC123", 1, RATE)
    with pytest.raises(ValidationError):
        ledger.close("ABC123", exit_time=aware + timedelta(minutes=30))
    assert ledger.active(plate="ABC123") is not None


def test_negative_included_minutes_rejected(clock):
    with pytest.raises(ValidationError):
        SessionLedger(ParkingStore([1], clock=clock), included_minutes=-1, clock=clock)


def test_history_latest_exit_first(ledger, clock):
    for i, plate in enumerate(["A", "B", "C"], start=1):
        ledger.open(plate, i, RATE)
    for plate in ["B", "C", "A"]:
        clock.advance(minutes=10)
        ledger.close(plate)

    assert [s.plate for s in ledger.history()] == ["A", "C", "B"]
    assert [s.plate for s in ledger.history(limit=2)] == ["A", "C"]


@pytest.mark.parametrize("limit", [0, -5])
def test_history_rejects_bad_limit(ledger, limit):
    with pytest.raises(ValidationError):
        ledger.history(limit=limit)


def test_list_active_by_entry_time(ledger, clock):
    ledger.open("LATE", 1, RATE)
    ledger.open("EARLY", 2, RATE, entry_time=clock.now - timedelta(minutes=5))
    assert [s.plate for s in ledger.list_active()] == ["EARLY", "LATE"]
