from decimal import Decimal

import pytest

from parking_allocator.errors import ValidationError
from parking_allocator.state.rate_registry import RateRegistry, parse_amount
from parking_allocator.state.store import ParkingStore


@pytest.fixture
def registry(clock):
    return RateRegistry(ParkingStore([1, 2, 3], clock=clock), clock=clock)


def test_default_rate_when_none_set(registry):
    rate = registry.get_active()
    assert rate.id is None
    assert rate.base_cost == Decimal("5.00")
    assert rate.per_minute_cost == Decimal("0.10")


def test_set_active_replaces_previous(registry):
    first = registry.set_active("6.00", "0.15")
    second = registry.set_active(Decimal("8.00"), Decimal("0.20"))

    active = registry.get_active()
    assert active.id == second.id
    assert active.base_cost == Decimal("8.00")

    history = registry.history()
    assert [r.id for r in history] == [first.id, second.id]
    assert [r.active for r in history] == [False, True]


def test_superseded_schedule_keeps_its_values(registry):
    first = registry.set_active("6.00", "0.15")
    registry.set_active("9.00", "0.30")

    old = next(r for r in registry.history() if r.id == first.id)
    assert old.base_cost == Decimal("6.00")
    assert old.per_minute_cost == Decimal("0.15")


@pytest.mark.parametrize(
    "base, per_minute",
    [
        ("-1", "0.10"),
        ("5.00", -0.01),
        ("abc", "0.10"),
        (None, "0.10"),
        (True, "0.10"),
        ("NaN", "0.10"),
        ("5.00", "Infinity"),
    ],
)
def test_set_active_rejects_bad_amounts(registry, base, per_minute):
    with pytest.raises(ValidationError):
        registry.set_active(base, per_minute)
    assert registry.history() == []


def test_zero_is_a_valid_rate(registry):
    rate = registry.set_active(0, 0)
    assert rate.base_cost == Decimal("0")


def test_parse_amount_accepts_floats_exactly():
    assert parse_amount(0.1, "perMinute") == Decimal("0.1")
    assert parse_amount(" 7.50 ", "base") == Decimal("7.50")


def test_ensure_active_seeds_once(registry):
    seeded = registry.ensure_active()
    assert seeded.id is not None
    assert seeded.base_cost == Decimal("5.00")

    again = registry.ensure_active()
    assert again.id == seeded.id
    assert len(registry.history()) == 1


@pytest.mark.parametrize("field", ["default_base", "default_per_minute"])
def test_negative_default_rejected(clock, field):
    with pytest.raises(ValidationError):
        RateRegistry(ParkingStore([1], clock=clock), clock=clock, **{field: "-1"})
