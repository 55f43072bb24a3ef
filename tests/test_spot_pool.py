import pytest

from parking_allocator.errors import ConflictError, NotFoundError
from parking_allocator.state.spot_pool import SpotPool
from parking_allocator.state.store import ParkingStore


@pytest.fixture
def pool(clock):
    return SpotPool(ParkingStore([3, 1, 2], clock=clock), clock=clock)


def test_spots_listed_by_id(pool):
    assert [s.id for s in pool.list_spots()] == [1, 2, 3]
    assert pool.get_available_count() == 3


def test_occupy_records_plate_and_timestamp(pool, clock):
    clock.advance(minutes=5)
    spot = pool.occupy(2, "ABC123")

    assert spot.occupied
    assert spot.occupant_plate == "ABC123"
    assert spot.last_change == clock.now
    assert not pool.is_free(2)
    assert pool.get_occupied_count() == 1


def test_occupy_twice_conflicts(pool):
    pool.occupy(1, "ABC123")
    with pytest.raises(ConflictError):
        pool.occupy(1, "XYZ789")
    assert pool.get(1).occupant_plate == "ABC123"


def test_release_clears_occupant(pool):
    pool.occupy(1, "ABC123")
    spot = pool.release(1)

    assert not spot.occupied
    assert spot.occupant_plate is None
    assert pool.is_free(1)


def test_double_release_conflicts(pool):
    with pytest.raises(ConflictError):
        pool.release(1)


def test_unknown_spot(pool):
    with pytest.raises(NotFoundError):
        pool.is_free(99)
    with pytest.raises(NotFoundError):
        pool.occupy(99, "ABC123")


def test_first_free_picks_lowest_id(pool):
    pool.occupy(1, "A")
    assert pool.first_free() == 2
    pool.occupy(2, "B")
    pool.occupy(3, "C")
    assert pool.first_free() is None
