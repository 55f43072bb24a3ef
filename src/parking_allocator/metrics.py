"""Prometheus metrics for spot allocation and billing."""

from prometheus_client import Counter, Gauge, Histogram, CollectorRegistry, generate_latest

# Create a custom registry to avoid conflicts with default metrics
REGISTRY = CollectorRegistry()

# Parking session duration histogram (in minutes)
SESSION_DURATION = Histogram(
    "parking_session_duration_minutes",
    "Billed duration of completed parking sessions",
    buckets=(15, 30, 60, 90, 120, 180, 240, 480, 720, 1440),
    registry=REGISTRY,
)

# Arrivals by outcome
ADMISSIONS = Counter(
    "parking_admissions_total",
    "Vehicles admitted to a spot",
    ["spot_id"],
    registry=REGISTRY,
)

QUEUED_ARRIVALS = Counter(
    "parking_queued_arrivals_total",
    "Vehicles placed in the entry queue",
    registry=REGISTRY,
)

DEPARTURES = Counter(
    "parking_departures_total",
    "Completed parking sessions",
    ["spot_id"],
    registry=REGISTRY,
)

REVENUE = Counter(
    "parking_revenue_total",
    "Total amount billed for completed sessions",
    registry=REGISTRY,
)

REJECTED_OPERATIONS = Counter(
    "parking_rejected_operations_total",
    "Operations rejected with a typed failure",
    ["operation", "kind"],
    registry=REGISTRY,
)

# Current spot status gauge
SPOT_STATUS = Gauge(
    "parking_spot_occupied",
    "Current status of parking spot (1=occupied, 0=available)",
    ["spot_id"],
    registry=REGISTRY,
)

# Total spots gauges
TOTAL_SPOTS = Gauge(
    "parking_spots_total",
    "Total number of parking spots",
    registry=REGISTRY,
)

AVAILABLE_SPOTS = Gauge(
    "parking_spots_available",
    "Number of available parking spots",
    registry=REGISTRY,
)

OCCUPIED_SPOTS = Gauge(
    "parking_spots_occupied",
    "Number of occupied parking spots",
    registry=REGISTRY,
)

QUEUE_LENGTH = Gauge(
    "parking_queue_waiting",
    "Vehicles currently waiting in the entry queue",
    registry=REGISTRY,
)


def record_admission(spot_id: int) -> None:
    """Record a vehicle admitted to a spot."""
    ADMISSIONS.labels(spot_id=str(spot_id)).inc()


def record_queued_arrival() -> None:
    """Record a vehicle placed in the entry queue."""
    QUEUED_ARRIVALS.inc()


def record_departure(spot_id: int, minutes: int, cost: float) -> None:
    """Record a completed session and what it was billed."""
    DEPARTURES.labels(spot_id=str(spot_id)).inc()
    SESSION_DURATION.observe(minutes)
    REVENUE.inc(cost)


def record_rejection(operation: str, kind: str) -> None:
    """Record an operation rejected with a typed failure."""
    REJECTED_OPERATIONS.labels(operation=operation, kind=kind).inc()


def update_spot_status(spot_id: int, is_occupied: bool) -> None:
    """Update current spot status gauge."""
    SPOT_STATUS.labels(spot_id=str(spot_id)).set(1 if is_occupied else 0)


def update_spot_counts(total: int, available: int, occupied: int) -> None:
    """Update overall spot count gauges."""
    TOTAL_SPOTS.set(total)
    AVAILABLE_SPOTS.set(available)
    OCCUPIED_SPOTS.set(occupied)


def update_queue_length(waiting: int) -> None:
    """Update the entry queue gauge."""
    QUEUE_LENGTH.set(waiting)


def get_metrics() -> bytes:
    """Generate Prometheus metrics output."""
    return generate_latest(REGISTRY)
