"""Dashboard aggregates over completed sessions."""

from collections import defaultdict
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from .models import DashboardMetrics, Session

NO_BEST_MONTH = "N/A"


def build_dashboard(sessions: list[Session], now: Optional[datetime] = None) -> DashboardMetrics:
    """
    Aggregate earnings and durations.

    Args:
        sessions: Completed sessions
        now: Reference time for "today" and "this month" (defaults to now)

    Returns:
        Earnings today and this month by exit time, the average billed
        duration rounded to whole minutes, and the "%B %Y" label of the
        month with the highest earnings
    """
    now = now or datetime.now()
    today = now.date()

    earnings_today = Decimal("0")
    earnings_month = Decimal("0")
    by_month: dict[tuple[int, int], Decimal] = defaultdict(Decimal)
    total_minutes = 0

    for session in sessions:
        cost = session.total_cost or Decimal("0")
        exit_time = session.exit_time
        total_minutes += session.total_cost_minutes or 0

        if exit_time.date() == today:
            earnings_today += cost
        if (exit_time.year, exit_time.month) == (now.year, now.month):
            earnings_month += cost
        by_month[(exit_time.year, exit_time.month)] += cost

    average = 0
    if sessions:
        average = int(
            (Decimal(total_minutes) / len(sessions)).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
        )

    best_label = NO_BEST_MONTH
    if by_month:
        # earliest month wins a tie
        year, month = max(sorted(by_month), key=lambda k: by_month[k])
        best_label = datetime(year, month, 1).strftime("%B %Y")

    return DashboardMetrics(
        earnings_today=earnings_today,
        earnings_this_month=earnings_month,
        average_session_minutes=average,
        best_earning_month_label=best_label,
    )
