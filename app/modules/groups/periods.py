"""
Competition period arithmetic.

Windows are inclusive calendar dates and depend only on the period type and the
reference date passed in, never on the wall clock, so a leaderboard for a given
day is always reproducible. Callers turn "now" into a date once (UTC) via today().
"""

from datetime import date, datetime, timedelta, timezone
from typing import Optional

from app.core.exceptions import ValidationError
from app.modules.groups.models import CompetitionPeriod, CompetitionPeriodType


def today(now: Optional[datetime] = None) -> date:
    """UTC calendar date for now (or the given instant)."""
    now = now or datetime.now(tz=timezone.utc)
    if now.tzinfo is not None:
        now = now.astimezone(timezone.utc)
    return now.date()


def first_day_of_month(day: date) -> date:
    return day.replace(day=1)


def first_day_of_next_month(day: date) -> date:
    if day.month == 12:
        return date(day.year + 1, 1, 1)
    return date(day.year, day.month + 1, 1)


def last_day_of_month(day: date) -> date:
    return first_day_of_next_month(day) - timedelta(days=1)


def _period_type(value) -> CompetitionPeriodType:
    try:
        return CompetitionPeriodType(value)
    except ValueError as e:
        raise ValidationError(f"Unknown period type: {value}", field="period_type") from e


def compute_period(period_type: CompetitionPeriodType, reference_date: date) -> CompetitionPeriod:
    """Window of the given cadence that contains reference_date."""
    period_type = _period_type(period_type)
    if isinstance(reference_date, datetime):
        reference_date = today(reference_date)

    if period_type in (CompetitionPeriodType.DAILY, CompetitionPeriodType.CUSTOM):
        # Custom has no semantics of its own yet; stored rows render as daily
        start = end = reference_date
    elif period_type == CompetitionPeriodType.WEEKLY:
        # isoweekday: Monday=1 .. Sunday=7
        start = reference_date - timedelta(days=reference_date.isoweekday() - 1)
        end = start + timedelta(days=6)
    else:
        start = first_day_of_month(reference_date)
        end = last_day_of_month(reference_date)

    return CompetitionPeriod(start_date=start, end_date=end, period_type=period_type)


def compute_previous_period(period_type: CompetitionPeriodType, current_start: date) -> CompetitionPeriod:
    """
    The window immediately before the one starting at current_start.

    Anchored on the current window's start rather than today so that querying a
    finished period later does not shift its predecessor.
    """
    period_type = _period_type(period_type)

    if period_type in (CompetitionPeriodType.DAILY, CompetitionPeriodType.CUSTOM):
        start = end = current_start - timedelta(days=1)
    elif period_type == CompetitionPeriodType.WEEKLY:
        start = current_start - timedelta(days=7)
        end = start + timedelta(days=6)
    else:
        end = first_day_of_month(current_start) - timedelta(days=1)
        start = first_day_of_month(end)

    return CompetitionPeriod(start_date=start, end_date=end, period_type=period_type)
