from __future__ import annotations

import datetime as dt
from typing import Any, Callable

from dateutil.relativedelta import relativedelta

from .errors import InvalidDate
from .plan_models import CalendarBucket


def parse_date(value: Any, where: str | None = None) -> dt.date:
    """
    Return `value` as a date.

    Accepts date/datetime objects and ISO `YYYY-MM-DD` strings. Anything else
    raises InvalidDate; nothing is ever coerced to today.
    """

    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    if not isinstance(value, str) or not value.strip():
        raise InvalidDate(value, where)
    try:
        return dt.date.fromisoformat(value.strip())
    except ValueError as exc:
        raise InvalidDate(value, where) from exc


def week_offset_of(value: Any, program_start: Any) -> float:
    """Weeks between program start and `value`; fractional for dates mid-week."""
    return (parse_date(value) - parse_date(program_start)).days / 7


def date_at_week(program_start: Any, week_offset: float) -> dt.date:
    """Calendar date at a week offset; fractional offsets round to the nearest day."""
    return parse_date(program_start) + dt.timedelta(days=round(week_offset * 7))


def window_end(program_start: Any, view_weeks: int) -> dt.date:
    """Exclusive end of the visible window."""
    return parse_date(program_start) + dt.timedelta(weeks=view_weeks)


def quarter_buckets(program_start: Any, view_weeks: int) -> list[CalendarBucket]:
    """Calendar quarters overlapping the window, clipped to it."""
    start = parse_date(program_start)
    first = dt.date(start.year, 3 * ((start.month - 1) // 3) + 1, 1)
    return _walk_buckets(
        start,
        view_weeks,
        first,
        relativedelta(months=3),
        lambda d: f"Q{(d.month - 1) // 3 + 1} {d.year}",
    )


def month_buckets(program_start: Any, view_weeks: int) -> list[CalendarBucket]:
    """Calendar months with any part inside the window, clipped to it."""
    start = parse_date(program_start)
    return _walk_buckets(
        start,
        view_weeks,
        start.replace(day=1),
        relativedelta(months=1),
        lambda d: d.strftime("%m/%d"),
    )


def week_buckets(program_start: Any, view_weeks: int) -> list[CalendarBucket]:
    """One bucket per visible week, labelled W1..Wn with the week's start date."""
    start = parse_date(program_start)
    buckets: list[CalendarBucket] = []
    for idx in range(view_weeks):
        week_start = start + dt.timedelta(weeks=idx)
        buckets.append(
            CalendarBucket(
                label=f"W{idx + 1}",
                start_week_offset=float(idx),
                width_weeks=1.0,
                start_date=week_start,
                date_label=week_start.strftime("%m/%d"),
            )
        )
    return buckets


def _walk_buckets(
    start: dt.date,
    view_weeks: int,
    first: dt.date,
    step: relativedelta,
    label_for: Callable[[dt.date], str],
) -> list[CalendarBucket]:
    end = window_end(start, view_weeks)
    buckets: list[CalendarBucket] = []
    current = first
    while current < end:
        following = current + step
        lo = max(current, start)
        hi = min(following, end)
        width = (hi - lo).days / 7
        if width > 0:
            buckets.append(
                CalendarBucket(
                    label=label_for(current),
                    start_week_offset=(lo - start).days / 7,
                    width_weeks=width,
                    start_date=current,
                    date_label=current.strftime("%m/%d"),
                )
            )
        current = following
    return buckets
