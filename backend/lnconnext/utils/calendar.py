"""Calendar grid helpers.

Weeks start on Sunday. Grids are lists of `date`; `generate_calendar_days`
attaches the events whose [start, end] span touches each day.
"""

from datetime import date, datetime, time, timedelta
from typing import Callable, Dict, List, Optional, Sequence

VIEWS = ("month", "week", "three_weeks", "weekend")


def first_day_of_month(d: date) -> date:
    return d.replace(day=1)


def last_day_of_month(d: date) -> date:
    following = (d.replace(day=28) + timedelta(days=4)).replace(day=1)
    return following - timedelta(days=1)


def first_day_of_week(d: date) -> date:
    # date.weekday(): Monday=0 .. Sunday=6
    return d - timedelta(days=(d.weekday() + 1) % 7)


def last_day_of_week(d: date) -> date:
    return first_day_of_week(d) + timedelta(days=6)


def is_weekend(d: date) -> bool:
    return d.weekday() >= 5


def is_today(d: date, today: Optional[date] = None) -> bool:
    return d == (today or date.today())


def _span(start: date, end: date) -> List[date]:
    return [start + timedelta(days=i) for i in range((end - start).days + 1)]


def month_grid(d: date) -> List[date]:
    """Full weeks covering the month of `d`."""
    return _span(first_day_of_week(first_day_of_month(d)), last_day_of_week(last_day_of_month(d)))


def week_grid(d: date) -> List[date]:
    return _span(first_day_of_week(d), last_day_of_week(d))


def three_week_grid(d: date) -> List[date]:
    start = first_day_of_week(d)
    return _span(start, start + timedelta(days=20))


def weekend_grid(d: date) -> List[date]:
    """Saturdays and Sundays of the month of `d`."""
    return [day for day in _span(first_day_of_month(d), last_day_of_month(d)) if is_weekend(day)]


GRIDS: Dict[str, Callable[[date], List[date]]] = {
    "month": month_grid,
    "week": week_grid,
    "three_weeks": three_week_grid,
    "weekend": weekend_grid,
}


def grid_for_view(view: str, anchor: date) -> List[date]:
    if view not in GRIDS:
        raise ValueError(f"view must be one of: {', '.join(VIEWS)}")
    return GRIDS[view](anchor)


def generate_calendar_days(
    dates: Sequence[date],
    events: Sequence[dict],
    today: Optional[date] = None,
) -> List[dict]:
    """Build `{date, events, isWeekend, isToday}` for each of `dates`.

    `events` are dicts with `start` and optional `end` naive datetimes;
    an event without an end only occupies its start day.
    """
    days = []
    for d in dates:
        day_start = datetime.combine(d, time.min)
        day_end = datetime.combine(d, time.max)
        matching = [
            e for e in events
            if e["start"] <= day_end and (e.get("end") or e["start"]) >= day_start
        ]
        days.append({
            "date": d.isoformat(),
            "events": [e["item"] for e in matching],
            "isWeekend": is_weekend(d),
            "isToday": is_today(d, today),
        })
    return days
