"""Follow-up date buckets for the sidebar.

Every comparison happens on calendar dates in the configured local zone, so
a follow-up stored as ``2024-03-04T17:30:00+00:00`` and "today" are both
reduced to midnight before they are compared.
"""

from datetime import date, datetime, timedelta, tzinfo
from typing import Iterable, List, Optional
from zoneinfo import ZoneInfo

from leadms.config import settings
from leadms.models.lead import Lead

BUCKET_ALL = "all"
BUCKET_OVERDUE = "overdue"
BUCKET_TODAY = "today"
BUCKET_TOMORROW = "tomorrow"
BUCKET_THIS_WEEK = "thisWeek"
BUCKET_NEXT_WEEK = "nextWeek"

FOLLOWUP_BUCKETS = [
    {"id": BUCKET_ALL, "label": "All Follow-ups"},
    {"id": BUCKET_OVERDUE, "label": "Overdue"},
    {"id": BUCKET_TODAY, "label": "Today"},
    {"id": BUCKET_TOMORROW, "label": "Tomorrow"},
    {"id": BUCKET_THIS_WEEK, "label": "This Week"},
    {"id": BUCKET_NEXT_WEEK, "label": "Next Week"},
]


def local_timezone() -> Optional[tzinfo]:
    if settings.timezone:
        return ZoneInfo(settings.timezone)
    return None


def to_local_date(value, tz: Optional[tzinfo] = None) -> Optional[date]:
    """Reduce a stored follow-up value to a calendar date at local midnight."""
    if value is None:
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
        value = datetime.fromisoformat(value)
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(tz or local_timezone())
        return value.date()
    if isinstance(value, date):
        return value
    return None


def local_today(tz: Optional[tzinfo] = None) -> date:
    return datetime.now(tz or local_timezone()).date()


def week_day_index(day: date) -> int:
    """Sunday is 0, Saturday is 6."""
    return (day.weekday() + 1) % 7


def end_of_week(today: date) -> date:
    return today + timedelta(days=7 - week_day_index(today))


def bucket_matches(bucket: str, followup: date, today: date) -> bool:
    if bucket == BUCKET_OVERDUE:
        return followup < today
    if bucket == BUCKET_TODAY:
        return followup == today
    if bucket == BUCKET_TOMORROW:
        return followup == today + timedelta(days=1)
    if bucket == BUCKET_THIS_WEEK:
        return today <= followup <= end_of_week(today)
    if bucket == BUCKET_NEXT_WEEK:
        start = end_of_week(today) + timedelta(days=1)
        return start <= followup <= start + timedelta(days=6)
    return True


def classify_by_followup(
    leads: Iterable[Lead],
    bucket: str = BUCKET_ALL,
    today: Optional[date] = None,
    tz: Optional[tzinfo] = None,
) -> List[Lead]:
    """Return the leads whose follow-up date falls in ``bucket``.

    Leads without a follow-up date never appear, not even under ``all``.
    Unknown bucket names behave like ``all``. Input order is kept.
    """
    today = today or local_today(tz)
    selected = []
    for lead in leads:
        followup = to_local_date(lead.next_followup_date, tz)
        if followup is None:
            continue
        if bucket_matches(bucket, followup, today):
            selected.append(lead)
    return selected


def is_overdue(lead: Lead, today: Optional[date] = None, tz: Optional[tzinfo] = None) -> bool:
    followup = to_local_date(lead.next_followup_date, tz)
    if followup is None:
        return False
    return followup < (today or local_today(tz))
