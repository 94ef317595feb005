"""Date rules for events: progress, countdowns, ordering and day selection.

Everything here is a pure function of an event record (a dict with
``start_date``/``end_date`` as ``datetime.date`` or ``None``) and an explicit
``today``, so callers decide which calendar day "today" is.
"""

from datetime import date
from typing import NamedTuple, Optional

from django.core.exceptions import ValidationError

from .constants import EVERGREEN_EVENT_ID, EVERGREEN_EVENT_NAME


class EventStatus(NamedTuple):
    kind: str
    label: str


ONGOING = "ongoing"
ENDED = "ended"
TODAY = "today"
REMAINING = "remaining"


def evergreen_event_record() -> dict:
    return {
        "id": EVERGREEN_EVENT_ID,
        "name": EVERGREEN_EVENT_NAME,
        "start_date": None,
        "end_date": None,
        "is_evergreen": True,
        "created_by": "system",
    }


def is_evergreen(event: dict) -> bool:
    return bool(event.get("is_evergreen")) or event.get("id") == EVERGREEN_EVENT_ID


def is_deletable(event: dict) -> bool:
    return not is_evergreen(event)


def _has_dates(event: dict) -> bool:
    return event.get("start_date") is not None and event.get("end_date") is not None


def validate_event_dates(start_date: Optional[date], end_date: Optional[date]):
    if start_date is None or end_date is None:
        raise ValidationError("Both a start date and an end date are required.")
    if end_date < start_date:
        raise ValidationError("End date cannot be before start date.")


def event_progress(event: dict, today: date) -> Optional[float]:
    """Percentage of the event elapsed on ``today``, from 0.0 to 100.0.

    Evergreen events (and events without both dates) have no numeric
    progress and return ``None``.
    """
    if is_evergreen(event) or not _has_dates(event):
        return None

    start, end = event["start_date"], event["end_date"]
    total_days = (end - start).days
    if total_days <= 0:
        return 100.0 if today >= start else 0.0

    days_passed = max(0, min((today - start).days, total_days))
    return days_passed / total_days * 100


def days_remaining(event: dict, today: date) -> Optional[int]:
    if is_evergreen(event) or not _has_dates(event):
        return None
    return max(0, (event["end_date"] - today).days)


def event_status(event: dict, today: date) -> EventStatus:
    remaining = days_remaining(event, today)
    if remaining is None:
        return EventStatus(ONGOING, "Ongoing")
    if today > event["end_date"]:
        return EventStatus(ENDED, "Ended")
    if remaining == 0:
        return EventStatus(TODAY, "Happening today")
    suffix = "" if remaining == 1 else "s"
    return EventStatus(REMAINING, f"{remaining} day{suffix} remaining")


def event_sort_key(event: dict):
    if is_evergreen(event):
        return (0, 0, event.get("name") or "")
    start = event.get("start_date")
    start_rank = -start.toordinal() if start else 0
    return (1, start_rank, event.get("name") or "")


def sort_events(events):
    """Evergreen first, then dated events by descending start date, then name."""
    return sorted(events, key=event_sort_key)


def is_date_in_event(event: dict, day: date) -> bool:
    if is_evergreen(event) or not _has_dates(event):
        return True
    return event["start_date"] <= day <= event["end_date"]


def default_day_for_event(event: dict, today: date) -> date:
    if is_date_in_event(event, today):
        return today
    return event["start_date"]


def clamp_day_to_event(event: dict, day: date) -> date:
    if is_date_in_event(event, day):
        return day
    return event["start_date"]


def describe_event(event: dict, today: date) -> dict:
    status = event_status(event, today)
    progress = event_progress(event, today)
    return {
        **event,
        "progress": None if progress is None else round(progress, 1),
        "days_remaining": days_remaining(event, today),
        "status": status.kind,
        "status_label": status.label,
        "deletable": is_deletable(event),
    }
