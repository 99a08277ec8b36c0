"""
Day counting and urgency tiers for exam and assignment calendars.

All dates are compared as UTC calendar dates so time-of-day and timezone
offsets on the inputs never shift the day count.
"""
from datetime import date, datetime, timezone

from ..errors import InvalidInputError
from ..models import ALL_COHORTS

EXAM = "exam"
ASSIGNMENT = "assignment"

URGENT = "urgent"
NORMAL = "normal"

# Inclusive: an item is urgent when days_until <= threshold
URGENCY_THRESHOLDS = {
    EXAM: 7,
    ASSIGNMENT: 3,
}


def to_calendar_date(value) -> date:
    """Normalize a date, datetime or ISO-8601 string to a UTC calendar date."""
    if isinstance(value, str):
        text = value.strip()
        if not text:
            raise InvalidInputError("Date is required.")
        try:
            value = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            raise InvalidInputError(f"'{value}' is not a valid ISO date.")
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    if isinstance(value, date):
        return value
    raise InvalidInputError(f"Unsupported date value: {value!r}")


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def days_until(target_date, today) -> int:
    """Whole calendar days from today to target_date. Negative when past due."""
    return (to_calendar_date(target_date) - to_calendar_date(today)).days


def classify(days: int, kind: str) -> str:
    try:
        threshold = URGENCY_THRESHOLDS[kind]
    except KeyError:
        raise InvalidInputError(f"Unknown schedule kind: {kind}")
    return URGENT if days <= threshold else NORMAL


def annotate(item, kind: str, today) -> dict:
    days = days_until(item.target_date, today)
    data = item.to_dict()
    data.update({"kind": kind, "days_until": days, "urgency": classify(days, kind)})
    return data


def sort_by_date(items):
    return sorted(items, key=lambda i: to_calendar_date(i.target_date))


def visible_to_cohort(items, cohort):
    allowed = {ALL_COHORTS}
    if cohort:
        allowed.add(cohort)
    return [i for i in items if i.grade in allowed]


def urgent_items(exams, assignments, today):
    """Urgent exams and assignments merged into one list, soonest first."""
    annotated = [annotate(e, EXAM, today) for e in exams]
    annotated += [annotate(a, ASSIGNMENT, today) for a in assignments]
    urgent = [a for a in annotated if a["urgency"] == URGENT]
    return sorted(urgent, key=lambda a: a["days_until"])
