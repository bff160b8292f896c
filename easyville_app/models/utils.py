from datetime import date, datetime, timezone

from dateutil.relativedelta import relativedelta

MONTH_LABELS = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    # SQLite hands timezone-aware columns back naive
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def month_start(value: datetime | date) -> date:
    return date(value.year, value.month, 1)


def months_window(now: datetime, months_back: int) -> list[date]:
    """First day of every calendar month from `months_back` months ago up to
    and including the month of `now`."""
    first = month_start(now) - relativedelta(months=months_back)
    return [first + relativedelta(months=i) for i in range(months_back + 1)]


def period_key(value: date) -> str:
    return f"{value.year:04d}-{value.month:02d}"


def period_label(value: date) -> str:
    return f"{MONTH_LABELS[value.month - 1]} {value.year}"
