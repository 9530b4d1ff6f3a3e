"""Calendar helpers for installment schedules."""

from datetime import date, datetime

from dateutil.relativedelta import relativedelta

from emi_tracker.exceptions import ValidationError

DATE_FMT = "%Y-%m-%d"
COMPACT_FMT = "%Y%m%d"


def to_date(date_like: date | datetime | str | None) -> date:
    """Normalize a date-like value to a ``date``.

    Accepts ``date``, ``datetime`` and ISO strings (``YYYY-MM-DD``,
    ``YYYYMMDD`` or a full ISO timestamp, of which only the date is kept).

    Raises
    ------
    ValidationError
        If the value is missing or cannot be parsed.
    """
    if isinstance(date_like, datetime):
        return date_like.date()
    if isinstance(date_like, date):
        return date_like
    if isinstance(date_like, str):
        text = date_like.strip()
        for fmt in (DATE_FMT, COMPACT_FMT):
            try:
                return datetime.strptime(text, fmt).date()
            except ValueError:
                continue
        try:
            return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
        except ValueError:
            pass
        raise ValidationError(f"Unsupported date string format: {date_like!r}")
    if date_like is None:
        raise ValidationError("Date is missing")
    raise ValidationError(f"Unsupported type for date: {type(date_like).__name__}")


def to_datetime(value: date | datetime | str | None) -> datetime | None:
    """Parse a timestamp, returning ``None`` when absent or unparseable."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    return None


def add_months(start: date, months: int) -> date:
    """Add calendar months, clamping to the last day of short months."""
    return start + relativedelta(months=months)


def same_month(a: date, b: date) -> bool:
    """True if both dates fall in the same calendar month and year."""
    return a.year == b.year and a.month == b.month


def months_between(start: date, end: date) -> int:
    """Whole calendar months from ``start``'s month to ``end``'s month."""
    return (end.year - start.year) * 12 + (end.month - start.month)
