from datetime import date, datetime, timezone


def get_current_datetime() -> datetime:
    """Return current UTC datetime with timezone info."""
    dt = datetime.now(timezone.utc)
    # Ensure microseconds are stripped for consistency in tests
    dt = dt.replace(microsecond=0)
    if dt.tzinfo is None or dt.tzinfo.utcoffset(dt) is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def get_current_date() -> date:
    return get_current_datetime().date()


def get_month_key(value: date) -> str:
    """Return the ``YYYY-MM`` key used to bucket invoices by calendar month."""
    return f"{value.year:04d}-{value.month:02d}"


def get_quarter_start(target: date) -> date:
    """Get the first day of the quarter containing the given date."""
    first_month = ((target.month - 1) // 3) * 3 + 1
    return date(target.year, first_month, 1)
