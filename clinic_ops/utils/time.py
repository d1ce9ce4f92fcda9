"""Time and datetime utilities."""

from datetime import date, datetime, timezone


def utc_now() -> datetime:
    """Get current UTC datetime.

    Returns:
        Current datetime in UTC timezone
    """
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """Return ``dt`` as an aware UTC datetime.

    SQLite hands back naive datetimes even for ``DateTime(timezone=True)``
    columns; those are treated as UTC.
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def age_on(birth_date: date, moment: datetime | date) -> int:
    """Return completed years of age at ``moment``.

    Args:
        birth_date: Date of birth
        moment: Reference date or datetime (e.g. an appointment start)

    Returns:
        Whole years elapsed between the two dates
    """
    on = moment.date() if isinstance(moment, datetime) else moment
    years = on.year - birth_date.year
    if (on.month, on.day) < (birth_date.month, birth_date.day):
        years -= 1
    return years
