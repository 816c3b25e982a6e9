"""Korea Standard Time helpers.

Every per-day record in the service is keyed by the calendar date in a fixed
UTC+9 offset, independent of the host's locale or ``TZ`` setting.
"""

from datetime import datetime, timedelta, timezone

KST = timezone(timedelta(hours=9), name="KST")


def utc_now() -> datetime:
    """Return the current aware UTC time."""
    return datetime.now(timezone.utc)


def to_kst(moment: datetime) -> datetime:
    """Convert *moment* to KST. Naive datetimes are taken to be UTC."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(KST)


def kst_date_iso(moment: datetime | None = None) -> str:
    """Return the ``YYYY-MM-DD`` KST calendar date of *moment* (default: now)."""
    return to_kst(moment or utc_now()).date().isoformat()
