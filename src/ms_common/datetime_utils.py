"""Timestamps: everything the store stores or compares is timezone-aware UTC."""

from datetime import datetime, timezone


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_iso_datetime(value: str | None) -> datetime | None:
    """Parse a gateway timestamp such as ``2026-03-01T12:00:00.000-04:00``.

    Naive values are taken as UTC and the result is normalised to UTC.
    Unparseable input yields None so one malformed field never aborts
    reconciliation of the whole transaction.
    """
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)
