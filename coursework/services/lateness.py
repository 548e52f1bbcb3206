from datetime import datetime, timezone


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; every stored instant is UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def is_late(submitted_at: datetime, deadline: datetime) -> bool:
    # exactly at the deadline is on time
    return as_utc(submitted_at) > as_utc(deadline)
