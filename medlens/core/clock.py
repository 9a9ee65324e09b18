from datetime import datetime, timezone


def utcnow() -> datetime:
    """Timezone-aware UTC now; every timestamp column is written through this or as_utc."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """Client-supplied datetimes without an offset are taken as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
