from datetime import datetime, timezone
import pytz

from smo_social.config import settings

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

def as_utc(value: datetime | None) -> datetime | None:
    """SQLite hands back naive datetimes; every stored timestamp is UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)

def parse_datetime(raw: str | None) -> datetime | None:
    if not raw:
        return None
    try:
        parsed = datetime.fromisoformat(raw.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        # form inputs arrive in the site timezone
        parsed = pytz.timezone(settings.timezone).localize(parsed)
    return parsed.astimezone(timezone.utc)

def to_local(value: datetime | None) -> datetime | None:
    value = as_utc(value)
    if value is None:
        return None
    return value.astimezone(pytz.timezone(settings.timezone))
