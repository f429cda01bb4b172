# storefront/utils/dates.py
from datetime import datetime, timezone


def utcnow() -> datetime:
    # naive UTC, the way every DateTime column is stored
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso8601(s):
    if not s:
        return None
    if isinstance(s, datetime):
        return s.astimezone(timezone.utc).replace(tzinfo=None) if s.tzinfo else s
    s = str(s).strip()
    # support trailing 'Z' (UTC)
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(s)
    except ValueError:
        return None
    if dt.tzinfo:
        return dt.astimezone(timezone.utc).replace(tzinfo=None)  # store naive UTC
    return dt


def as_timestamp(dt: datetime | None) -> float | None:
    if dt is None:
        return None
    return dt.replace(tzinfo=timezone.utc).timestamp()


def isoformat(dt):
    return dt.isoformat() if dt else None
