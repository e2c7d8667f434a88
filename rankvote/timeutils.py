from datetime import datetime, timezone

# Datetimes are stored naive in UTC; SQLite drops tzinfo anyway.


def utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_datetime(value):
    """Parse an ISO-8601 string into a naive UTC datetime, or return None."""
    if not value or not isinstance(value, str):
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def isoformat(value):
    if value is None:
        return None
    return value.replace(microsecond=0).isoformat() + "Z"
