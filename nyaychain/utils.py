# Small shared helpers: ids, clocks, rounding

import math
import uuid
from datetime import datetime, timezone

from .errors import ValidationFailed


def new_id() -> str:
    return str(uuid.uuid4())

def now_utc() -> datetime:
    return datetime.now(timezone.utc)

def ensure_utc(dt: datetime) -> datetime:
    """pymongo hands back naive UTC datetimes unless the client is tz-aware."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt

def round_half_up(value: float) -> int:
    # Math.round semantics; Python's round() is banker's rounding
    return int(math.floor(value + 0.5))

def hours_between(start: datetime, end: datetime) -> float:
    return (ensure_utc(end) - ensure_utc(start)).total_seconds() / 3600

def time_ago(dt: datetime, now: datetime = None) -> str:
    now = now or now_utc()
    minutes = int((now - ensure_utc(dt)).total_seconds() // 60)
    hours = minutes // 60
    days = hours // 24
    if minutes < 1:
        return "Just now"
    if minutes < 60:
        return f"{minutes}m ago"
    if hours < 24:
        return f"{hours}h ago"
    if days < 7:
        return f"{days}d ago"
    return f"{days // 7}w ago"

def sanitize_str(value) -> str:
    """Ensure a value is a plain string, not a dict/list that could be a NoSQL operator."""
    if not isinstance(value, str):
        raise ValidationFailed("Invalid parameter type")
    return value

def validate_uuid(value: str, param_name: str = "id") -> str:
    """Validate that a string is a valid UUID format."""
    value = sanitize_str(value)
    try:
        uuid.UUID(value)
    except (ValueError, AttributeError):
        raise ValidationFailed(f"Invalid {param_name} format")
    return value
