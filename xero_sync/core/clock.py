"""Time helpers. All persisted timestamps are naive UTC."""
from datetime import datetime, timezone

from dateutil.relativedelta import relativedelta


def utcnow() -> datetime:
    """Current time as naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    """Normalize an aware datetime to naive UTC; naive values pass through."""
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def months_ago(months: int, now: datetime = None) -> datetime:
    """Start of the history window `months` back from `now`."""
    return (now or utcnow()) - relativedelta(months=months)
