from datetime import datetime, timezone
from typing import Optional

# Plan tiers
# Free tier: lifetime trial of FREE_QUESTION_LIMIT questions (never resets)
# Premium: unmetered while subscription_expiry is in the future
PLAN_FREE = "free"
PLAN_PREMIUM = "premium"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite drops tzinfo; treat naive datetimes as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def is_subscription_active(expiry: Optional[datetime], now: Optional[datetime] = None) -> bool:
    """A past expiry is the same as no subscription."""
    expiry = as_utc(expiry)
    if expiry is None:
        return False
    return expiry > (now or utcnow())


def plan_for(expiry: Optional[datetime], now: Optional[datetime] = None) -> str:
    return PLAN_PREMIUM if is_subscription_active(expiry, now) else PLAN_FREE


def remaining_questions(used_count: int, free_quota: int, subscribed: bool) -> int:
    """Remaining free questions; -1 means unlimited (subscribed)."""
    if subscribed:
        return -1
    return max(0, free_quota - used_count)
