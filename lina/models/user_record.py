from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from lina.core.plan_limits import is_subscription_active, plan_for, remaining_questions, utcnow


@dataclass(frozen=True)
class UserRecord:
    """Snapshot of one identity's consumption state, as held by the Access Ledger."""

    identity: str
    email: Optional[str] = None
    used_count: int = 0
    subscription_expiry: Optional[datetime] = None
    created_at: datetime = field(default_factory=utcnow)

    def is_subscribed(self, now: Optional[datetime] = None) -> bool:
        return is_subscription_active(self.subscription_expiry, now)

    def plan(self, now: Optional[datetime] = None) -> str:
        return plan_for(self.subscription_expiry, now)

    def remaining(self, free_quota: int, now: Optional[datetime] = None) -> int:
        return remaining_questions(self.used_count, free_quota, self.is_subscribed(now))

    def state(self, free_quota: int) -> dict:
        """Public view used by the API responses and token claims."""
        now = utcnow()
        subscribed = self.is_subscribed(now)
        return {
            "identity": self.identity,
            "used": self.used_count,
            "quota": free_quota,
            "remaining": remaining_questions(self.used_count, free_quota, subscribed),
            "subscribed": subscribed,
            "plan": plan_for(self.subscription_expiry, now),
            "subscription_expires_at": (
                self.subscription_expiry.isoformat() if subscribed else None
            ),
        }
