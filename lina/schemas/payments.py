from typing import Optional

from pydantic import BaseModel


class SubscribeResponse(BaseModel):
    status: str  # "active" (mock mode) or "pending" (Bold checkout created)
    checkout_url: Optional[str] = None
    reference: Optional[str] = None
    token: Optional[str] = None
    remaining: Optional[int] = None
    subscribed: bool = False
    subscription_expires_at: Optional[str] = None
