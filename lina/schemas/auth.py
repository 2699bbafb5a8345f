from pydantic import BaseModel
from typing import Optional


class RegisterRequest(BaseModel):
    email: str = ""  # validated by IdentityIssuer so failures map to invalid_input


class AccountStateResponse(BaseModel):
    identity: str
    token: str
    used: int
    remaining: int  # -1 means unlimited (subscribed)
    quota: int
    subscribed: bool
    plan: str  # "free" or "premium"
    subscription_expires_at: Optional[str] = None
