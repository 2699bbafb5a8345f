from fastapi import APIRouter, Depends, Request

from lina.core.config import Settings
from lina.core.rate_limit import api_limit, limiter
from lina.dependencies.auth import get_current_record
from lina.dependencies.services import get_issuer, get_settings
from lina.models.user_record import UserRecord
from lina.schemas.auth import AccountStateResponse, RegisterRequest
from lina.services.identity import IdentityIssuer

router = APIRouter()


def account_state(record: UserRecord, token: str, settings: Settings) -> dict:
    state = record.state(settings.free_question_limit)
    state["token"] = token
    return state


@router.post("/register", response_model=AccountStateResponse)
@limiter.limit(api_limit)
def register(
    request: Request,
    body: RegisterRequest,
    issuer: IdentityIssuer = Depends(get_issuer),
    settings: Settings = Depends(get_settings),
):
    """
    Register (or log back in) with an email.
    Idempotent: an existing identity keeps its usage and gets a fresh token.
    """
    registration = issuer.register(body.email)
    return account_state(registration.record, registration.token, settings)


@router.get("/me", response_model=AccountStateResponse)
@limiter.limit(api_limit)
def get_me(
    request: Request,
    record: UserRecord = Depends(get_current_record),
    issuer: IdentityIssuer = Depends(get_issuer),
    settings: Settings = Depends(get_settings),
):
    """Current quota/subscription state from the Ledger, with a refreshed token."""
    return account_state(record, issuer.issue_token(record), settings)
