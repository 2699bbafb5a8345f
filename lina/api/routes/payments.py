"""
Subscription checkout.

PAYMENTS_MODE=mock activates the subscription immediately (sandbox / demos).
PAYMENTS_MODE=bold creates a Bold payment link; the subscription is activated
later by the Bold webhook (see webhooks.py).
"""
import logging

from fastapi import APIRouter, Depends, Request

from lina.core.config import Settings
from lina.core.rate_limit import api_limit, limiter
from lina.dependencies.auth import get_current_record
from lina.dependencies.services import get_bold_client, get_issuer, get_ledger, get_settings
from lina.models.user_record import UserRecord
from lina.schemas.payments import SubscribeResponse
from lina.services import billing
from lina.services.bold_client import BoldClient
from lina.services.identity import IdentityIssuer
from lina.services.ledger import AccessLedger

logger = logging.getLogger(__name__)

router = APIRouter()

CHECKOUT_DESCRIPTION = "Suscripción LINA Premium"


@router.post("/subscribe", response_model=SubscribeResponse)
@limiter.limit(api_limit)
async def subscribe(
    request: Request,
    record: UserRecord = Depends(get_current_record),
    ledger: AccessLedger = Depends(get_ledger),
    issuer: IdentityIssuer = Depends(get_issuer),
    settings: Settings = Depends(get_settings),
    bold: BoldClient = Depends(get_bold_client),
):
    if settings.payments_mode == "mock":
        record = billing.activate(ledger, settings, record.identity)
        state = record.state(settings.free_question_limit)
        return {
            "status": "active",
            "token": issuer.issue_token(record),
            "remaining": state["remaining"],
            "subscribed": state["subscribed"],
            "subscription_expires_at": state["subscription_expires_at"],
        }

    reference = billing.build_reference(record.identity)
    logger.info("[Bold] Creating checkout for %s reference=%s", record.identity, reference)
    link = await bold.create_payment_link(
        amount=settings.subscription_price,
        currency=settings.subscription_currency,
        reference=reference,
        description=CHECKOUT_DESCRIPTION,
        callback_url=f"{settings.frontend_url}/suscripcion",
        payer_email=record.email,
    )
    state = record.state(settings.free_question_limit)
    return {
        "status": "pending",
        "checkout_url": link["url"],
        "reference": reference,
        "remaining": state["remaining"],
        "subscribed": state["subscribed"],
        "subscription_expires_at": state["subscription_expires_at"],
    }


@router.get("/payments/methods")
@limiter.limit(api_limit)
async def list_payment_methods(
    request: Request,
    record: UserRecord = Depends(get_current_record),
    settings: Settings = Depends(get_settings),
    bold: BoldClient = Depends(get_bold_client),
):
    """Proxy Bold's payment-method listing for the checkout screen."""
    if settings.payments_mode == "mock":
        return {"mode": "mock", "payment_methods": []}
    return await bold.list_payment_methods()
