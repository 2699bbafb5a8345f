"""
Webhook for the payment provider (Bold).
"""
import base64
import hashlib
import hmac
import json
import logging

from fastapi import APIRouter, Depends, Request

from lina.core.config import Settings
from lina.core.errors import InvalidInput
from lina.dependencies.services import get_ledger, get_settings
from lina.services import billing
from lina.services.ledger import AccessLedger

logger = logging.getLogger(__name__)

router = APIRouter()

SIGNATURE_HEADER = "x-bold-signature"


def _verify_bold_signature(payload: bytes, signature_header: str | None, secret: str) -> bool:
    """
    Bold signs the base64 encoding of the raw body with HMAC-SHA256 using the
    merchant's secret key and sends the hex digest in `x-bold-signature`.
    """
    if not signature_header:
        return False
    encoded_body = base64.b64encode(payload)
    expected = hmac.new(secret.encode(), encoded_body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(signature_header.strip().lower(), expected)


@router.post("/bold")
async def bold_webhook(
    request: Request,
    ledger: AccessLedger = Depends(get_ledger),
    settings: Settings = Depends(get_settings),
):
    """
    Bold payment webhook. Register this URL in the Bold dashboard:
    https://your-backend.com/webhooks/bold
    """
    payload = await request.body()

    # Never accept an unsigned event: it could activate a subscription without payment
    if not settings.bold_webhook_secret:
        logger.error("[Bold webhook] BOLD_WEBHOOK_SECRET not configured; rejecting event")
        raise InvalidInput("Invalid webhook signature")
    if not _verify_bold_signature(
        payload, request.headers.get(SIGNATURE_HEADER), settings.bold_webhook_secret
    ):
        logger.warning("[Bold webhook] invalid signature")
        raise InvalidInput("Invalid webhook signature")

    try:
        event = json.loads(payload)
    except ValueError:
        raise InvalidInput("Invalid JSON")
    if not isinstance(event, dict):
        raise InvalidInput("Invalid JSON")

    logger.info("[Bold webhook] type=%s id=%s", event.get("type"), event.get("id"))
    record = billing.apply_payment_event(ledger, settings, event)

    # Always acknowledge so Bold does not retry events we intentionally ignore
    return {"status": "success", "activated": record is not None}
