"""
Subscription activation from payment events.

Checkout references carry the identity so the webhook can find the account:
    LINA-<identity>-<epoch_ms>
"""
import logging
import time
from typing import Optional

from lina.core.config import Settings
from lina.models.user_record import UserRecord
from lina.services.ledger import AccessLedger

logger = logging.getLogger(__name__)

REFERENCE_PREFIX = "LINA"
APPROVED_EVENT_TYPES = ("SALE_APPROVED",)
APPROVED_STATUSES = ("approved",)


def build_reference(identity: str, now_ms: Optional[int] = None) -> str:
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"{REFERENCE_PREFIX}-{identity}-{now_ms}"


def parse_reference(reference: Optional[str]) -> Optional[str]:
    """Return the identity encoded in a checkout reference, or None."""
    if not reference or not isinstance(reference, str):
        return None
    parts = reference.strip().split("-")
    if len(parts) != 3 or parts[0] != REFERENCE_PREFIX or not parts[1]:
        return None
    if not parts[2].isdigit():
        return None
    return parts[1]


def extract_reference(event: dict) -> Optional[str]:
    # Bold payload shape: {"type": "...", "data": {"metadata": {"reference": "..."}}}
    data = event.get("data") or {}
    if not isinstance(data, dict):
        data = {}
    metadata = data.get("metadata") or {}
    if not isinstance(metadata, dict):
        metadata = {}
    return metadata.get("reference") or data.get("reference") or event.get("reference")


def extract_payer_email(event: dict) -> Optional[str]:
    data = event.get("data") if isinstance(event.get("data"), dict) else {}
    payer = data.get("payer") if isinstance(data.get("payer"), dict) else {}
    return payer.get("email") or data.get("payer_email")


def is_approved(event: dict) -> bool:
    event_type = (event.get("type") or "").upper()
    if event_type in APPROVED_EVENT_TYPES:
        return True
    data = event.get("data") if isinstance(event.get("data"), dict) else {}
    status = (event.get("status") or data.get("status") or "").lower()
    return status in APPROVED_STATUSES


def activate(ledger: AccessLedger, settings: Settings, identity: str) -> UserRecord:
    record = ledger.activate_subscription(identity, settings.subscription_days)
    logger.info(
        "Subscription activated for %s until %s",
        identity, record.subscription_expiry.isoformat() if record.subscription_expiry else None,
    )
    return record


def apply_payment_event(ledger: AccessLedger, settings: Settings, event: dict) -> Optional[UserRecord]:
    """
    Activate the subscription referenced by an approved payment event.
    Returns the updated record, or None when the event is ignored.
    """
    event_type = event.get("type")
    reference = extract_reference(event)
    identity = parse_reference(reference)

    if not is_approved(event):
        logger.info("[Bold webhook] ignoring type=%s reference=%s", event_type, reference)
        return None
    if identity is None:
        # Fallback: resolve by payer email from the Bold payload
        record = ledger.find_by_email(extract_payer_email(event) or "")
        if record is None:
            logger.warning("[Bold webhook] approved event with unparseable reference %r", reference)
            return None
        identity = record.identity
    if ledger.get(identity) is None:
        logger.warning("[Bold webhook] approved event for unknown identity %s", identity)
        return None
    return activate(ledger, settings, identity)
