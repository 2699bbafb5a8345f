"""
Gate: per-request admission decision.

States are evaluated in order:
  1. unauthenticated   token missing / malformed / bad signature / expired
  2. unknown identity  valid token, no Ledger record
  3. subscribed        admitted, unmetered
  4. trial available   admitted, metered
  5. exhausted         denied, payment required

The decision is always re-derived from the Ledger; the counters embedded in the
token are never trusted. The Gate only authorizes: charging happens through
AccessLedger.consume_one() and the model is called by the chat service.
"""
import logging
from dataclasses import dataclass
from typing import Optional, Union

from lina.core.config import Settings
from lina.core.errors import LinaError, QuotaExhausted, Unauthenticated
from lina.models.user_record import UserRecord
from lina.services.ledger import AccessLedger
from lina.utils.auth import verify_token

logger = logging.getLogger(__name__)

REASON_UNAUTHENTICATED = "unauthenticated"
REASON_QUOTA_EXHAUSTED = "quota_exhausted"


@dataclass(frozen=True)
class Allowed:
    identity: str
    metered: bool
    record: UserRecord


@dataclass(frozen=True)
class Denied:
    reason: str
    identity: Optional[str] = None

    def to_error(self) -> LinaError:
        if self.reason == REASON_QUOTA_EXHAUSTED:
            return QuotaExhausted()
        return Unauthenticated()


Admission = Union[Allowed, Denied]


class Gate:
    def __init__(self, ledger: AccessLedger, settings: Settings):
        self.ledger = ledger
        self.settings = settings

    def authenticate(self, token: Optional[str]) -> Optional[str]:
        """Return the token's identity, or None if the token is not acceptable."""
        payload = verify_token(token or "", self.settings.jwt_secret, self.settings.jwt_algorithm)
        if not payload:
            return None
        return payload["sub"]

    def resolve(self, identity: str) -> Optional[UserRecord]:
        record = self.ledger.get(identity)
        if record is None and self.settings.auto_provision_unknown:
            # Provisioned with the trial already used up: no free quota is granted
            logger.warning("Gate: auto-provisioning unknown identity %s with zero quota", identity)
            record = self.ledger.ensure(identity, used_count=self.settings.free_question_limit)
        return record

    def admit(self, token: Optional[str]) -> Admission:
        identity = self.authenticate(token)
        if identity is None:
            return Denied(REASON_UNAUTHENTICATED)

        record = self.resolve(identity)
        if record is None:
            logger.warning("Gate: valid token for unknown identity %s", identity)
            return Denied(REASON_UNAUTHENTICATED, identity)

        if record.is_subscribed():
            return Allowed(identity, metered=False, record=record)

        if record.used_count < self.settings.free_question_limit:
            return Allowed(identity, metered=True, record=record)

        logger.info("Gate: quota exhausted for %s", identity)
        return Denied(REASON_QUOTA_EXHAUSTED, identity)
