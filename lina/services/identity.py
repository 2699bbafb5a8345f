"""
Identity Issuer: turns an email into a stable identity and a signed access token.

Identity contract:
    normalized = email.strip().lower()
    identity   = "u_" + sha256(normalized).hexdigest()[:32]

Registration is idempotent: a known identity keeps its counters and only gets a
fresh token.
"""
import hashlib
import logging
import re
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from lina.core.config import Settings
from lina.core.errors import InvalidInput
from lina.models.user_record import UserRecord
from lina.services.ledger import AccessLedger
from lina.utils.auth import create_access_token
from lina.utils.disposable_email import EmailBlocklist

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
IDENTITY_PREFIX = "u_"
IDENTITY_HASH_CHARS = 32

INVALID_EMAIL_MESSAGE = "Escribe un correo válido, por ejemplo nombre@dominio.com."
DISPOSABLE_EMAIL_MESSAGE = (
    "No se permiten correos temporales o desechables. "
    "Usa un correo permanente para registrarte."
)


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def derive_identity(email: str) -> str:
    digest = hashlib.sha256(normalize_email(email).encode("utf-8")).hexdigest()
    return IDENTITY_PREFIX + digest[:IDENTITY_HASH_CHARS]


@dataclass(frozen=True)
class Registration:
    identity: str
    token: str
    record: UserRecord


class IdentityIssuer:
    def __init__(self, ledger: AccessLedger, settings: Settings, blocklist: Optional[EmailBlocklist] = None):
        self.ledger = ledger
        self.settings = settings
        if blocklist is None:
            if settings.block_disposable_emails:
                blocklist = EmailBlocklist.from_file(settings.disposable_email_blocklist or None)
            else:
                blocklist = EmailBlocklist()
        self.blocklist = blocklist

    def validate_email(self, email: str) -> str:
        """Return the normalized email or raise InvalidInput."""
        normalized = normalize_email(email if isinstance(email, str) else "")
        if not EMAIL_PATTERN.match(normalized):
            raise InvalidInput(INVALID_EMAIL_MESSAGE)
        if self.blocklist.is_blocked(normalized):
            logger.info("Registration rejected: blocked domain for %s", derive_identity(normalized))
            raise InvalidInput(DISPOSABLE_EMAIL_MESSAGE)
        return normalized

    def register(self, email: str) -> Registration:
        normalized = self.validate_email(email)
        identity = derive_identity(normalized)
        record = self.ledger.ensure(identity, email=normalized)
        logger.info("Registered identity %s (used=%s)", identity, record.used_count)
        return Registration(identity=identity, token=self.issue_token(record), record=record)

    def issue_token(self, record: UserRecord) -> str:
        """Sign a token carrying a snapshot of the record's current state."""
        state = record.state(self.settings.free_question_limit)
        claims = {
            "sub": record.identity,
            "used": state["used"],
            "remaining": state["remaining"],
            "quota": state["quota"],
            "subscribed": state["subscribed"],
            "plan": state["plan"],
            "subscription_expires_at": state["subscription_expires_at"],
        }
        return create_access_token(
            claims,
            self.settings.jwt_secret,
            algorithm=self.settings.jwt_algorithm,
            expires_delta=timedelta(minutes=self.settings.access_token_expire_minutes),
        )
