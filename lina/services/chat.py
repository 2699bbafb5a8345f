import logging
from dataclasses import dataclass
from typing import Optional

from lina.core.config import Settings
from lina.core.errors import InvalidInput, UpstreamError
from lina.core.topics import build_system_prompt, normalize_user_text, resolve_topic
from lina.models.user_record import UserRecord
from lina.services.completion import CompletionRelay
from lina.services.gate import Denied, Gate
from lina.services.identity import IdentityIssuer
from lina.services.ledger import AccessLedger

logger = logging.getLogger(__name__)

EMPTY_MESSAGE = "Escribe algo para empezar. 😊"


@dataclass(frozen=True)
class ChatResult:
    reply: str
    record: UserRecord
    token: str


class ChatService:
    """
    Runs one protected chat turn:
    admit -> validate -> charge (metered only) -> relay -> refund on failure -> reissue token.

    The charge happens inside the Ledger's critical section before the relay
    call; the relay call itself never runs while the Ledger is locked. A failed
    or empty completion refunds the charge, so only answered questions count.
    A client disconnect does not refund.
    """

    def __init__(
        self,
        gate: Gate,
        ledger: AccessLedger,
        issuer: IdentityIssuer,
        relay: CompletionRelay,
        settings: Settings,
    ):
        self.gate = gate
        self.ledger = ledger
        self.issuer = issuer
        self.relay = relay
        self.settings = settings

    async def ask(self, token: Optional[str], message: Optional[str], topic: Optional[str] = None) -> ChatResult:
        admission = self.gate.admit(token)
        if isinstance(admission, Denied):
            raise admission.to_error()

        user_text = normalize_user_text(message, self.settings.max_message_chars)
        if not user_text:
            raise InvalidInput(EMPTY_MESSAGE)

        identity = admission.identity
        record = admission.record
        charged = False
        if admission.metered:
            # Raises QuotaExhausted if a concurrent request took the last question
            record = self.ledger.consume_one(identity, self.settings.free_question_limit)
            charged = not record.is_subscribed()

        try:
            reply = await self.relay.complete(build_system_prompt(topic), user_text)
        except Exception as e:
            if charged:
                self.ledger.refund_one(identity)
                logger.info("Refunded one question to %s after relay failure", identity)
            if isinstance(e, UpstreamError):
                logger.error(
                    "Completion relay failed for %s (rate_limited=%s): %s",
                    identity, e.rate_limited, e.detail,
                )
                raise
            logger.exception("Unexpected completion relay error for %s", identity)
            raise UpstreamError(detail=str(e)) from e

        record = self.ledger.get(identity) or record
        logger.info(
            "Answered %s (topic=%s, metered=%s, used=%s)",
            identity, resolve_topic(topic), charged, record.used_count,
        )
        return ChatResult(reply=reply, record=record, token=self.issuer.issue_token(record))
