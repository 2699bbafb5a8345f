import logging
from typing import Optional

from fastapi import Depends, Header

from lina.core.errors import Unauthenticated
from lina.dependencies.services import get_gate
from lina.models.user_record import UserRecord
from lina.services.gate import Gate

logger = logging.getLogger(__name__)

INVALID_TOKEN_VALUES = ("null", "undefined", "none", "")


def get_bearer_token(authorization: Optional[str] = Header(None)) -> Optional[str]:
    """
    Extract the raw token from 'Authorization: Bearer <token>'.
    Returns None for anything else; the Gate turns that into a 401.
    """
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer":
        logger.info("[AUTH] Rejected authorization scheme %r", scheme)
        return None
    token = token.strip()
    # Reject common invalid token values sent by front-ends
    if token.lower() in INVALID_TOKEN_VALUES:
        return None
    # JWT must have header.payload.signature structure
    if len(token.split(".")) != 3:
        logger.info("[AUTH] Invalid token format: expected 3 parts")
        return None
    return token


def get_current_record(
    token: Optional[str] = Depends(get_bearer_token),
    gate: Gate = Depends(get_gate),
) -> UserRecord:
    """Authenticated Ledger record for endpoints that do not consume quota."""
    identity = gate.authenticate(token)
    if identity is None:
        raise Unauthenticated()
    record = gate.resolve(identity)
    if record is None:
        raise Unauthenticated()
    return record
