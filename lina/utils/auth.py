from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import jwt, JWTError

TOKEN_TYPE_ACCESS = "access"


def create_access_token(
    data: dict,
    secret: str,
    algorithm: str = "HS256",
    expires_delta: Optional[timedelta] = None,
) -> str:
    to_encode = data.copy()
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=30))
    to_encode.update({"iat": now, "exp": expire, "type": TOKEN_TYPE_ACCESS})
    return jwt.encode(to_encode, secret, algorithm=algorithm)


def verify_token(token: str, secret: str, algorithm: str = "HS256") -> Optional[dict]:
    """
    Verify signature and expiry of an access token.
    Returns the payload if valid, None otherwise.
    """
    if not token or not secret:
        return None
    try:
        payload = jwt.decode(token, secret, algorithms=[algorithm])
    except JWTError:
        return None
    if payload.get("type") != TOKEN_TYPE_ACCESS or not payload.get("sub"):
        return None
    return payload
