"""Bearer token decoding.

Two token formats are understood:

- development tokens: base64(JSON) carrying at least a ``role`` claim, with no
  signature. These are a placeholder and are refused in production config.
- signed tokens: HS256 JWTs verified against ``settings.secret_key``,
  including expiry. Enabled with ``TOKEN_VERIFICATION=true``.
"""

import base64
import binascii
import json
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from dispo.config import settings

ALGORITHM = "HS256"


class MalformedTokenError(ValueError):
    """The bearer token could not be decoded into a claims object."""


def encode_dev_token(claims: dict) -> str:
    """Build an unsigned development token (base64 of the JSON claims)."""
    return base64.b64encode(json.dumps(claims).encode("utf-8")).decode("ascii")


def decode_dev_token(token: str) -> dict:
    """Decode an unsigned development token. Raises MalformedTokenError."""
    try:
        raw = base64.b64decode(token, validate=True)
        claims = json.loads(raw.decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, ValueError) as exc:
        raise MalformedTokenError(str(exc)) from exc
    if not isinstance(claims, dict):
        raise MalformedTokenError("Token payload is not an object")
    return claims


def create_access_token(user_id: str, email: str, role: str) -> str:
    """Create a signed, short-lived access token."""
    expire = datetime.now(timezone.utc) + timedelta(minutes=settings.access_token_expire_minutes)
    payload = {
        "sub": str(user_id),
        "email": email,
        "role": role,
        "exp": expire,
        "type": "access",
    }
    return jwt.encode(payload, settings.secret_key, algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict:
    """Verify a signed access token. Raises MalformedTokenError on failure."""
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[ALGORITHM])
    except JWTError as exc:
        raise MalformedTokenError(str(exc)) from exc
    if payload.get("type") != "access":
        raise MalformedTokenError("Invalid token type")
    return payload


def decode_bearer_token(token: str) -> dict:
    """Decode a bearer token according to the configured verification mode."""
    if settings.token_verification:
        return decode_access_token(token)
    return decode_dev_token(token)
