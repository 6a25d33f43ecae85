"""
RequestContext — who is asking and with which role.

Role extraction works on any "request-like" object: a starlette Request
adapted through `GuardRequest.from_request`, a GuardRequest built by hand,
or plain objects/dicts in tests. Sources, first match wins:

1. ``Authorization: Bearer <token>`` (see dispo.auth.tokens)
2. ``session.user.role``
3. ``user.role`` (trusted internal callers and tests)

A bearer header whose token cannot be decoded resolves to no role at all;
it does not fall through to the session or user sources.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from dispo.auth.permissions import Permission, check_permission
from dispo.auth.tokens import MalformedTokenError, decode_bearer_token

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "
ANONYMOUS_ACTOR = "Anonymous"
ANONYMOUS_ROLE = "anonymous"
UNKNOWN_ACTOR = "Unknown User"


def _field(obj: Any, name: str) -> Any:
    """Read `name` from a mapping or an attribute object."""
    if obj is None:
        return None
    if isinstance(obj, Mapping):
        return obj.get(name)
    return getattr(obj, name, None)


def _authorization_header(request: Any) -> str | None:
    headers = _field(request, "headers")
    if not headers:
        return None
    value = headers.get("authorization")
    if value is None:
        value = headers.get("Authorization")
    return value


@dataclass
class GuardRequest:
    """Minimal request-like object understood by the guards."""

    headers: Mapping[str, str] = field(default_factory=dict)
    session: Any = None
    user: Any = None
    role: str | None = None

    @classmethod
    def from_request(cls, request: Any) -> GuardRequest:
        """Adapt a starlette Request (session from scope, user from state)."""
        return cls(
            headers=request.headers,
            session=request.scope.get("session"),
            user=getattr(request.state, "user", None),
        )


def _bearer_claims(request: Any) -> dict | None:
    """Decoded bearer claims; {} for a malformed token, None without one."""
    auth_header = _authorization_header(request)
    if not auth_header or not auth_header.startswith(BEARER_PREFIX):
        return None
    token = auth_header[len(BEARER_PREFIX):]
    try:
        return decode_bearer_token(token)
    except MalformedTokenError as e:
        logger.debug("Bearer token rejected: %s", e)
        return {}


def extract_role(request: Any) -> str | None:
    """Resolve the caller's claimed role, or None."""
    claims = _bearer_claims(request)
    if claims is not None:
        role = claims.get("role")
        return role if isinstance(role, str) and role else None

    session_user = _field(_field(request, "session"), "user")
    if session_user is not None:
        return _field(session_user, "role") or None

    user = _field(request, "user")
    role = _field(user, "role")
    if role:
        return role

    return None


def _display_name(user: Any) -> str:
    return (
        _field(user, "email")
        or _field(user, "name")
        or _field(user, "id")
        or UNKNOWN_ACTOR
    )


@dataclass
class RequestContext:
    role: str = ANONYMOUS_ROLE
    actor: str = ANONYMOUS_ACTOR

    @property
    def is_authenticated(self) -> bool:
        return self.role != ANONYMOUS_ROLE

    def has_permission(self, perm: Permission) -> bool:
        return self.is_authenticated and check_permission(perm, self.role)

    def as_dict(self) -> dict[str, str]:
        return {"actor": self.actor, "role": self.role}


def get_user_context(request: Any) -> RequestContext:
    """Build the audit-facing user context (actor label + role)."""
    role = extract_role(request)
    if not role:
        return RequestContext()

    actor = UNKNOWN_ACTOR
    user = _field(request, "user")
    session_user = _field(_field(request, "session"), "user")
    if user:
        actor = str(_display_name(user))
    elif session_user:
        actor = str(_display_name(session_user))
    else:
        claims = _bearer_claims(request) or {}
        actor = str(claims.get("email") or claims.get("name") or claims.get("sub") or UNKNOWN_ACTOR)

    return RequestContext(role=role, actor=actor)
