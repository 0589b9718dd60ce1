# Overview: Access control gate; bearer extraction, token authorization, role checks.

"""
Access Control Gate

Two guards, applied in order:
1. authorize: a valid token must be presented, or Unauthorized.
2. authorize_role: the resolved role must be in the operation's allow-list,
   or Forbidden.

Role checks are plain set membership. admin does not inherit manager or
viewer allowances; every operation lists its roles explicitly.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime

from ..errors import Forbidden, TokenExpired, TokenInvalid, Unauthorized
from ..models import Role
from .token_service import IdentityClaims, validate_token

logger = logging.getLogger(__name__)

BEARER_SCHEME = "Bearer"


def extract_bearer_token(auth_header: str | None) -> str:
    """Return the token from an 'Authorization: Bearer <token>' header value."""
    if not auth_header:
        raise Unauthorized("missing authorization header")

    parts = auth_header.split(" ")
    if len(parts) != 2 or parts[0] != BEARER_SCHEME or not parts[1]:
        raise Unauthorized("malformed authorization header")

    return parts[1]


def authorize(token: str | None, secret: str, now: datetime | None = None) -> IdentityClaims:
    """
    Resolve a token into claims.

    Any token failure surfaces as Unauthorized; the TokenInvalid or
    TokenExpired that caused it stays attached for logging.
    """
    if not token:
        raise Unauthorized("missing token")
    try:
        return validate_token(token, secret, now=now)
    except TokenExpired as exc:
        logger.info("Rejected expired token")
        raise Unauthorized("token expired") from exc
    except TokenInvalid as exc:
        logger.warning("Rejected invalid token: %s", exc)
        raise Unauthorized("token invalid") from exc


def authorize_role(claims: IdentityClaims | None, allowed_roles: Iterable[Role | str]) -> None:
    """Raise Forbidden unless claims.role is one of allowed_roles."""
    if claims is None:
        raise Unauthorized("no identity")

    allowed = {Role.parse(r) for r in allowed_roles}
    if claims.role not in allowed:
        logger.warning(
            "Access forbidden for user=%s role=%s (allowed: %s)",
            claims.username,
            claims.role.value,
            ",".join(sorted(r.value for r in allowed)),
        )
        raise Forbidden(f"role {claims.role.value} not permitted")
