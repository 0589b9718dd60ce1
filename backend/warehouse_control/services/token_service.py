# Overview: Signed identity tokens; issuance and validation.

"""
Stateless Identity Tokens

Tokens are HS256-signed JWTs carrying IdentityClaims. There is no
server-side session store: a token is valid exactly when its signature
verifies under the configured secret and the clock is before expires_at.

Lifecycle: Issued -> Valid -> Expired | Invalid

SECURITY NOTES:
- Only the HMAC family is accepted on validation. A token whose header
  advertises "none" or an asymmetric algorithm is rejected before any
  claim is trusted.
- Tokens cannot be revoked. A leaked token stays usable until it expires,
  so keep JWT_EXP_HOURS short.
- Timestamps are whole seconds (JWT NumericDate).
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timedelta

import jwt

from ..errors import TokenExpired, TokenInvalid
from ..models import Role
from ..time_utils import from_epoch_seconds, to_epoch_seconds, to_naive_utc, to_utc_z, utcnow


SIGNING_ALGORITHM = "HS256"
ACCEPTED_ALGORITHMS = ("HS256", "HS384", "HS512")
REQUIRED_CLAIMS = ("sub", "user_id", "role", "iat", "exp")


@dataclass(frozen=True)
class IdentityClaims:
    """
    Identity + role + validity window carried inside a token.

    issued_at / expires_at are None until the claims are stamped by
    issue_token (as returned by authenticate).
    """
    user_id: int
    username: str
    role: Role
    issued_at: datetime | None = None
    expires_at: datetime | None = None

    def identity(self) -> tuple[int, str, Role]:
        """The claims minus the timing fields."""
        return self.user_id, self.username, self.role

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "username": self.username,
            "role": self.role.value,
            "issued_at": to_utc_z(self.issued_at),
            "expires_at": to_utc_z(self.expires_at),
        }


def stamp_claims(claims: IdentityClaims, ttl: timedelta, now: datetime | None = None) -> IdentityClaims:
    """Set issued_at = now and expires_at = now + ttl, truncated to seconds."""
    if ttl <= timedelta(0):
        raise ValueError("ttl must be positive")
    issued = from_epoch_seconds(to_epoch_seconds(now or utcnow()))
    expires = from_epoch_seconds(to_epoch_seconds(issued + ttl))
    return replace(claims, issued_at=issued, expires_at=expires)


def issue_token(
    claims: IdentityClaims,
    secret: str,
    ttl: timedelta,
    now: datetime | None = None,
) -> tuple[str, IdentityClaims]:
    """
    Sign claims and return (token, stamped_claims).

    Deterministic for identical claims, secret, ttl and clock.
    """
    if not secret:
        raise ValueError("signing secret is required")

    stamped = stamp_claims(claims, ttl, now)
    payload = {
        "sub": stamped.username,
        "user_id": stamped.user_id,
        "role": Role.parse(stamped.role).value,
        "iat": to_epoch_seconds(stamped.issued_at),
        "exp": to_epoch_seconds(stamped.expires_at),
    }
    token = jwt.encode(payload, secret, algorithm=SIGNING_ALGORITHM)
    return token, stamped


def validate_token(token: str, secret: str, now: datetime | None = None) -> IdentityClaims:
    """
    Verify token and return its claims.

    Raises TokenExpired when now >= expires_at, TokenInvalid for every
    other failure (bad signature, wrong algorithm, malformed or missing
    claims, unknown role).
    """
    if not token or not secret:
        raise TokenInvalid("token or secret missing")

    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=list(ACCEPTED_ALGORITHMS),
            # Time checks run below against the injectable clock.
            options={"verify_exp": False, "verify_iat": False, "require": list(REQUIRED_CLAIMS)},
        )
    except jwt.InvalidTokenError as exc:
        raise TokenInvalid(type(exc).__name__) from exc

    try:
        user_id = payload["user_id"]
        username = payload["sub"]
        if isinstance(user_id, bool) or not isinstance(user_id, int):
            raise ValueError("user_id must be an integer")
        if not isinstance(username, str) or not username:
            raise ValueError("sub must be a non-empty string")
        role = Role.parse(payload["role"])
        issued_at = from_epoch_seconds(payload["iat"])
        expires_at = from_epoch_seconds(payload["exp"])
    except (TypeError, ValueError, OverflowError, OSError) as exc:
        raise TokenInvalid("malformed claims") from exc

    if expires_at <= issued_at:
        raise TokenInvalid("expires_at must be after issued_at")

    current = to_naive_utc(now) if now is not None else utcnow()
    if current >= expires_at:
        raise TokenExpired("token expired")

    return IdentityClaims(
        user_id=user_id,
        username=username,
        role=role,
        issued_at=issued_at,
        expires_at=expires_at,
    )
