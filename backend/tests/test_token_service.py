"""
Token issuance and validation.

Verifies:
- issue -> validate round-trips the identity
- expiry at and after expires_at
- wrong secret, tampering and algorithm substitution are rejected
"""

import base64
import json
from datetime import datetime, timedelta

import jwt
import pytest

from warehouse_control.errors import TokenExpired, TokenInvalid
from warehouse_control.models import Role
from warehouse_control.services.token_service import IdentityClaims, issue_token, validate_token

SECRET = "unit-test-secret-" + "0123456789abcdef" * 3
ISSUED = datetime(2025, 3, 1, 12, 0, 0)
TTL = timedelta(hours=2)


def _claims(role=Role.MANAGER):
    return IdentityClaims(user_id=42, username="mike", role=role)


def _b64(data: dict) -> str:
    raw = json.dumps(data, separators=(",", ":")).encode()
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode()


class TestRoundTrip:

    @pytest.mark.parametrize("role", list(Role))
    def test_validate_returns_issued_identity(self, role):
        claims = _claims(role)
        token, stamped = issue_token(claims, SECRET, TTL, now=ISSUED)

        resolved = validate_token(token, SECRET, now=ISSUED + timedelta(minutes=1))

        assert resolved.identity() == claims.identity()
        assert resolved == stamped

    def test_stamps_validity_window(self):
        _, stamped = issue_token(_claims(), SECRET, TTL, now=ISSUED)
        assert stamped.issued_at == ISSUED
        assert stamped.expires_at == ISSUED + TTL
        assert stamped.expires_at > stamped.issued_at

    def test_issue_is_deterministic(self):
        first, _ = issue_token(_claims(), SECRET, TTL, now=ISSUED)
        second, _ = issue_token(_claims(), SECRET, TTL, now=ISSUED)
        assert first == second

    def test_subsecond_clock_is_truncated(self):
        token, stamped = issue_token(_claims(), SECRET, TTL, now=ISSUED.replace(microsecond=987654))
        assert stamped.issued_at == ISSUED
        assert validate_token(token, SECRET, now=ISSUED) == stamped

    def test_non_positive_ttl_rejected(self):
        with pytest.raises(ValueError):
            issue_token(_claims(), SECRET, timedelta(0), now=ISSUED)

    def test_empty_secret_rejected(self):
        with pytest.raises(ValueError):
            issue_token(_claims(), "", TTL, now=ISSUED)


class TestExpiry:

    def test_valid_just_before_expiry(self):
        token, _ = issue_token(_claims(), SECRET, TTL, now=ISSUED)
        validate_token(token, SECRET, now=ISSUED + TTL - timedelta(seconds=1))

    def test_expired_at_exact_instant(self):
        token, _ = issue_token(_claims(), SECRET, TTL, now=ISSUED)
        with pytest.raises(TokenExpired):
            validate_token(token, SECRET, now=ISSUED + TTL)

    def test_expired_after_instant(self):
        token, _ = issue_token(_claims(), SECRET, TTL, now=ISSUED)
        with pytest.raises(TokenExpired):
            validate_token(token, SECRET, now=ISSUED + TTL + timedelta(days=1))

    def test_expired_is_a_token_invalid(self):
        assert issubclass(TokenExpired, TokenInvalid)


class TestRejection:

    def test_wrong_secret(self):
        token, _ = issue_token(_claims(), SECRET, TTL, now=ISSUED)
        with pytest.raises(TokenInvalid) as exc_info:
            validate_token(token, "another-secret-" + "fedcba9876543210" * 3, now=ISSUED)
        assert not isinstance(exc_info.value, TokenExpired)

    def test_tampered_payload(self):
        token, _ = issue_token(_claims(Role.VIEWER), SECRET, TTL, now=ISSUED)
        header, _, signature = token.split(".")
        forged = _b64({
            "sub": "mike", "user_id": 42, "role": "admin",
            "iat": int(ISSUED.timestamp()), "exp": int((ISSUED + TTL).timestamp()),
        })
        with pytest.raises(TokenInvalid):
            validate_token(f"{header}.{forged}.{signature}", SECRET, now=ISSUED)

    def test_alg_none_rejected(self):
        header = _b64({"alg": "none", "typ": "JWT"})
        payload = _b64({"sub": "mike", "user_id": 42, "role": "admin", "iat": 1, "exp": 9999999999})
        with pytest.raises(TokenInvalid):
            validate_token(f"{header}.{payload}.", SECRET, now=ISSUED)

    def test_asymmetric_alg_rejected(self):
        header = _b64({"alg": "RS256", "typ": "JWT"})
        payload = _b64({"sub": "mike", "user_id": 42, "role": "admin", "iat": 1, "exp": 9999999999})
        with pytest.raises(TokenInvalid):
            validate_token(f"{header}.{payload}.c2lnbmF0dXJl", SECRET, now=ISSUED)

    def test_other_hmac_variant_accepted(self):
        payload = {
            "sub": "mike", "user_id": 42, "role": "viewer",
            "iat": int((ISSUED - datetime(1970, 1, 1)).total_seconds()),
            "exp": int((ISSUED + TTL - datetime(1970, 1, 1)).total_seconds()),
        }
        token = jwt.encode(payload, SECRET, algorithm="HS512")
        assert validate_token(token, SECRET, now=ISSUED).role is Role.VIEWER

    def test_unknown_role_rejected(self):
        token = jwt.encode(
            {"sub": "mike", "user_id": 42, "role": "superuser", "iat": 1, "exp": 9999999999},
            SECRET,
            algorithm="HS256",
        )
        with pytest.raises(TokenInvalid):
            validate_token(token, SECRET, now=ISSUED)

    def test_missing_claim_rejected(self):
        token = jwt.encode({"sub": "mike", "role": "admin", "iat": 1, "exp": 9999999999}, SECRET, algorithm="HS256")
        with pytest.raises(TokenInvalid):
            validate_token(token, SECRET, now=ISSUED)

    @pytest.mark.parametrize("garbage", ["", "not-a-token", "a.b.c"])
    def test_garbage_rejected(self, garbage):
        with pytest.raises(TokenInvalid):
            validate_token(garbage, SECRET, now=ISSUED)

    @pytest.mark.parametrize("iat,exp", [
        (1, 10**20),
        (-(10**20), 9999999999),
        (1, 2**63),
    ])
    def test_out_of_range_timestamps_rejected(self, iat, exp):
        token = jwt.encode(
            {"sub": "mike", "user_id": 42, "role": "viewer", "iat": iat, "exp": exp},
            SECRET,
            algorithm="HS256",
        )
        with pytest.raises(TokenInvalid) as exc_info:
            validate_token(token, SECRET, now=ISSUED)
        assert not isinstance(exc_info.value, TokenExpired)
