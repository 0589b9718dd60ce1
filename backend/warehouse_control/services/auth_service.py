# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication Service

WHY: Every item mutation must be attributable to a named user. Passwords are
stored as bcrypt hashes only.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- "No such user" and "wrong password" both raise InvalidCredentials, and
  both pay for one bcrypt check, so neither the response nor its timing
  reveals which usernames exist
- Plaintext passwords are never logged
- Tokens are issued separately (see token_service.py)
"""

from __future__ import annotations

import logging
import re
from functools import lru_cache

import bcrypt

from ..errors import Conflict, InvalidCredentials, InvalidInput, UserNotFound
from ..extensions import db
from ..models import Role, User
from .concurrency import run_with_retry
from .token_service import IdentityClaims

logger = logging.getLogger(__name__)

BCRYPT_ROUNDS = 12


class PasswordValidationError(InvalidInput):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Requirements:
    - Minimum 8 characters
    - At least one letter and one digit
    """
    if len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Za-z]', password):
        raise PasswordValidationError("Password must contain at least one letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")


def hash_password(password: str, *, rounds: int = BCRYPT_ROUNDS) -> str:
    """
    Hash password using bcrypt.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password_hash: str, candidate: str) -> bool:
    """
    Check candidate against a stored bcrypt hash.

    Returns False on mismatch and on a malformed stored hash; a mismatch
    is an answer, not an error.
    """
    if not password_hash or candidate is None:
        return False
    try:
        return bcrypt.checkpw(candidate.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # Stored value is not a bcrypt hash
        return False


@lru_cache(maxsize=1)
def _dummy_hash() -> str:
    return bcrypt.hashpw(b"dummy-password-for-timing", bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode('utf-8')


def fetch_user_by_username(username: str) -> User:
    """Load a user by exact username. Raises UserNotFound."""
    def _op():
        return db.session.query(User).filter(User.username == username).first()

    user = run_with_retry(_op)
    if user is None:
        raise UserNotFound(f"user {username!r} not found")
    return user


def authenticate(username: str, password: str) -> IdentityClaims:
    """
    Authenticate user with username and password.

    Returns unstamped IdentityClaims (no issued_at/expires_at); pass them
    to token_service.issue_token.

    Raises InvalidCredentials for empty input, unknown user or wrong
    password. DatabaseError from the lookup propagates unchanged.
    """
    if not username or not password:
        raise InvalidCredentials("username and password required")

    logger.info("Authenticating user %s", username)

    try:
        user = fetch_user_by_username(username)
    except UserNotFound:
        # Burn the same bcrypt cost as a real check
        verify_password(_dummy_hash(), password)
        logger.warning("Authentication failed for %s", username)
        raise InvalidCredentials("invalid credentials")

    if not verify_password(user.password_hash, password):
        logger.warning("Authentication failed for %s", username)
        raise InvalidCredentials("invalid credentials")

    try:
        role = Role.parse(user.role)
    except ValueError:
        logger.error("User %s has unknown role %r", username, user.role)
        raise InvalidCredentials("invalid credentials")

    logger.info("User %s authenticated with role %s", username, role.value)
    return IdentityClaims(user_id=user.id, username=user.username, role=role)


def list_users() -> list[User]:
    """All users ordered by username."""
    def _op():
        return db.session.query(User).order_by(User.username.asc()).all()

    users = run_with_retry(_op)
    logger.info("Retrieved %d users", len(users))
    return users


def create_user(username: str, password: str, role: Role | str, *, rounds: int = BCRYPT_ROUNDS) -> User:
    """
    Provision a user account. Operator tooling only (CLI and tests);
    the HTTP API exposes no user creation.

    Raises:
        InvalidInput: blank username, weak password or unknown role
        Conflict: username already taken
    """
    username = (username or "").strip()
    if not username:
        raise InvalidInput("username is required")
    try:
        role = Role.parse(role)
    except ValueError as exc:
        raise InvalidInput(str(exc))

    password_hash = hash_password(password, rounds=rounds)

    def _op():
        existing = db.session.query(User).filter(User.username == username).first()
        if existing:
            raise Conflict("Username already exists")
        user = User(username=username, password_hash=password_hash, role=role.value)
        db.session.add(user)
        db.session.commit()
        return user

    return run_with_retry(_op)
