# Overview: Retry policy for persistence calls and error classification at the storage seam.

from __future__ import annotations

import logging
import time

from flask import current_app, has_app_context
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from ..errors import AppError, DatabaseError
from ..extensions import db

logger = logging.getLogger(__name__)


def _retry_settings() -> tuple[int, float]:
    if has_app_context():
        return (
            current_app.config.get("DB_RETRY_ATTEMPTS", 3),
            current_app.config.get("DB_RETRY_BACKOFF", 0.1),
        )
    return 3, 0.1


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float | None = None):
    """
    Execute a DB operation with retry on transient failures.

    Retries on OperationalError (locks, dropped connections). Other
    SQLAlchemy failures are not retried. Once attempts are exhausted, or on
    a non-retryable SQLAlchemyError, the session is rolled back and a
    DatabaseError is raised with the original exception as its cause.
    Classified AppErrors raised by func propagate unchanged.

    No locking: two concurrent updates to the same row race and the last
    commit wins.
    """
    default_attempts, default_backoff = _retry_settings()
    attempts = attempts or default_attempts
    backoff_base = default_backoff if backoff_base is None else backoff_base

    for attempt in range(attempts):
        try:
            return func()
        except AppError:
            db.session.rollback()
            raise
        except OperationalError as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                logger.error("Database operation failed after %d attempts", attempts)
                raise DatabaseError("operational error") from exc
            logger.warning("Transient database error, retrying (attempt %d/%d)", attempt + 1, attempts)
            time.sleep(backoff_base * (2 ** attempt))
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise DatabaseError(type(exc).__name__) from exc
