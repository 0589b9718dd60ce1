"""
Application wiring: startup config validation, health, error rendering
and the retry wrapper.
"""

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from warehouse_control import create_app
from warehouse_control.config import MIN_JWT_SECRET_BYTES, ConfigError, TestConfig, validate_config
from warehouse_control.errors import (
    AppError,
    Conflict,
    DatabaseError,
    InternalError,
    InvalidInput,
    classify,
)
from warehouse_control.services.concurrency import run_with_retry


def _config(**overrides):
    values = {"JWT_SECRET": "s3cret-" + "x" * 32, "JWT_EXP_HOURS": 24, "DB_RETRY_ATTEMPTS": 3}
    values.update(overrides)
    return values


class TestValidateConfig:

    def test_valid(self):
        validate_config(_config())

    @pytest.mark.parametrize("secret", [None, "", "   "])
    def test_missing_secret(self, secret):
        with pytest.raises(ConfigError):
            validate_config(_config(JWT_SECRET=secret))

    @pytest.mark.parametrize("hours", [0, -1, "24", 1.5, True])
    def test_bad_expiry(self, hours):
        with pytest.raises(ConfigError):
            validate_config(_config(JWT_EXP_HOURS=hours))

    @pytest.mark.parametrize("secret", ["short", "x" * 31, "\u00e9" * 15])
    def test_short_secret(self, secret):
        with pytest.raises(ConfigError):
            validate_config(_config(JWT_SECRET=secret))

    def test_minimum_length_secret_accepted(self):
        validate_config(_config(JWT_SECRET="k" * MIN_JWT_SECRET_BYTES))
        validate_config(_config(JWT_SECRET=TestConfig.JWT_SECRET))

    def test_bad_retry_attempts(self):
        with pytest.raises(ConfigError):
            validate_config(_config(DB_RETRY_ATTEMPTS=0))

    def test_create_app_refuses_empty_secret(self):
        class NoSecret(TestConfig):
            JWT_SECRET = ""

        with pytest.raises(ConfigError):
            create_app(NoSecret)


class TestHealth:

    def test_healthy(self, client, db_session):
        response = client.get('/health')
        assert response.status_code == 200
        data = response.get_json()
        assert data["status"] == "healthy"
        assert data["checks"]["database"]["status"] == "healthy"


class TestErrorRendering:

    def test_unknown_route_is_json(self, client, db_session):
        response = client.get('/api/nowhere')
        assert response.status_code == 404
        assert response.get_json() == {"error": "not_found"}

    def test_wrong_method_is_json(self, client, db_session):
        response = client.delete('/api/items')
        assert response.status_code == 405
        assert response.get_json() == {"error": "method_not_allowed"}

    def test_classify_passes_app_errors_through(self):
        err = Conflict("dup")
        assert classify(err) is err

    def test_classify_wraps_unknown(self):
        cause = KeyError("boom")
        wrapped = classify(cause)
        assert isinstance(wrapped, InternalError)
        assert wrapped.__cause__ is cause
        assert wrapped.status_code == 500

    def test_message_defaults_to_code(self):
        assert str(InvalidInput()) == "invalid_input"
        assert issubclass(InvalidInput, AppError)


class TestRunWithRetry:

    def test_returns_result(self, app):
        assert run_with_retry(lambda: 42) == 42

    def test_retries_operational_errors(self, app):
        calls = []

        def flaky():
            calls.append(1)
            if len(calls) < 3:
                raise OperationalError("SELECT 1", {}, Exception("database is locked"))
            return "ok"

        assert run_with_retry(flaky, attempts=3, backoff_base=0) == "ok"
        assert len(calls) == 3

    def test_gives_up_after_attempts(self, app):
        def always_locked():
            raise OperationalError("SELECT 1", {}, Exception("database is locked"))

        with pytest.raises(DatabaseError) as exc_info:
            run_with_retry(always_locked, attempts=2, backoff_base=0)
        assert isinstance(exc_info.value.__cause__, OperationalError)

    def test_integrity_error_not_retried(self, app):
        calls = []

        def broken():
            calls.append(1)
            raise IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed"))

        with pytest.raises(DatabaseError):
            run_with_retry(broken, attempts=5, backoff_base=0)
        assert len(calls) == 1

    def test_app_errors_propagate_unchanged(self, app):
        def not_found():
            raise Conflict("taken")

        with pytest.raises(Conflict):
            run_with_retry(not_found, attempts=3, backoff_base=0)
