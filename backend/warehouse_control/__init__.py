import logging
import time

from flask import Flask, g, jsonify, request
from werkzeug.exceptions import HTTPException

from .config import Config, validate_config
from .errors import AppError, classify
from .extensions import db, migrate


def configure_logging(app: Flask) -> None:
    # app.logger is the "warehouse_control" logger, so service module
    # loggers propagate into Flask's handler.
    level = getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO)
    app.logger.setLevel(level)


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(AppError)
    def handle_app_error(exc: AppError):
        # Detail goes to the log; the caller only sees the stable code.
        if exc.status_code >= 500:
            app.logger.error("%s on %s %s: %s", exc.code, request.method, request.path, exc, exc_info=exc)
        else:
            app.logger.warning("%s on %s %s: %s", exc.code, request.method, request.path, exc)
        return jsonify({"error": exc.code}), exc.status_code

    @app.errorhandler(HTTPException)
    def handle_http_exception(exc: HTTPException):
        return jsonify({"error": (exc.name or "error").lower().replace(" ", "_")}), exc.code

    @app.errorhandler(Exception)
    def handle_unexpected(exc: Exception):
        app.logger.exception("Unhandled error on %s %s", request.method, request.path)
        db.session.rollback()
        wrapped = classify(exc)
        return jsonify({"error": wrapped.code}), wrapped.status_code


def register_request_logging(app: Flask) -> None:
    @app.before_request
    def log_request_started():
        g.request_started_at = time.perf_counter()
        app.logger.info("Request started %s %s", request.method, request.path)

    @app.after_request
    def log_request_completed(response):
        started = g.get("request_started_at")
        duration_ms = (time.perf_counter() - started) * 1000 if started is not None else 0.0
        app.logger.info(
            "Request completed %s %s -> %s (%.1f ms)",
            request.method, request.path, response.status_code, duration_ms,
        )
        return response


def create_app(config_object=None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config_object or Config)
    validate_config(app.config)

    configure_logging(app)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.items import items_bp
    from .routes.history import history_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(items_bp)
    app.register_blueprint(history_bp)

    register_error_handlers(app)
    register_request_logging(app)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
