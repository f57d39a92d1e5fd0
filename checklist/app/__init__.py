"""
app/__init__.py: Flask application factory.

Pattern: create_app(config_name) creates and returns a configured Flask app.
         Nothing is initialised at import time, which enables:
           - Multiple isolated test app instances
           - Clean separation between app creation and app startup
           - Alembic to import the metadata without starting the server

Responsibilities:
  1. Load configuration from config_by_name[config_name]
  2. Configure the `checklist` logger
  3. Initialise SQLAlchemy via init_app()
  4. Register all route blueprints under /api/v1
  5. Register global error handlers (AppError → JSON envelope, Exception → 500)
  6. Rate limiting, CORS and security headers
  7. The `prune-tokens` CLI command

Note on model imports:
  All model classes are imported inside create_app() so that SQLAlchemy's
  metadata is populated before Alembic or db.create_all() inspects it.
"""

from __future__ import annotations

import logging
import os

import click
from flask import Flask, jsonify, request
from marshmallow import ValidationError
from werkzeug.exceptions import HTTPException

from checklist.config import config_by_name, validate_production_config

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

logger = logging.getLogger(__name__)


# ── Application factory ────────────────────────────────────────────────────

def create_app(config_name: str | None = None) -> Flask:
    """
    Creates and returns a configured Flask application instance.

    Args:
        config_name: One of "development", "testing", "production".
                     Falls back to FLASK_ENV, then "development".

    Returns:
        A fully configured Flask app ready to serve requests.
    """
    config_name = config_name or os.getenv("FLASK_ENV", "development")

    app = Flask(__name__)

    # ── Configuration ──────────────────────────────────────────────────────
    config_class = config_by_name.get(config_name, config_by_name["development"])
    app.config.from_object(config_class)

    if config_name == "production":
        validate_production_config(app)  # raises ValueError if misconfigured

    _configure_logging(app)

    # ── Extensions ─────────────────────────────────────────────────────────
    # Import here (not at module top) to avoid circular imports.
    from checklist.app.extensions import db
    db.init_app(app)

    # ── Model registration ─────────────────────────────────────────────────
    with app.app_context():
        from checklist.app.models import (  # noqa: F401
            blacklisted_token,
            item,
            list_member,
            refresh_token,
            todo_list,
            user,
        )

    from checklist.app.middleware.rate_limiter import init_rate_limiter
    init_rate_limiter(app)

    _register_blueprints(app)
    _register_error_handlers(app)
    _register_response_headers(app)
    _register_cli(app)

    logger.debug("Application created with %s config.", config_name)
    return app


def _configure_logging(app: Flask) -> None:
    """One stream handler on the package logger; module loggers propagate to it."""
    package_logger = logging.getLogger("checklist")
    package_logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    if not package_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        package_logger.addHandler(handler)


def _register_blueprints(app: Flask) -> None:
    """
    Registers all route blueprints under the /api/v1 prefix.

    The url_prefix is set here so individual route files only specify
    the path relative to their resource (e.g. "/" and "/<int:list_id>").
    """
    from checklist.app.routes.items import items_bp
    from checklist.app.routes.lists import lists_bp
    from checklist.app.routes.tokens import tokens_bp
    from checklist.app.routes.users import users_bp

    app.register_blueprint(users_bp,  url_prefix="/api/v1/users")
    app.register_blueprint(tokens_bp, url_prefix="/api/v1/tokens")
    app.register_blueprint(lists_bp,  url_prefix="/api/v1/lists")
    # items_bp owns both /lists/<id>/items and /items/<id>.
    app.register_blueprint(items_bp,  url_prefix="/api/v1")


def _log_handled_error(status_code: int, message: str) -> None:
    line = "%s - %s - %s - %s - %s"
    args = (status_code, message, request.method, request.path, request.remote_addr)
    if status_code >= 500:
        logger.error(line, *args)
    else:
        logger.warning(line, *args)


def _first_validation_error(messages) -> tuple[str | None, str]:
    """
    Returns (field, message) for the first error in a marshmallow messages
    structure. Nested entries (list indexes, nested schemas) are followed
    down to their first leaf.
    """
    field = None
    current = messages
    while isinstance(current, (dict, list)):
        if not current:
            return field, "Invalid input."
        if isinstance(current, dict):
            key, current = next(iter(current.items()))
            if field is None and key != "_schema":
                field = str(key)
        else:
            current = current[0]
    return field, str(current)


def _register_error_handlers(app: Flask) -> None:
    """
    Registers global error handlers.

    Handlers:
      AppError        → structured envelope with the error's own status
      ValidationError → first field error as MISSING_FIELD / INVALID_FIELD (400)
      HTTPException   → envelope carrying werkzeug's status (404, 405, ...)
      Exception       → generic INTERNAL_ERROR (500); traceback logged only

    Stack traces never leave the server.
    """
    from checklist.app.errors import AppError, ErrorCode
    from checklist.app.extensions import db

    @app.errorhandler(AppError)
    def handle_app_error(error: AppError):
        """
        Converts an AppError raised anywhere in the request lifecycle
        (middleware, service, route) into the standard error envelope.

        Routes never catch AppError: they let it propagate here.
        """
        _log_handled_error(error.http_status, error.message)
        return jsonify(error.to_dict()), error.http_status

    @app.errorhandler(ValidationError)
    def handle_validation_error(error: ValidationError):
        """Returns only the first error, keyed to the offending field."""
        field, message = _first_validation_error(error.messages)

        if message.startswith("Missing data for required field"):
            code = ErrorCode.MISSING_FIELD
            message = f"'{field}' is required." if field else message
        else:
            code = ErrorCode.INVALID_FIELD

        return handle_app_error(AppError(code, message, 400, field=field))

    @app.errorhandler(HTTPException)
    def handle_http_exception(error: HTTPException):
        code = ErrorCode.NOT_FOUND if error.code == 404 else ErrorCode.BAD_REQUEST
        return handle_app_error(AppError(code, error.description, error.code or 500))

    @app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception):
        """
        Catches all unhandled exceptions and returns a generic 500 response.

        The session is rolled back so the request's partial writes are
        discarded before the scoped session is removed.
        """
        db.session.rollback()
        logger.exception("Unhandled exception: %s", error)
        return handle_app_error(AppError(
            ErrorCode.INTERNAL_ERROR,
            "An unexpected error occurred. Please try again later.",
            500,
        ))


def _register_response_headers(app: Flask) -> None:
    """
    Security headers on every response, and CORS for the configured
    frontend origin only. Credentials are allowed because the tokens travel
    as cookies.
    """

    @app.after_request
    def add_headers(response):
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "no-referrer"

        origin = request.headers.get("Origin")
        if origin and origin == app.config["CORS_ORIGIN"]:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Access-Control-Allow-Credentials"] = "true"
            response.headers["Access-Control-Allow-Methods"] = "GET, POST, PATCH, DELETE, OPTIONS"
            response.headers["Access-Control-Allow-Headers"] = "Content-Type"
            response.headers["Vary"] = "Origin"

        return response


def _register_cli(app: Flask) -> None:
    from checklist.app.extensions import db
    from checklist.app.services import blacklist_service, token_service

    @app.cli.command("prune-tokens")
    def prune_tokens():
        """Delete expired refresh-token and blacklist rows."""
        refresh_count = token_service.purge_expired_refresh_tokens(db.session)
        blacklist_count = blacklist_service.purge_expired(db.session)
        db.session.commit()
        click.echo(
            f"Pruned {refresh_count} refresh token(s) and "
            f"{blacklist_count} blacklisted token(s)."
        )
