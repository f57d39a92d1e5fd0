"""
middleware/auth_middleware.py: cookie-based JWT authentication decorators.

@require_auth (access guard), one request:
  1. Reads the access token cookie                 → TOKEN_MISSING (401)
  2. Verifies signature and expiry                 → TOKEN_EXPIRED / TOKEN_INVALID (401)
  3. Rejects a blacklisted jti                     → TOKEN_REVOKED (401)
  4. Attaches user_id, token_jti, token_exp to flask.g

@require_refresh_token (refresh validation), one request:
  1. Reads the refresh token cookie                → REFRESH_TOKEN_MISSING (401)
  2. Verifies signature and expiry                 → REFRESH_TOKEN_INVALID (401)
  3. Rejects a blacklisted jti                     → REFRESH_TOKEN_INVALID (401)
  4. Requires a live refresh_tokens row            → REFRESH_TOKEN_INVALID (401)
  5. Requires the user to still exist              → REFRESH_TOKEN_INVALID (401)
  6. Attaches user and refresh_jti to flask.g

Neither decorator mutates anything. Authorization (owner/member) is the job
of middleware/authorize.py; 403 is never raised here.
"""

from __future__ import annotations

import functools
import logging
from typing import Callable

import jwt
from flask import current_app, g, request

from checklist.app.clock import as_utc, utcnow
from checklist.app.errors import AppError, ErrorCode
from checklist.app.extensions import db
from checklist.app.models.user import User
from checklist.app.services import blacklist_service, token_service

logger = logging.getLogger(__name__)


def require_auth(f: Callable) -> Callable:
    """
    Route decorator that enforces access token authentication.

    Usage:
        @lists_bp.route("/", methods=["GET"])
        @require_auth
        def get_lists():
            user_id = g.user_id  # always an int when this runs
            ...
    """
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        _authenticate_request()
        return f(*args, **kwargs)

    return decorated


def require_refresh_token(f: Callable) -> Callable:
    """Route decorator that validates the refresh token cookie before rotation."""
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        _validate_refresh_request()
        return f(*args, **kwargs)

    return decorated


def _parse_subject(claims: dict) -> int:
    try:
        return int(claims["sub"])
    except (KeyError, TypeError, ValueError):
        raise jwt.InvalidTokenError("The 'sub' claim is not a valid user ID.")


def _authenticate_request() -> None:
    """
    Runs the access guard and sets flask.g.user_id.

    Separated from the decorator wrapper so tests can call it directly inside
    a test request context.
    """
    raw_token = request.cookies.get(current_app.config["ACCESS_TOKEN_COOKIE"])

    if not raw_token:
        logger.warning("Access token missing.")
        raise AppError(
            ErrorCode.TOKEN_MISSING,
            "Access token is missing.",
            401,
        )

    try:
        claims = token_service.decode_token(raw_token, token_service.ACCESS)
        user_id = _parse_subject(claims)
    except jwt.ExpiredSignatureError:
        logger.warning("Expired access token rejected.")
        raise AppError(
            ErrorCode.TOKEN_EXPIRED,
            "The access token has expired. Use POST /api/v1/tokens/refresh-token to obtain a new one.",
            401,
        )
    except jwt.InvalidTokenError as exc:
        logger.warning("Invalid access token rejected: %s", exc)
        raise AppError(
            ErrorCode.TOKEN_INVALID,
            "The access token is invalid or has been tampered with.",
            401,
        )

    jti = claims["jti"]
    if blacklist_service.is_blacklisted(jti, db.session):
        logger.warning("Blacklisted access token jti=%s rejected.", jti)
        raise AppError(
            ErrorCode.TOKEN_REVOKED,
            "The access token has been revoked.",
            401,
        )

    g.user_id = user_id
    g.token_jti = jti
    g.token_exp = token_service.claims_expiry(claims)


def _validate_refresh_request() -> None:
    """Runs refresh validation and sets flask.g.user and flask.g.refresh_jti."""
    raw_token = request.cookies.get(current_app.config["REFRESH_TOKEN_COOKIE"])

    if not raw_token:
        logger.warning("Refresh token missing.")
        raise AppError(
            ErrorCode.REFRESH_TOKEN_MISSING,
            "Refresh token is missing.",
            401,
        )

    try:
        claims = token_service.decode_token(raw_token, token_service.REFRESH)
        user_id = _parse_subject(claims)
    except jwt.InvalidTokenError as exc:
        logger.warning("Invalid refresh token rejected: %s", exc)
        raise _invalid_refresh()

    jti = claims["jti"]
    session = db.session

    if blacklist_service.is_blacklisted(jti, session):
        logger.warning("Blacklisted refresh token jti=%s rejected.", jti)
        raise _invalid_refresh()

    record = token_service.find_refresh_record(jti, session)
    if (
        record is None
        or record.user_id != user_id
        or as_utc(record.expires_at) <= utcnow()
    ):
        logger.warning("Expired or unknown refresh token jti=%s rejected.", jti)
        raise _invalid_refresh()

    user = session.get(User, user_id)
    if user is None:
        logger.warning("Refresh token jti=%s references missing user %s.", jti, user_id)
        raise _invalid_refresh()

    g.user = user
    g.refresh_jti = jti


def _invalid_refresh() -> AppError:
    return AppError(
        ErrorCode.REFRESH_TOKEN_INVALID,
        "The refresh token is invalid, expired, or has been revoked.",
        401,
    )
