"""
services/token_service.py: token issuance, rotation and verification.

Token design:
  - One random jti (UUID4) per issued pair. The access token and the refresh
    token carry the same {sub, jti}; the jti is also the key of the
    refresh_tokens row, so revoking a jti revokes the whole pair.
  - Access token: JWT, HS256, 15 min TTL, signed with ACCESS_TOKEN_SECRET.
  - Refresh token: JWT, HS256, 7 day TTL, signed with REFRESH_TOKEN_SECRET.

Rotation deletes the old refresh_tokens row and then issues a new pair.
Both statements run in the caller's transaction (the route commits), so the
delete and the insert land together or not at all. Two requests racing on
the same jti: only one DELETE removes a row, the other sees rowcount 0 and
fails with REFRESH_TOKEN_INVALID.

current_app.config is read for secrets and TTLs only. Commits are the
route's job; this module only flushes.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

import jwt
from flask import current_app
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from checklist.app.clock import utcnow
from checklist.app.errors import AppError, ErrorCode
from checklist.app.models.refresh_token import RefreshToken

logger = logging.getLogger(__name__)

ACCESS = "access"
REFRESH = "refresh"


# ── Private helpers ────────────────────────────────────────────────────────

def _generate_jti() -> str:
    return str(uuid.uuid4())


def _secret_for(kind: str) -> str:
    if kind == ACCESS:
        return current_app.config["ACCESS_TOKEN_SECRET"]
    return current_app.config["REFRESH_TOKEN_SECRET"]


def _ttl_for(kind: str):
    if kind == ACCESS:
        return current_app.config["JWT_ACCESS_TOKEN_EXPIRES"]
    return current_app.config["JWT_REFRESH_TOKEN_EXPIRES"]


def _encode(user_id: int, jti: str, kind: str, now: datetime) -> str:
    payload = {
        "sub": str(user_id),
        "jti": jti,
        "iat": now,
        "exp": now + _ttl_for(kind),
    }
    return jwt.encode(
        payload,
        _secret_for(kind),
        algorithm=current_app.config.get("JWT_ALGORITHM", "HS256"),
    )


# ── Public service functions ───────────────────────────────────────────────

def decode_token(raw_token: str, kind: str) -> dict:
    """
    Verifies signature and expiry of an access or refresh token and returns
    its claims. `sub` and `jti` are required.

    Raises the PyJWT exception unchanged (ExpiredSignatureError,
    InvalidTokenError); callers map them to their own error codes.
    """
    return jwt.decode(
        raw_token,
        _secret_for(kind),
        algorithms=[current_app.config.get("JWT_ALGORITHM", "HS256")],
        options={"require": ["exp", "sub", "jti"]},
    )


def claims_expiry(claims: dict) -> datetime:
    """The `exp` claim of a decoded token as an aware UTC datetime."""
    return datetime.fromtimestamp(int(claims["exp"]), tz=timezone.utc)


def issue_tokens(user_id: int, session: Session) -> dict:
    """
    Mints an access/refresh pair sharing a fresh jti and records the refresh
    token.

    Raises:
      AppError(TOKEN_GENERATION_CONFLICT, 409): the jti already exists.
        Not retried here; the caller decides.
      AppError(TOKEN_GENERATION_FAILED, 500)  : any other persistence error.

    Returns: {"access_token": "...", "refresh_token": "..."}
    """
    jti = _generate_jti()
    now = utcnow()
    access_token = _encode(user_id, jti, ACCESS, now)
    refresh_token = _encode(user_id, jti, REFRESH, now)

    record = RefreshToken(
        jti=jti,
        user_id=user_id,
        expires_at=now + _ttl_for(REFRESH),
    )
    try:
        with session.begin_nested():
            session.add(record)
            session.flush()
    except IntegrityError:
        logger.warning("Refresh token with jti %s already exists.", jti)
        raise AppError(
            ErrorCode.TOKEN_GENERATION_CONFLICT,
            "Token generation failed due to a duplicate token identifier.",
            409,
        )
    except SQLAlchemyError as exc:
        logger.error("Failed to persist refresh token: %s", exc)
        raise AppError(
            ErrorCode.TOKEN_GENERATION_FAILED,
            "Failed to generate tokens.",
            500,
        )

    logger.info("Issued token pair jti=%s for user %s.", jti, user_id)
    return {
        "access_token": access_token,
        "refresh_token": refresh_token,
    }


def rotate_tokens(old_jti: str, user_id: int, session: Session) -> dict:
    """
    Consumes the refresh token identified by `old_jti` and issues a new pair.

    Raises:
      AppError(REFRESH_TOKEN_INVALID, 401): no row was deleted (already
        rotated, pruned or never issued). Nothing new is issued.
      Any error from issue_tokens().
    """
    result = session.execute(
        delete(RefreshToken).where(RefreshToken.jti == old_jti)
    )
    if result.rowcount == 0:
        logger.warning("Rotation rejected: refresh token jti %s not found.", old_jti)
        raise AppError(
            ErrorCode.REFRESH_TOKEN_INVALID,
            "The refresh token is invalid, expired, or has already been used.",
            401,
        )
    session.flush()

    logger.info("Refresh token jti=%s consumed for user %s.", old_jti, user_id)
    return issue_tokens(user_id, session)


def find_refresh_record(jti: str, session: Session) -> RefreshToken | None:
    return session.execute(
        select(RefreshToken).where(RefreshToken.jti == jti)
    ).scalar_one_or_none()


def revoke_refresh_record(jti: str, session: Session) -> bool:
    """Deletes the refresh_tokens row for `jti`. Returns True if one existed."""
    result = session.execute(
        delete(RefreshToken).where(RefreshToken.jti == jti)
    )
    session.flush()
    return result.rowcount > 0


def purge_expired_refresh_tokens(session: Session, now: datetime | None = None) -> int:
    """Deletes refresh_tokens rows past their expiry. Returns the row count."""
    cutoff = now or utcnow()
    result = session.execute(
        delete(RefreshToken).where(RefreshToken.expires_at <= cutoff)
    )
    session.flush()
    return result.rowcount
