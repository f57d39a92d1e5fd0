"""
services/blacklist_service.py: revocation list of token identifiers.

A blacklisted jti rejects every token carrying it, regardless of signature
validity, until the row is pruned after its own expiry.

No Flask imports. Commits are the route's responsibility: only flush here.
"""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from checklist.app.clock import utcnow
from checklist.app.errors import AppError, ErrorCode
from checklist.app.models.blacklisted_token import BlacklistedToken

logger = logging.getLogger(__name__)


def is_blacklisted(jti: str, session: Session) -> bool:
    found = session.execute(
        select(BlacklistedToken.id).where(BlacklistedToken.jti == jti)
    ).first()
    return found is not None


def blacklist_token(jti: str, expires_at: datetime, session: Session) -> None:
    """
    Records `jti` as revoked until `expires_at`.

    Idempotent: an existing row for the jti, including one inserted by a
    concurrent request, counts as success.

    Raises:
      AppError(BLACKLIST_FAILED, 500): any other persistence error.
    """
    try:
        if is_blacklisted(jti, session):
            logger.info("Token jti=%s already blacklisted.", jti)
            return

        # Savepoint: a lost race must not undo earlier work in the request.
        with session.begin_nested():
            session.add(BlacklistedToken(jti=jti, expires_at=expires_at))
            session.flush()
    except IntegrityError:
        # Lost the race against another insert of the same jti.
        logger.info("Token jti=%s already blacklisted.", jti)
        return
    except SQLAlchemyError as exc:
        logger.error("Failed to blacklist token jti=%s: %s", jti, exc)
        raise AppError(
            ErrorCode.BLACKLIST_FAILED,
            "Failed to blacklist token.",
            500,
        )

    logger.info("Token jti=%s blacklisted until %s.", jti, expires_at.isoformat())


def purge_expired(session: Session, now: datetime | None = None) -> int:
    """Deletes blacklist rows whose expiry has passed. Returns the row count."""
    cutoff = now or utcnow()
    result = session.execute(
        delete(BlacklistedToken).where(BlacklistedToken.expires_at <= cutoff)
    )
    session.flush()
    return result.rowcount
