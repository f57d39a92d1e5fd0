"""
services/user_service.py: account business logic.

Responsibilities:
  - Registration and credential validation
  - Profile reads and updates
  - Password changes

Token issuance lives in token_service; routes call it after a successful
signup or login so the two concerns stay independently testable.

Layer rules:
  - No use of flask.request, flask.g, or HTTP status codes beyond AppError.
  - current_app.config is read ONLY for BCRYPT_LOG_ROUNDS.
  - Commits are the route's responsibility: only flush here.

Password storage:
  - Hashed with bcrypt (cost factor from config BCRYPT_LOG_ROUNDS)
  - Raw password is never stored, never logged
"""

from __future__ import annotations

import logging

import bcrypt
from flask import current_app
from sqlalchemy import select
from sqlalchemy.orm import Session

from checklist.app.errors import AppError, ErrorCode
from checklist.app.models.user import User, UserStatus

logger = logging.getLogger(__name__)


# ── Private helpers ────────────────────────────────────────────────────────

def _hash_password(password: str) -> str:
    rounds = current_app.config.get("BCRYPT_LOG_ROUNDS", 12)
    return bcrypt.hashpw(
        password.encode("utf-8"),
        bcrypt.gensalt(rounds=rounds),
    ).decode("utf-8")


def _check_password(password: str, password_hash: str) -> bool:
    return bcrypt.checkpw(
        password.encode("utf-8"),
        password_hash.encode("utf-8"),
    )


def _find_by_email(email: str, session: Session) -> User | None:
    return session.execute(
        select(User).where(User.email == email)
    ).scalar_one_or_none()


def _find_by_username(username: str, session: Session) -> User | None:
    return session.execute(
        select(User).where(User.username == username)
    ).scalar_one_or_none()


def _get_user_or_404(user_id: int, session: Session) -> User:
    user = session.get(User, user_id)
    if user is None:
        raise AppError(
            ErrorCode.USER_NOT_FOUND,
            f"User {user_id} not found.",
            404,
        )
    return user


def build_user_dict(user: User) -> dict:
    """Serialises a User to a plain dict. The password hash is never included."""
    status = user.status.value if isinstance(user.status, UserStatus) else user.status
    return {
        "id": user.id,
        "email": user.email,
        "username": user.username,
        "profile_picture": user.profile_picture,
        "bio": user.bio,
        "status": status,
    }


# ── Public service functions ───────────────────────────────────────────────

def register_user(
        email: str,
        username: str,
        password: str,
        session: Session,
) -> User:
    """
    Creates a new user account.

    Raises:
      AppError(DUPLICATE_EMAIL, 409)   : email already registered
      AppError(DUPLICATE_USERNAME, 409): username already taken
    """
    email = email.strip().lower()
    username = username.strip()

    if _find_by_email(email, session) is not None:
        raise AppError(
            ErrorCode.DUPLICATE_EMAIL,
            f"The email address '{email}' is already registered.",
            409,
            field="email",
        )

    if _find_by_username(username, session) is not None:
        raise AppError(
            ErrorCode.DUPLICATE_USERNAME,
            f"The username '{username}' is already taken.",
            409,
            field="username",
        )

    user = User(
        email=email,
        username=username,
        password_hash=_hash_password(password),
    )
    session.add(user)
    session.flush()  # populate user.id before tokens are issued

    logger.info("Registered user %s.", user.id)
    return user


def login_user(email: str, password: str, session: Session) -> User:
    """
    Validates credentials.

    Raises:
      AppError(INVALID_CREDENTIALS, 401): email not found or password wrong.
      Uses the same error for both to avoid account enumeration.
    """
    user = _find_by_email(email.strip().lower(), session)

    if user is None or not _check_password(password, user.password_hash):
        raise AppError(
            ErrorCode.INVALID_CREDENTIALS,
            "Invalid email or password.",
            401,
        )

    return user


def get_user(user_id: int, session: Session) -> User:
    """
    Raises:
      AppError(USER_NOT_FOUND, 404): user_id from the token no longer exists.
    """
    return _get_user_or_404(user_id, session)


def update_profile(
        user_id: int,
        session: Session,
        bio: str | None = None,
        status: str | None = None,
        username: str | None = None,
) -> User:
    """
    Applies the provided profile fields; omitted (None) fields are untouched.

    Raises:
      AppError(USER_NOT_FOUND, 404)
      AppError(DUPLICATE_USERNAME, 409): new username belongs to someone else
    """
    user = _get_user_or_404(user_id, session)

    if username is not None:
        username = username.strip()
        existing = _find_by_username(username, session)
        if existing is not None and existing.id != user.id:
            raise AppError(
                ErrorCode.DUPLICATE_USERNAME,
                f"The username '{username}' is already taken.",
                409,
                field="new_username",
            )
        user.username = username

    if bio is not None:
        user.bio = bio

    if status is not None:
        user.status = UserStatus(status)

    session.flush()
    return user


def change_password(
        user_id: int,
        current_password: str,
        new_password: str,
        session: Session,
) -> None:
    """
    Raises:
      AppError(USER_NOT_FOUND, 404)
      AppError(INVALID_CREDENTIALS, 401): current password is wrong
    """
    user = _get_user_or_404(user_id, session)

    if not _check_password(current_password, user.password_hash):
        raise AppError(
            ErrorCode.INVALID_CREDENTIALS,
            "Current password is incorrect.",
            401,
            field="current_password",
        )

    user.password_hash = _hash_password(new_password)
    session.flush()
    logger.info("Password changed for user %s.", user_id)
