"""
models/user.py: User table definition.

No business logic. No imports from services or routes.
The password hash is never serialised; services build response dicts
field by field.
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, Enum, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from checklist.app.clock import utcnow
from checklist.app.extensions import db


class UserStatus(str, enum.Enum):
    IDLE     = "idle"
    FOCUSING = "focusing"
    BUSY     = "busy"


class User(db.Model):
    __tablename__ = "users"

    __table_args__ = (
        CheckConstraint(
            "LENGTH(TRIM(username)) > 0",
            name="ck_users_username_nonempty",
        ),
        CheckConstraint(
            "email LIKE '%@%'",
            name="ck_users_email_format",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    # Stored lowercased and trimmed by the service layer.
    email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        unique=True,
    )

    username: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        unique=True,
    )

    password_hash: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    # Relative path of an uploaded picture; uploads are handled elsewhere.
    profile_picture: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        default=None,
    )

    bio: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default="",
        server_default="",
    )

    status: Mapped[UserStatus] = mapped_column(
        Enum(
            UserStatus,
            name="user_status_enum",
            values_callable=lambda members: [m.value for m in members],
            validate_strings=True,
        ),
        nullable=False,
        default=UserStatus.IDLE,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )

    # ── Relationships ──────────────────────────────────────────────────────

    refresh_tokens: Mapped[list["RefreshToken"]] = relationship(  # noqa: F821
        "RefreshToken",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    owned_lists: Mapped[list["TodoList"]] = relationship(  # noqa: F821
        "TodoList",
        back_populates="owner",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<User id={self.id} username={self.username!r}>"
