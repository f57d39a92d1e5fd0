"""
models/refresh_token.py: RefreshToken table definition.

One row per outstanding refresh token, keyed by the jti that is also
embedded in both JWTs of the pair. Rows are deleted on rotation and on
logout; expired rows are removed by `flask prune-tokens`.

FK policy: user_id ON DELETE CASCADE: tokens go with their user.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from checklist.app.clock import utcnow
from checklist.app.extensions import db


class RefreshToken(db.Model):
    __tablename__ = "refresh_tokens"

    id: Mapped[int] = mapped_column(primary_key=True)

    # At most one live record per jti.
    jti: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        unique=True,
    )

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    # ── Relationships ──────────────────────────────────────────────────────

    user: Mapped["User"] = relationship(  # noqa: F821
        "User",
        back_populates="refresh_tokens",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<RefreshToken id={self.id} "
            f"jti={self.jti!r} "
            f"user_id={self.user_id}>"
        )
