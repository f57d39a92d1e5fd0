"""
models/blacklisted_token.py: revoked token identifiers.

Keyed by jti only, with no foreign key to users: a row revokes every token
carrying that jti, access or refresh. expires_at mirrors the revoked token's
own expiry so the row can be pruned once the token could no longer verify.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from checklist.app.clock import utcnow
from checklist.app.extensions import db


class BlacklistedToken(db.Model):
    __tablename__ = "blacklisted_tokens"

    id: Mapped[int] = mapped_column(primary_key=True)

    jti: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        unique=True,
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

    def __repr__(self) -> str:  # pragma: no cover
        return f"<BlacklistedToken jti={self.jti!r} expires_at={self.expires_at}>"
