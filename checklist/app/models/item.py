"""
models/item.py: checklist item table definition.

An item belongs to exactly one list. FK policy: list_id ON DELETE CASCADE.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from checklist.app.clock import utcnow
from checklist.app.extensions import db


class Item(db.Model):
    __tablename__ = "items"

    __table_args__ = (
        CheckConstraint(
            "LENGTH(TRIM(item_text)) > 0",
            name="ck_items_text_nonempty",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    list_id: Mapped[int] = mapped_column(
        ForeignKey("lists.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    item_text: Mapped[str] = mapped_column(
        String(500),
        nullable=False,
    )

    is_resolved: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default="false",
        index=True,
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

    todo_list: Mapped["TodoList"] = relationship(  # noqa: F821
        "TodoList",
        back_populates="items",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Item id={self.id} list_id={self.list_id} resolved={self.is_resolved}>"
