"""
models/todo_list.py: shared list table definition.

Lifecycle columns:
  is_archived: hidden from non-owners in the default listing
  deleted_at : soft delete; NULL while the list is live

FK policy: owner_user_id ON DELETE RESTRICT: a user who owns a list cannot
be deleted until the list is removed.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from checklist.app.clock import utcnow
from checklist.app.extensions import db


class TodoList(db.Model):
    __tablename__ = "lists"

    __table_args__ = (
        CheckConstraint(
            "LENGTH(TRIM(title)) > 0",
            name="ck_lists_title_nonempty",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    owner_user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    title: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    is_archived: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default="false",
        index=True,
    )

    deleted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        default=None,
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

    owner: Mapped["User"] = relationship(  # noqa: F821
        "User",
        back_populates="owned_lists",
        foreign_keys=[owner_user_id],
    )

    memberships: Mapped[list["ListMember"]] = relationship(  # noqa: F821
        "ListMember",
        back_populates="todo_list",
        cascade="all, delete-orphan",
        order_by="ListMember.joined_at",
    )

    items: Mapped[list["Item"]] = relationship(  # noqa: F821
        "Item",
        back_populates="todo_list",
        cascade="all, delete-orphan",
        order_by="Item.created_at",
    )

    @property
    def member_ids(self) -> set[int]:
        return {m.user_id for m in self.memberships}

    def __repr__(self) -> str:  # pragma: no cover
        return f"<TodoList id={self.id} title={self.title!r}>"
