"""
models/list_member.py: ListMember junction table definition.

The list owner is inserted here when the list is created, but ownership
itself lives on lists.owner_user_id; neither column implies the other.

FK policy: list_id ON DELETE CASCADE (memberships go with the list);
user_id ON DELETE RESTRICT.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from checklist.app.clock import utcnow
from checklist.app.extensions import db


class ListMember(db.Model):
    __tablename__ = "list_members"

    __table_args__ = (
        # A user can only belong to a list once.
        UniqueConstraint("user_id", "list_id", name="uq_list_members_user_list"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    list_id: Mapped[int] = mapped_column(
        ForeignKey("lists.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    # ── Relationships ──────────────────────────────────────────────────────

    user: Mapped["User"] = relationship("User")  # noqa: F821

    todo_list: Mapped["TodoList"] = relationship(  # noqa: F821
        "TodoList",
        back_populates="memberships",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<ListMember id={self.id} "
            f"user_id={self.user_id} "
            f"list_id={self.list_id}>"
        )
