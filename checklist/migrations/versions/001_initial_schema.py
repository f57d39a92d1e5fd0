"""Initial schema: all tables, enums, constraints, and indexes.

Revision: 001_initial_schema
Created:  2026-10-19

Append-only:
  This file must NEVER be edited after it has been applied to any database.
  If a schema change is required, create a NEW migration file.

Creation order:
  1. PostgreSQL enum type for users.status
  2. Tables in FK dependency order (users → refresh_tokens, blacklisted_tokens
     → lists → list_members → items)
  3. Indexes

ON DELETE policies:
  refresh_tokens.user_id    → CASCADE   (session rows owned by user)
  lists.owner_user_id       → RESTRICT  (cannot delete a user who owns lists)
  list_members.user_id      → RESTRICT
  list_members.list_id      → CASCADE   (memberships owned by list)
  items.list_id             → CASCADE   (items owned by list)

blacklisted_tokens has no FK: a revoked jti outlives its refresh row.
Expired refresh and blacklist rows are removed by `flask prune-tokens`.
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# ── Alembic revision identifiers ──────────────────────────────────────────
revision: str = "001_initial_schema"
down_revision: str | None = None      # first migration: no parent
branch_labels: tuple | None = None
depends_on: tuple | None = None


def _timestamp(name: str, nullable: bool = False) -> sa.Column:
    if nullable:
        return sa.Column(name, sa.DateTime(timezone=True), nullable=True)
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("NOW()"),
    )


def upgrade() -> None:
    """Apply the full initial schema."""

    # ── Step 1: enum type ─────────────────────────────────────────────────
    op.execute("""
        CREATE TYPE user_status_enum AS ENUM ('idle', 'focusing', 'busy')
    """)

    # ── Step 2: users ──────────────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("username", sa.String(50), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("profile_picture", sa.String(255), nullable=True),
        sa.Column("bio", sa.Text(), nullable=False, server_default=""),
        sa.Column(
            "status",
            sa.Enum("idle", "focusing", "busy", name="user_status_enum", create_type=False),
            nullable=False,
            server_default="idle",
        ),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("id", name="pk_users"),
        sa.UniqueConstraint("username", name="uq_users_username"),
        sa.UniqueConstraint("email", name="uq_users_email"),
        sa.CheckConstraint(
            "LENGTH(TRIM(username)) > 0",
            name="ck_users_username_nonempty",
        ),
        sa.CheckConstraint(
            "email LIKE '%@%'",
            name="ck_users_email_format",
        ),
    )

    # ── Step 3: refresh_tokens ─────────────────────────────────────────────
    # One row per live session; keyed by the shared access/refresh jti.
    op.create_table(
        "refresh_tokens",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("jti", sa.String(64), nullable=False),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE", name="fk_refresh_tokens_user"),
            nullable=False,
        ),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id", name="pk_refresh_tokens"),
        sa.UniqueConstraint("jti", name="uq_refresh_tokens_jti"),
    )

    # ── Step 4: blacklisted_tokens ─────────────────────────────────────────
    op.create_table(
        "blacklisted_tokens",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("jti", sa.String(64), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id", name="pk_blacklisted_tokens"),
        sa.UniqueConstraint("jti", name="uq_blacklisted_tokens_jti"),
    )

    # ── Step 5: lists ──────────────────────────────────────────────────────
    # deleted_at IS NULL = live; non-null = in the owner's trash.
    op.create_table(
        "lists",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "owner_user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="RESTRICT", name="fk_lists_owner"),
            nullable=False,
        ),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column(
            "is_archived",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("FALSE"),
        ),
        _timestamp("deleted_at", nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("id", name="pk_lists"),
        sa.CheckConstraint(
            "LENGTH(TRIM(title)) > 0",
            name="ck_lists_title_nonempty",
        ),
    )

    # ── Step 6: list_members ───────────────────────────────────────────────
    op.create_table(
        "list_members",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="RESTRICT", name="fk_list_members_user"),
            nullable=False,
        ),
        sa.Column(
            "list_id",
            sa.Integer(),
            sa.ForeignKey("lists.id", ondelete="CASCADE", name="fk_list_members_list"),
            nullable=False,
        ),
        _timestamp("joined_at"),
        sa.PrimaryKeyConstraint("id", name="pk_list_members"),
        sa.UniqueConstraint("user_id", "list_id", name="uq_list_members_user_list"),
    )

    # ── Step 7: items ──────────────────────────────────────────────────────
    op.create_table(
        "items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "list_id",
            sa.Integer(),
            sa.ForeignKey("lists.id", ondelete="CASCADE", name="fk_items_list"),
            nullable=False,
        ),
        sa.Column("item_text", sa.String(500), nullable=False),
        sa.Column(
            "is_resolved",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("FALSE"),
        ),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("id", name="pk_items"),
        sa.CheckConstraint(
            "LENGTH(TRIM(item_text)) > 0",
            name="ck_items_text_nonempty",
        ),
    )

    # ── Step 8: indexes ────────────────────────────────────────────────────
    op.create_index("ix_refresh_tokens_user_id", "refresh_tokens", ["user_id"])
    op.create_index("ix_refresh_tokens_expires_at", "refresh_tokens", ["expires_at"])
    op.create_index("ix_blacklisted_tokens_expires_at", "blacklisted_tokens", ["expires_at"])
    op.create_index("ix_lists_owner_user_id", "lists", ["owner_user_id"])
    op.create_index("ix_lists_is_archived", "lists", ["is_archived"])
    op.create_index("ix_list_members_user_id", "list_members", ["user_id"])
    op.create_index("ix_list_members_list_id", "list_members", ["list_id"])
    op.create_index("ix_items_list_id", "items", ["list_id"])


def downgrade() -> None:
    """Drop everything in reverse dependency order."""
    op.drop_table("items")
    op.drop_table("list_members")
    op.drop_table("lists")
    op.drop_table("blacklisted_tokens")
    op.drop_table("refresh_tokens")
    op.drop_table("users")
    op.execute("DROP TYPE IF EXISTS user_status_enum")
