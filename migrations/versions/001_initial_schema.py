"""Initial schema.

Revision ID: 001
Revises: None
Create Date: 2026-10-19

Users, catalog, tasks with their responses and replies, notifications,
moderation history and ads.
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.VARCHAR(), nullable=False),
        sa.Column("email", sa.VARCHAR(), nullable=False),
        sa.Column("username", sa.VARCHAR(), nullable=False),
        sa.Column("password_hash", sa.VARCHAR(), nullable=False),
        sa.Column("name", sa.VARCHAR(), nullable=True),
        sa.Column("role", sa.VARCHAR(), nullable=False, server_default="BOTH"),
        sa.Column("avatar_url", sa.VARCHAR(), nullable=True),
        sa.Column("description", sa.VARCHAR(), nullable=True),
        sa.Column("price_from", sa.INTEGER(), nullable=True),
        sa.Column("telegram", sa.VARCHAR(), nullable=True),
        sa.Column("whatsapp", sa.VARCHAR(), nullable=True),
        sa.Column("email_contact", sa.VARCHAR(), nullable=True),
        sa.Column("created_at", sa.DATETIME(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_username", "users", ["username"], unique=True)
    op.create_index("ix_users_role", "users", ["role"])
    op.create_index("ix_users_created_at", "users", ["created_at"])

    op.create_table(
        "categories",
        sa.Column("id", sa.VARCHAR(), nullable=False),
        sa.Column("name", sa.VARCHAR(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
    )

    op.create_table(
        "tags",
        sa.Column("id", sa.VARCHAR(), nullable=False),
        sa.Column("name", sa.VARCHAR(), nullable=False),
        sa.Column("category_id", sa.VARCHAR(), nullable=False),
        sa.ForeignKeyConstraint(["category_id"], ["categories.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_tags_category_id", "tags", ["category_id"])

    op.create_table(
        "user_tags",
        sa.Column("user_id", sa.VARCHAR(), nullable=False),
        sa.Column("tag_id", sa.VARCHAR(), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["tag_id"], ["tags.id"]),
        sa.PrimaryKeyConstraint("user_id", "tag_id"),
    )
    op.create_index("ix_user_tags_tag_id", "user_tags", ["tag_id"])

    op.create_table(
        "tasks",
        sa.Column("id", sa.VARCHAR(), nullable=False),
        sa.Column("user_id", sa.VARCHAR(), nullable=False),
        sa.Column("marketplace", sa.VARCHAR(), nullable=False),
        sa.Column("category_id", sa.VARCHAR(), nullable=False),
        sa.Column("title", sa.VARCHAR(), nullable=False),
        sa.Column("description", sa.VARCHAR(), nullable=False),
        sa.Column("budget", sa.INTEGER(), nullable=True),
        sa.Column("budget_type", sa.VARCHAR(), nullable=False, server_default="FIXED"),
        sa.Column("status", sa.VARCHAR(), nullable=False, server_default="OPEN"),
        sa.Column("moderation_status", sa.VARCHAR(), nullable=False, server_default="PENDING"),
        sa.Column("moderation_comment", sa.VARCHAR(), nullable=True),
        sa.Column("moderated_at", sa.DATETIME(), nullable=True),
        sa.Column("moderated_by", sa.VARCHAR(), nullable=True),
        sa.Column("created_in_mode", sa.VARCHAR(), nullable=False, server_default="SELLER"),
        sa.Column("images", sa.VARCHAR(), nullable=True),
        sa.Column("created_at", sa.DATETIME(), nullable=False),
        sa.Column("updated_at", sa.DATETIME(), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["category_id"], ["categories.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_tasks_user_id", "tasks", ["user_id"])
    op.create_index("ix_tasks_category_id", "tasks", ["category_id"])
    op.create_index("ix_tasks_status", "tasks", ["status"])
    op.create_index(
        "ix_tasks_moderation_created_at", "tasks", ["moderation_status", "created_at"]
    )
    op.create_index("ix_tasks_user_created_at", "tasks", ["user_id", "created_at"])

    op.create_table(
        "task_tags",
        sa.Column("task_id", sa.VARCHAR(), nullable=False),
        sa.Column("tag_id", sa.VARCHAR(), nullable=False),
        sa.ForeignKeyConstraint(["task_id"], ["tasks.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["tag_id"], ["tags.id"]),
        sa.PrimaryKeyConstraint("task_id", "tag_id"),
    )
    op.create_index("ix_task_tags_tag_id", "task_tags", ["tag_id"])

    op.create_table(
        "responses",
        sa.Column("id", sa.VARCHAR(), nullable=False),
        sa.Column("task_id", sa.VARCHAR(), nullable=False),
        sa.Column("user_id", sa.VARCHAR(), nullable=False),
        sa.Column("message", sa.VARCHAR(), nullable=False),
        sa.Column("price", sa.INTEGER(), nullable=True),
        sa.Column("deadline", sa.DATETIME(), nullable=True),
        sa.Column("created_at", sa.DATETIME(), nullable=False),
        sa.Column("updated_at", sa.DATETIME(), nullable=False),
        sa.ForeignKeyConstraint(["task_id"], ["tasks.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_responses_task_id", "responses", ["task_id"])
    op.create_index("ix_responses_user_id", "responses", ["user_id"])
    # At most one response per performer per task
    op.create_index("ix_responses_task_user", "responses", ["task_id", "user_id"], unique=True)

    op.create_table(
        "replies",
        sa.Column("id", sa.VARCHAR(), nullable=False),
        sa.Column("response_id", sa.VARCHAR(), nullable=False),
        sa.Column("user_id", sa.VARCHAR(), nullable=False),
        sa.Column("message", sa.VARCHAR(), nullable=False),
        sa.Column("created_at", sa.DATETIME(), nullable=False),
        sa.ForeignKeyConstraint(["response_id"], ["responses.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_replies_response_id", "replies", ["response_id"])

    op.create_table(
        "notifications",
        sa.Column("id", sa.VARCHAR(), nullable=False),
        sa.Column("user_id", sa.VARCHAR(), nullable=False),
        sa.Column("role", sa.VARCHAR(), nullable=False),
        sa.Column("type", sa.VARCHAR(), nullable=False),
        sa.Column("title", sa.VARCHAR(), nullable=False),
        sa.Column("message", sa.VARCHAR(), nullable=False),
        sa.Column("link", sa.VARCHAR(), nullable=True),
        sa.Column("read", sa.BOOLEAN(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DATETIME(), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])
    op.create_index("ix_notifications_read", "notifications", ["read"])
    op.create_index(
        "ix_notifications_user_created", "notifications", ["user_id", "created_at"]
    )

    op.create_table(
        "task_moderation_history",
        sa.Column("id", sa.VARCHAR(), nullable=False),
        sa.Column("task_id", sa.VARCHAR(), nullable=False),
        sa.Column("changed_fields", sa.VARCHAR(), nullable=False),
        sa.Column("previous_data", sa.VARCHAR(), nullable=False),
        sa.Column("new_data", sa.VARCHAR(), nullable=False),
        sa.Column("changed_by", sa.VARCHAR(), nullable=False),
        sa.Column("reason", sa.VARCHAR(), nullable=True),
        sa.Column("created_at", sa.DATETIME(), nullable=False),
        sa.ForeignKeyConstraint(["task_id"], ["tasks.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_task_moderation_history_task_id", "task_moderation_history", ["task_id"]
    )
    op.create_index(
        "ix_task_moderation_history_created_at", "task_moderation_history", ["created_at"]
    )

    op.create_table(
        "ads",
        sa.Column("id", sa.VARCHAR(), nullable=False),
        sa.Column("image_url", sa.VARCHAR(), nullable=False),
        sa.Column("link", sa.VARCHAR(), nullable=True),
        sa.Column("position", sa.INTEGER(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.BOOLEAN(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DATETIME(), nullable=False),
        sa.Column("updated_at", sa.DATETIME(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_ads_position", "ads", ["position"])
    op.create_index("ix_ads_is_active", "ads", ["is_active"])


def downgrade() -> None:
    for table in (
        "ads",
        "task_moderation_history",
        "notifications",
        "replies",
        "responses",
        "task_tags",
        "tasks",
        "user_tags",
        "tags",
        "categories",
        "users",
    ):
        op.drop_table(table)
