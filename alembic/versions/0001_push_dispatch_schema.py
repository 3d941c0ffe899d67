"""push dispatch schema

Revision ID: 0001_push_dispatch_schema
Revises:
Create Date: 2024-12-13
"""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa


revision: str = "0001_push_dispatch_schema"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.Column("role", sa.Integer(), nullable=False),
        sa.Column("department", sa.String(length=64), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_users_role", "users", ["role"], unique=False)
    op.create_index("ix_users_department", "users", ["department"], unique=False)

    op.create_table(
        "user_fcm_tokens",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("fcm_token", sa.String(length=1024), nullable=False),
        sa.Column("device_type", sa.String(length=16), nullable=False, server_default="web"),
        sa.Column("device_info", sa.JSON(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("last_used_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("device_type IN ('web', 'android', 'ios')", name="ck_user_fcm_tokens_device_type"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "fcm_token", name="uq_user_fcm_tokens_user_token"),
    )
    op.create_index("ix_user_fcm_tokens_user_id", "user_fcm_tokens", ["user_id"], unique=False)
    op.create_index("ix_user_fcm_tokens_fcm_token", "user_fcm_tokens", ["fcm_token"], unique=False)
    op.create_index("ix_user_fcm_tokens_is_active", "user_fcm_tokens", ["is_active"], unique=False)

    op.create_table(
        "user_push_settings",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("emergency", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("long_repair", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("completed", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("pm_schedule", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id"),
    )

    op.create_table(
        "notification_logs",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("type", sa.String(length=32), nullable=False, server_default="info"),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("body", sa.Text(), nullable=True),
        sa.Column("data", sa.JSON(), nullable=False),
        sa.Column("target_tokens_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("target_users", sa.JSON(), nullable=False),
        sa.Column("target_roles", sa.JSON(), nullable=False),
        sa.Column("target_departments", sa.JSON(), nullable=False),
        sa.Column("is_broadcast", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("success_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("failure_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("errors", sa.JSON(), nullable=False),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_notification_logs_type", "notification_logs", ["type"], unique=False)
    op.create_index("ix_notification_logs_sent_at", "notification_logs", ["sent_at"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_notification_logs_sent_at", table_name="notification_logs")
    op.drop_index("ix_notification_logs_type", table_name="notification_logs")
    op.drop_table("notification_logs")
    op.drop_table("user_push_settings")
    op.drop_index("ix_user_fcm_tokens_is_active", table_name="user_fcm_tokens")
    op.drop_index("ix_user_fcm_tokens_fcm_token", table_name="user_fcm_tokens")
    op.drop_index("ix_user_fcm_tokens_user_id", table_name="user_fcm_tokens")
    op.drop_table("user_fcm_tokens")
    op.drop_index("ix_users_department", table_name="users")
    op.drop_index("ix_users_role", table_name="users")
    op.drop_table("users")
