"""Initial schema

Revision ID: 001
Revises:
Create Date: 2026-10-18

Creates:
- org, user, pet, application
- promotion_request, scheduled_task
- audit_log
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create all tables."""
    # org table
    op.create_table(
        "org",
        sa.Column("org_id", sa.String(36), primary_key=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("location", sa.Text(), nullable=False, server_default=""),
        sa.Column("contact_email", sa.Text(), nullable=True),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("website_url", sa.Text(), nullable=False, server_default=""),
        sa.Column("registration_number", sa.Text(), nullable=False, server_default=""),
        sa.Column("provisional", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    # user table
    op.create_table(
        "user",
        sa.Column("user_id", sa.String(36), primary_key=True),
        sa.Column("email", sa.Text(), nullable=True),
        sa.Column("role", sa.String(32), nullable=False, server_default="user"),
        sa.Column("org_id", sa.String(36), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["org_id"], ["org.org_id"]),
    )
    op.create_index("idx_user_org", "user", ["org_id"])

    # pet table
    op.create_table(
        "pet",
        sa.Column("pet_id", sa.String(36), primary_key=True),
        sa.Column("org_id", sa.String(36), nullable=False),
        sa.Column("name", sa.Text(), nullable=False, server_default=""),
        sa.ForeignKeyConstraint(["org_id"], ["org.org_id"]),
    )
    op.create_index("idx_pet_org", "pet", ["org_id"])

    # application table
    op.create_table(
        "application",
        sa.Column("application_id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("pet_id", sa.String(36), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["user.user_id"]),
        sa.ForeignKeyConstraint(["pet_id"], ["pet.pet_id"]),
    )
    op.create_index("idx_application_user", "application", ["user_id"])

    # promotion_request table
    op.create_table(
        "promotion_request",
        sa.Column("request_id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("org_name", sa.Text(), nullable=False),
        sa.Column("org_location", sa.Text(), nullable=False),
        sa.Column("status", sa.String(32), nullable=False, server_default="pending"),
        sa.Column("approval_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("admin_notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["user.user_id"]),
    )

    # scheduled_task table (never deleted; doubles as execution history)
    op.create_table(
        "scheduled_task",
        sa.Column("task_id", sa.String(36), primary_key=True),
        sa.Column("kind", sa.String(64), nullable=False),
        sa.Column("subject_id", sa.String(36), nullable=False),
        sa.Column("request_id", sa.String(36), nullable=False),
        sa.Column("due_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("executed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("executed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("idx_scheduled_task_pending_due", "scheduled_task", ["executed", "due_at"])

    # audit_log table
    op.create_table(
        "audit_log",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("action", sa.String(64), nullable=False),
        sa.Column("outcome", sa.String(32), nullable=False),
        sa.Column("subject_id", sa.String(36), nullable=True),
        sa.Column("role", sa.String(32), nullable=True),
        sa.Column("org_id", sa.String(36), nullable=True),
        sa.Column("policy", sa.String(64), nullable=True),
        sa.Column("resource_path", sa.Text(), nullable=True),
        sa.Column("target_type", sa.String(64), nullable=True),
        sa.Column("target_id", sa.String(36), nullable=True),
        sa.Column("details", sa.JSON(), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("idx_audit_log_subject_ts", "audit_log", ["subject_id", "timestamp"])


def downgrade() -> None:
    """Drop all tables."""
    op.drop_table("audit_log")
    op.drop_table("scheduled_task")
    op.drop_table("promotion_request")
    op.drop_table("application")
    op.drop_table("pet")
    op.drop_table("user")
    op.drop_table("org")
