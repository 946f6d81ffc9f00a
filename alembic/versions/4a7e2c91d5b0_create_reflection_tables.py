"""create users, weekly_snippets and async_operations

Revision ID: 4a7e2c91d5b0
Revises:
Create Date: 2026-10-18 09:12:44.318207

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "4a7e2c91d5b0"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
  """Upgrade schema."""
  op.create_table(
    "users",
    sa.Column("id", sa.Uuid(), nullable=False),
    sa.Column("firebase_uid", sa.String(), nullable=False),
    sa.Column("email", sa.String(), nullable=False),
    sa.Column("name", sa.String(), nullable=True),
    sa.Column("job_title", sa.String(), nullable=True),
    sa.Column("seniority_level", sa.String(), nullable=True),
    sa.Column("career_progression_plan", sa.Text(), nullable=True),
    sa.Column("next_level_expectations", sa.Text(), nullable=True),
    sa.Column("career_plan_generated_at", sa.DateTime(timezone=True), nullable=True),
    sa.Column("reflection_preferences", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    sa.PrimaryKeyConstraint("id"),
  )
  op.create_index("ix_users_firebase_uid", "users", ["firebase_uid"], unique=True)
  op.create_index("ix_users_email", "users", ["email"], unique=True)

  op.create_table(
    "weekly_snippets",
    sa.Column("id", sa.String(), nullable=False),
    sa.Column("user_id", sa.Uuid(), nullable=False),
    sa.Column("year", sa.Integer(), nullable=False),
    sa.Column("week_number", sa.Integer(), nullable=False),
    sa.Column("start_date", sa.Date(), nullable=False),
    sa.Column("end_date", sa.Date(), nullable=False),
    sa.Column("content", sa.Text(), nullable=False),
    sa.Column("ai_suggestions", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
    sa.PrimaryKeyConstraint("id"),
    # One reflection per user and ISO week.
    sa.UniqueConstraint("user_id", "year", "week_number", name="ux_weekly_snippets_user_year_week"),
  )
  op.create_index("ix_weekly_snippets_user_id", "weekly_snippets", ["user_id"], unique=False)

  op.create_table(
    "async_operations",
    sa.Column("id", sa.String(), nullable=False),
    sa.Column("user_id", sa.Uuid(), nullable=False),
    sa.Column("operation_type", sa.String(), nullable=False),
    sa.Column("status", sa.String(), nullable=False),
    sa.Column("progress", sa.Integer(), nullable=False),
    sa.Column("input_data", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
    sa.Column("result_data", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
    sa.Column("error_message", sa.Text(), nullable=True),
    sa.Column("estimated_duration", sa.Integer(), nullable=True),
    sa.Column("metadata", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
    sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
    sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
    sa.PrimaryKeyConstraint("id"),
  )
  op.create_index("ix_async_operations_user_id", "async_operations", ["user_id"], unique=False)
  op.create_index("ix_async_operations_status", "async_operations", ["status"], unique=False)
  op.create_index("ix_async_operations_user_type_status", "async_operations", ["user_id", "operation_type", "status"], unique=False)


def downgrade() -> None:
  """Downgrade schema."""
  op.drop_index("ix_async_operations_user_type_status", table_name="async_operations")
  op.drop_index("ix_async_operations_status", table_name="async_operations")
  op.drop_index("ix_async_operations_user_id", table_name="async_operations")
  op.drop_table("async_operations")
  op.drop_index("ix_weekly_snippets_user_id", table_name="weekly_snippets")
  op.drop_table("weekly_snippets")
  op.drop_index("ix_users_email", table_name="users")
  op.drop_index("ix_users_firebase_uid", table_name="users")
  op.drop_table("users")
