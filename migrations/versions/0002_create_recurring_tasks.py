"""create recurring tasks table"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "0002_create_recurring_tasks"
down_revision = "0001_create_tasks"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "recurring_tasks",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column(
            "task_template_id",
            sa.Integer(),
            sa.ForeignKey("tasks.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("frequency", sa.String(length=20), nullable=False, server_default="daily"),
        sa.Column("interval_count", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("weekdays", sa.String(length=20), nullable=True),
        sa.Column("month_day", sa.Integer(), nullable=True),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("max_instances", sa.Integer(), nullable=True),
        sa.Column("created_instances", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_generated_date", sa.Date(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("interval_count >= 1", name="ck_recurring_tasks_interval_count"),
        sa.CheckConstraint(
            "frequency IN ('daily', 'weekly', 'monthly', 'custom')",
            name="ck_recurring_tasks_frequency",
        ),
    )
    op.create_index("ix_recurring_tasks_user_id", "recurring_tasks", ["user_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_recurring_tasks_user_id", table_name="recurring_tasks")
    op.drop_table("recurring_tasks")
