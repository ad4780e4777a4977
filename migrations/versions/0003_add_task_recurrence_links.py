"""link generated tasks to their template and recurring config"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "0003_add_task_recurrence_links"
down_revision = "0002_create_recurring_tasks"
branch_labels = None
depends_on = None


def upgrade() -> None:
    with op.batch_alter_table("tasks") as batch_op:
        batch_op.add_column(sa.Column("original_task_id", sa.Integer(), nullable=True))
        batch_op.add_column(sa.Column("recurring_task_id", sa.Integer(), nullable=True))
        batch_op.create_foreign_key(
            "fk_tasks_original_task_id", "tasks", ["original_task_id"], ["id"], ondelete="SET NULL"
        )
        batch_op.create_foreign_key(
            "fk_tasks_recurring_task_id",
            "recurring_tasks",
            ["recurring_task_id"],
            ["id"],
            ondelete="SET NULL",
        )
        batch_op.create_index("ix_tasks_recurring_task_id", ["recurring_task_id"], unique=False)


def downgrade() -> None:
    with op.batch_alter_table("tasks") as batch_op:
        batch_op.drop_index("ix_tasks_recurring_task_id")
        batch_op.drop_constraint("fk_tasks_recurring_task_id", type_="foreignkey")
        batch_op.drop_constraint("fk_tasks_original_task_id", type_="foreignkey")
        batch_op.drop_column("recurring_task_id")
        batch_op.drop_column("original_task_id")
