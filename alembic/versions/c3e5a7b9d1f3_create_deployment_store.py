"""Create deployment store: audit logs and installation tasks.

Revision ID: c3e5a7b9d1f3
Revises:
Create Date: 2026-10-19

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "c3e5a7b9d1f3"
down_revision = None
branch_labels = ("deployment",)
depends_on = None


def upgrade() -> None:
    task_status = postgresql.ENUM(
        "scheduled", "in_progress", "completed", "failed", name="taskstatus"
    )

    op.create_table(
        "audit_logs",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("actor_id", sa.String(120)),
        sa.Column("action_type", sa.String(80), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("created_at", sa.DateTime(timezone=True)),
    )
    op.create_index("ix_audit_logs_actor_created", "audit_logs", ["actor_id", "created_at"])
    op.create_index(
        "ix_audit_logs_action_created", "audit_logs", ["action_type", "created_at"]
    )

    op.create_table(
        "deployment_tasks",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("customer_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("technician_id", postgresql.UUID(as_uuid=True)),
        sa.Column("scheduled_date", sa.Date()),
        sa.Column("status", task_status, nullable=False),
        sa.Column("notes", sa.Text()),
        sa.Column("created_at", sa.DateTime(timezone=True)),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
    )
    op.create_index("ix_deployment_tasks_customer_id", "deployment_tasks", ["customer_id"])
    op.create_index(
        "ix_deployment_tasks_technician_id", "deployment_tasks", ["technician_id"]
    )


def downgrade() -> None:
    op.drop_index("ix_deployment_tasks_technician_id", table_name="deployment_tasks")
    op.drop_index("ix_deployment_tasks_customer_id", table_name="deployment_tasks")
    op.drop_table("deployment_tasks")
    op.drop_index("ix_audit_logs_action_created", table_name="audit_logs")
    op.drop_index("ix_audit_logs_actor_created", table_name="audit_logs")
    op.drop_table("audit_logs")
    postgresql.ENUM(name="taskstatus").drop(op.get_bind(), checkfirst=True)
