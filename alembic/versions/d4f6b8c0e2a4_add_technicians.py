"""Add technician roster to the deployment store.

Revision ID: d4f6b8c0e2a4
Revises: c3e5a7b9d1f3
Create Date: 2026-10-19

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "d4f6b8c0e2a4"
down_revision = "c3e5a7b9d1f3"
branch_labels = None
depends_on = None


def upgrade() -> None:
    technician_status = postgresql.ENUM(
        "available", "assigned_task", "on_leave", name="technicianstatus"
    )

    op.create_table(
        "technicians",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(160), nullable=False),
        sa.Column("username", sa.String(80), nullable=False),
        sa.Column("contact", sa.String(120)),
        sa.Column("region", sa.String(120)),
        sa.Column("status", technician_status, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True)),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
        sa.UniqueConstraint("username", name="uq_technicians_username"),
    )
    op.create_index("ix_technicians_region", "technicians", ["region"])


def downgrade() -> None:
    op.drop_index("ix_technicians_region", table_name="technicians")
    op.drop_table("technicians")
    postgresql.ENUM(name="technicianstatus").drop(op.get_bind(), checkfirst=True)
