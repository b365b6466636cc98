"""Create customer store: customers and fiber drop lines.

Revision ID: b2d4f6a8c0e2
Revises:
Create Date: 2026-10-19

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "b2d4f6a8c0e2"
down_revision = None
branch_labels = ("customers",)
depends_on = None


def upgrade() -> None:
    customer_status = postgresql.ENUM("pending", "active", "inactive", name="customerstatus")
    fiber_status = postgresql.ENUM("active", "inactive", "disconnected", name="fiberstatus")

    op.create_table(
        "customers",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(160), nullable=False),
        sa.Column("address", sa.String(255)),
        sa.Column("neighborhood", sa.String(160)),
        sa.Column("plan", sa.String(80)),
        sa.Column("connection_type", sa.String(40)),
        sa.Column("status", customer_status, nullable=False),
        sa.Column("splitter_id", postgresql.UUID(as_uuid=True)),
        sa.Column("splitter_serial_number", sa.String(120)),
        sa.Column("assigned_port", sa.Integer()),
        sa.Column("port_reservation_key", sa.String(120)),
        sa.Column("created_at", sa.DateTime(timezone=True)),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
        sa.CheckConstraint(
            "(splitter_id IS NULL AND assigned_port IS NULL)"
            " OR (splitter_id IS NOT NULL AND assigned_port IS NOT NULL)",
            name="ck_customers_assignment_complete",
        ),
        sa.UniqueConstraint("splitter_id", "assigned_port", name="uq_customers_splitter_port"),
    )
    op.create_index("ix_customers_splitter_id", "customers", ["splitter_id"])

    op.create_table(
        "fiber_drop_lines",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "customer_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("customers.id"),
            nullable=False,
        ),
        sa.Column("from_splitter_id", postgresql.UUID(as_uuid=True)),
        sa.Column("length_meters", sa.Numeric(10, 2)),
        sa.Column("status", fiber_status, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True)),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
        sa.UniqueConstraint("customer_id", name="uq_fiber_drop_lines_customer"),
    )
    op.create_index(
        "ix_fiber_drop_lines_from_splitter_id", "fiber_drop_lines", ["from_splitter_id"]
    )


def downgrade() -> None:
    op.drop_index("ix_fiber_drop_lines_from_splitter_id", table_name="fiber_drop_lines")
    op.drop_table("fiber_drop_lines")
    op.drop_index("ix_customers_splitter_id", table_name="customers")
    op.drop_table("customers")
    postgresql.ENUM(name="fiberstatus").drop(op.get_bind(), checkfirst=True)
    postgresql.ENUM(name="customerstatus").drop(op.get_bind(), checkfirst=True)
