"""Create inventory store: assets, hierarchy nodes and port reservations.

Revision ID: a1c3e5f7b9d1
Revises:
Create Date: 2026-10-19

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "a1c3e5f7b9d1"
down_revision = None
branch_labels = ("inventory",)
depends_on = None


def upgrade() -> None:
    asset_type = postgresql.ENUM(
        "headend",
        "core_switch",
        "fdh",
        "splitter",
        "ont",
        "router",
        "fiber_roll",
        name="assettype",
    )
    asset_status = postgresql.ENUM(
        "available", "assigned", "faulty", "retired", name="assetstatus"
    )

    op.create_table(
        "assets",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("asset_type", asset_type, nullable=False),
        sa.Column("serial_number", sa.String(120), nullable=False),
        sa.Column("model", sa.String(120)),
        sa.Column("location", sa.String(200)),
        sa.Column("status", asset_status),
        sa.Column("assigned_to_customer_id", postgresql.UUID(as_uuid=True)),
        sa.Column("created_at", sa.DateTime(timezone=True)),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
        sa.UniqueConstraint("serial_number", name="uq_assets_serial_number"),
    )
    op.create_index(
        "ix_assets_assigned_to_customer_id", "assets", ["assigned_to_customer_id"]
    )

    op.create_table(
        "asset_history",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "asset_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("assets.id"), nullable=False
        ),
        sa.Column("change_type", sa.String(60), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("changed_by", sa.String(120)),
        sa.Column("created_at", sa.DateTime(timezone=True)),
    )
    op.create_index("ix_asset_history_asset_id", "asset_history", ["asset_id"])

    op.create_table(
        "headends",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "asset_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("assets.id"),
            nullable=False,
            unique=True,
        ),
        sa.Column("name", sa.String(160), nullable=False),
        sa.Column("location", sa.String(200)),
        sa.Column("created_at", sa.DateTime(timezone=True)),
    )

    op.create_table(
        "core_switches",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "asset_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("assets.id"),
            nullable=False,
            unique=True,
        ),
        sa.Column(
            "headend_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("headends.id"),
            nullable=False,
        ),
        sa.Column("name", sa.String(160), nullable=False),
        sa.Column("location", sa.String(200)),
        sa.Column("created_at", sa.DateTime(timezone=True)),
    )
    op.create_index("ix_core_switches_headend_id", "core_switches", ["headend_id"])

    op.create_table(
        "fdhs",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "asset_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("assets.id"),
            nullable=False,
            unique=True,
        ),
        sa.Column(
            "core_switch_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("core_switches.id"),
            nullable=False,
        ),
        sa.Column("name", sa.String(160), nullable=False),
        sa.Column("region", sa.String(120)),
        sa.Column("created_at", sa.DateTime(timezone=True)),
    )
    op.create_index("ix_fdhs_core_switch_id", "fdhs", ["core_switch_id"])

    op.create_table(
        "splitters",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "asset_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("assets.id"),
            nullable=False,
            unique=True,
        ),
        sa.Column(
            "fdh_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("fdhs.id"), nullable=False
        ),
        sa.Column("neighborhood", sa.String(160)),
        sa.Column("port_capacity", sa.Integer(), nullable=False, server_default="8"),
        sa.Column("used_ports", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True)),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
        sa.CheckConstraint(
            "used_ports >= 0 AND used_ports <= port_capacity",
            name="ck_splitters_used_ports_within_capacity",
        ),
        sa.CheckConstraint("port_capacity > 0", name="ck_splitters_port_capacity_positive"),
    )
    op.create_index("ix_splitters_fdh_id", "splitters", ["fdh_id"])

    op.create_table(
        "splitter_port_reservations",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "splitter_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("splitters.id"),
            nullable=False,
        ),
        sa.Column("port_number", sa.Integer(), nullable=False),
        sa.Column("customer_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("reservation_key", sa.String(120), nullable=False),
        sa.Column("active", sa.Boolean(), server_default=sa.true()),
        sa.Column("released_at", sa.DateTime(timezone=True)),
        sa.Column("created_at", sa.DateTime(timezone=True)),
        sa.UniqueConstraint("reservation_key", name="uq_splitter_port_reservations_key"),
    )
    op.create_index(
        "ix_splitter_port_reservations_customer_id",
        "splitter_port_reservations",
        ["customer_id"],
    )
    op.create_index(
        "ix_splitter_port_reservations_active_port",
        "splitter_port_reservations",
        ["splitter_id", "port_number"],
        unique=True,
        postgresql_where=sa.text("active"),
    )


def downgrade() -> None:
    op.drop_index(
        "ix_splitter_port_reservations_active_port", table_name="splitter_port_reservations"
    )
    op.drop_index(
        "ix_splitter_port_reservations_customer_id", table_name="splitter_port_reservations"
    )
    op.drop_table("splitter_port_reservations")
    op.drop_index("ix_splitters_fdh_id", table_name="splitters")
    op.drop_table("splitters")
    op.drop_index("ix_fdhs_core_switch_id", table_name="fdhs")
    op.drop_table("fdhs")
    op.drop_index("ix_core_switches_headend_id", table_name="core_switches")
    op.drop_table("core_switches")
    op.drop_table("headends")
    op.drop_index("ix_asset_history_asset_id", table_name="asset_history")
    op.drop_table("asset_history")
    op.drop_index("ix_assets_assigned_to_customer_id", table_name="assets")
    op.drop_table("assets")
    postgresql.ENUM(name="assetstatus").drop(op.get_bind(), checkfirst=True)
    postgresql.ENUM(name="assettype").drop(op.get_bind(), checkfirst=True)
