"""Initial schema: rides and the ride booking roster.

Revision ID: 001
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa


revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # ── rides ─────────────────────────────────────────────────────────
    op.create_table(
        "rides",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("driver_id", sa.String(64), nullable=False),
        sa.Column("route_from", sa.String(255), nullable=False),
        sa.Column("route_from_lat", sa.Float, nullable=True),
        sa.Column("route_from_lng", sa.Float, nullable=True),
        sa.Column("route_to", sa.String(255), nullable=False),
        sa.Column("route_to_lat", sa.Float, nullable=True),
        sa.Column("route_to_lng", sa.Float, nullable=True),
        sa.Column("stops", sa.JSON, nullable=False),
        sa.Column("time", sa.String(64), nullable=False),
        sa.Column("total_seats", sa.Integer, nullable=False),
        sa.Column("seats_available", sa.Integer, nullable=False),
        sa.Column("active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.CheckConstraint("total_seats > 0", name="ck_rides_total_positive"),
        sa.CheckConstraint(
            "seats_available >= 0 AND seats_available <= total_seats",
            name="ck_rides_seats_bounds",
        ),
    )
    op.create_index("idx_rides_driver", "rides", ["driver_id"])
    op.create_index("idx_rides_active_created", "rides", ["active", "created_at"])

    # ── ride_bookings ─────────────────────────────────────────────────
    op.create_table(
        "ride_bookings",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "ride_id",
            sa.String(36),
            sa.ForeignKey("rides.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("rider_id", sa.String(64), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.UniqueConstraint("ride_id", "rider_id", name="uq_ride_bookings_ride_rider"),
    )
    op.create_index("idx_ride_bookings_ride", "ride_bookings", ["ride_id"])


def downgrade() -> None:
    op.drop_table("ride_bookings")
    op.drop_table("rides")
