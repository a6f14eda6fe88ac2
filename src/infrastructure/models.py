"""
SQLAlchemy ORM models.

Tables
------
* ``rides``          -- ride offers with their seat counters
* ``ride_bookings``  -- roster of riders booked on a ride

Indexes
-------
* **UNIQUE** on ``ride_bookings (ride_id, rider_id)``: a rider appears at
  most once in a roster, even if two bookings race past the UPDATE guard.
* **B-Tree** on ``driver_id`` and ``(active, created_at)`` for the driver
  dashboard and the newest-first discovery listing.
"""

import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    func,
)

from .database import Base


def _new_id() -> str:
    return str(uuid.uuid4())


class RideModel(Base):
    __tablename__ = "rides"

    id = Column(String(36), primary_key=True, default=_new_id)
    driver_id = Column(String(64), nullable=False)

    route_from = Column(String(255), nullable=False)
    route_from_lat = Column(Float, nullable=True)
    route_from_lng = Column(Float, nullable=True)
    route_to = Column(String(255), nullable=False)
    route_to_lat = Column(Float, nullable=True)
    route_to_lng = Column(Float, nullable=True)
    # [{"name", "lat", "lng", "order"}] -- descriptive only
    stops = Column(JSON, nullable=False, default=list)

    time = Column(String(64), nullable=False)
    total_seats = Column(Integer, nullable=False)
    seats_available = Column(Integer, nullable=False)
    active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        CheckConstraint("total_seats > 0", name="ck_rides_total_positive"),
        CheckConstraint(
            "seats_available >= 0 AND seats_available <= total_seats",
            name="ck_rides_seats_bounds",
        ),
        Index("idx_rides_driver", "driver_id"),
        Index("idx_rides_active_created", "active", "created_at"),
    )


class RideBookingModel(Base):
    __tablename__ = "ride_bookings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    ride_id = Column(String(36), ForeignKey("rides.id", ondelete="CASCADE"), nullable=False)
    rider_id = Column(String(64), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("ride_id", "rider_id", name="uq_ride_bookings_ride_rider"),
        Index("idx_ride_bookings_ride", "ride_id"),
    )
