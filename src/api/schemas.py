"""Pydantic request / response schemas for the REST API.

Field names are camelCase on the wire (``routeFrom``, ``seatsAvailable``)
to match the mobile client; snake_case names are accepted as well.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from src.domain.entities import Location, Ride, Stop
from src.domain.inventory import MAX_SEATS


class _Schema(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ── Value objects ─────────────────────────────────────────────────────


class LocationSchema(_Schema):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)

    def to_domain(self) -> Location:
        return Location(lat=self.lat, lng=self.lng)


class StopSchema(_Schema):
    name: str = Field(..., min_length=1, max_length=255)
    lat: Optional[float] = Field(None, ge=-90, le=90)
    lng: Optional[float] = Field(None, ge=-180, le=180)
    order: int = 0

    def to_domain(self) -> Stop:
        return Stop(name=self.name, lat=self.lat, lng=self.lng, order=self.order)


def _location(value: Optional[LocationSchema]) -> Optional[Location]:
    return value.to_domain() if value is not None else None


# ── Requests ──────────────────────────────────────────────────────────


class RideCreateRequest(_Schema):
    route_from: str = Field(..., max_length=255)
    route_from_loc: Optional[LocationSchema] = None
    route_to: str = Field(..., max_length=255)
    route_to_loc: Optional[LocationSchema] = None
    stops: list[StopSchema] = []
    time: str = Field(..., max_length=64, description='Display time, e.g. "08:30 AM".')
    total_seats: int = Field(..., le=MAX_SEATS)


class RideUpdateRequest(_Schema):
    route_from: Optional[str] = Field(None, max_length=255)
    route_from_loc: Optional[LocationSchema] = None
    route_to: Optional[str] = Field(None, max_length=255)
    route_to_loc: Optional[LocationSchema] = None
    stops: Optional[list[StopSchema]] = None
    time: Optional[str] = Field(None, max_length=64)
    active: Optional[bool] = None
    total_seats: Optional[int] = Field(None, le=MAX_SEATS)

    def to_patch(self) -> dict:
        """Only the fields the client actually sent, as domain values."""
        patch = {}
        for name in self.model_fields_set:
            value = getattr(self, name)
            if name in ("route_from_loc", "route_to_loc"):
                value = _location(value)
            elif name == "stops":
                value = [stop.to_domain() for stop in value or []]
            patch[name] = value
        return patch


class SeatAdjustRequest(_Schema):
    action: str = Field(..., description='"increment" | "decrement" | "set"')
    amount: int = Field(
        1, description="Seats to add, remove or set; a set above totalSeats is rejected."
    )


# ── Responses ─────────────────────────────────────────────────────────


class RideResponse(_Schema):
    id: str
    driver_id: str
    route_from: str
    route_from_loc: Optional[LocationSchema] = None
    route_to: str
    route_to_loc: Optional[LocationSchema] = None
    stops: list[StopSchema] = []
    time: str
    total_seats: int
    seats_available: int
    booked_riders: list[str] = []
    active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_entity(cls, ride: Ride) -> "RideResponse":
        def loc(value: Optional[Location]) -> Optional[LocationSchema]:
            return LocationSchema(lat=value.lat, lng=value.lng) if value else None

        return cls(
            id=ride.id,
            driver_id=ride.driver_id,
            route_from=ride.route_from,
            route_from_loc=loc(ride.route_from_loc),
            route_to=ride.route_to,
            route_to_loc=loc(ride.route_to_loc),
            stops=[
                StopSchema(name=s.name, lat=s.lat, lng=s.lng, order=s.order)
                for s in ride.stops
            ],
            time=ride.time,
            total_seats=ride.total_seats,
            seats_available=ride.seats_available,
            booked_riders=list(ride.booked_riders),
            active=ride.active,
            created_at=ride.created_at,
            updated_at=ride.updated_at,
        )


class RideActionResponse(_Schema):
    message: str
    ride: RideResponse


class HealthResponse(BaseModel):
    status: str = "ok"


class ErrorResponse(BaseModel):
    detail: str
