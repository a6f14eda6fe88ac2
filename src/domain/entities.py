"""
Domain entities.

``Ride`` carries the seat inventory ``(total_seats, seats_available,
booked_riders)`` next to its descriptive route data.  ``seats_available`` and
the roster are written independently: a driver seat adjustment moves the
count without touching the roster, so the two may drift apart.

``Principal`` is the capability object produced by the access gate.  The core
trusts it verbatim and never re-derives a role from storage.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from .enums import ApprovalStatus, Role
from .exceptions import PermissionDeniedError


# ── Value Objects ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class Location:
    lat: float
    lng: float


@dataclass(frozen=True)
class Stop:
    name: str
    lat: Optional[float] = None
    lng: Optional[float] = None
    order: int = 0


@dataclass(frozen=True)
class Principal:
    identity: str
    role: Role
    approval_status: ApprovalStatus = ApprovalStatus.PENDING

    @property
    def is_approved(self) -> bool:
        return self.approval_status == ApprovalStatus.APPROVED

    def require(self, role: Role, *, approved: bool = True) -> None:
        """Raise ``PermissionDeniedError`` unless the caller holds *role*."""
        if self.role != role:
            raise PermissionDeniedError(f"Only a {role.value} may do this")
        if approved and not self.is_approved:
            raise PermissionDeniedError(f"{role.value.capitalize()} account is not approved")


# ── Entities ──────────────────────────────────────────────────────────


@dataclass
class Ride:
    driver_id: str
    route_from: str
    route_to: str
    time: str
    total_seats: int
    seats_available: Optional[int] = None
    route_from_loc: Optional[Location] = None
    route_to_loc: Optional[Location] = None
    stops: list[Stop] = field(default_factory=list)
    booked_riders: list[str] = field(default_factory=list)
    active: bool = True
    id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if self.seats_available is None:
            self.seats_available = self.total_seats
        self.stops = sorted(self.stops, key=lambda s: s.order)

    def is_owned_by(self, identity: str) -> bool:
        return self.driver_id == identity

    def has_rider(self, rider_id: str) -> bool:
        return rider_id in self.booked_riders

    def can_book(self, rider_id: str) -> bool:
        return self.active and self.seats_available > 0 and not self.has_rider(rider_id)
