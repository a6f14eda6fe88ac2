"""
Ride lifecycle operations: create, read, update, deactivate, list.

Writes that touch an existing ride go through the repository's conditional
update with an ownership predicate, so a capacity change is applied to the
seat counter as it is stored at that moment and never overwrites a
concurrent booking.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Optional

from src.domain.entities import Location, Principal, Ride, Stop
from src.domain.enums import PATCHABLE_RIDE_FIELDS, Role
from src.domain.exceptions import (
    ConcurrencyConflictError,
    NotFoundError,
    PreconditionFailed,
    ValidationError,
)
from src.domain.inventory import (
    RideCondition,
    RideMutation,
    owner_write_failure,
    require_seat_count,
)
from src.infrastructure.repositories import RideRepository

logger = logging.getLogger(__name__)

_TEXT_FIELDS = ("route_from", "route_to", "time")


def _require_text(value: Any, name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{name} is required.")
    return value.strip()


class RideLifecycle:
    def __init__(self, rides: RideRepository):
        self.rides = rides

    async def create_ride(
        self,
        principal: Principal,
        *,
        route_from: str,
        route_to: str,
        time: str,
        total_seats: int,
        route_from_loc: Optional[Location] = None,
        route_to_loc: Optional[Location] = None,
        stops: Iterable[Stop] = (),
    ) -> Ride:
        principal.require(Role.DRIVER)
        total = require_seat_count(total_seats, "total_seats", minimum=1)

        ride = Ride(
            driver_id=principal.identity,
            route_from=_require_text(route_from, "route_from"),
            route_from_loc=route_from_loc,
            route_to=_require_text(route_to, "route_to"),
            route_to_loc=route_to_loc,
            stops=list(stops),
            time=_require_text(time, "time"),
            total_seats=total,
            seats_available=total,
        )
        created = await self.rides.insert(ride)
        logger.info(
            "Driver %s created ride %s (%s -> %s, %d seats)",
            principal.identity,
            created.id,
            created.route_from,
            created.route_to,
            created.total_seats,
        )
        return created

    async def get_ride(self, principal: Principal, ride_id: str) -> Ride:
        """Inactive rides stay addressable, but only for their owner."""
        ride = await self.rides.get_by_id(ride_id)
        if ride is None or (not ride.active and not ride.is_owned_by(principal.identity)):
            raise NotFoundError()
        return ride

    async def update_ride(
        self, principal: Principal, ride_id: str, patch: dict[str, Any]
    ) -> Ride:
        """Owner-only patch.  A missing ride or a stranger's request is
        reported as such even when the patch itself is also invalid."""
        principal.require(Role.DRIVER, approved=False)
        try:
            fields = self._validate_patch(patch)
        except ValidationError as exc:
            current = await self.rides.get_by_id(ride_id)
            raise (owner_write_failure(current, principal.identity) or exc) from None
        total_seats = fields.pop("total_seats", None)

        ride = await self._owner_write(
            principal, ride_id, RideMutation(fields=fields, total_seats=total_seats)
        )
        logger.info(
            "Driver %s updated ride %s (%s)", principal.identity, ride_id, ", ".join(sorted(patch))
        )
        return ride

    async def deactivate_ride(self, principal: Principal, ride_id: str) -> Ride:
        principal.require(Role.DRIVER, approved=False)
        ride = await self._owner_write(
            principal, ride_id, RideMutation(fields={"active": False})
        )
        logger.info("Driver %s deactivated ride %s", principal.identity, ride_id)
        return ride

    async def list_rides(
        self,
        principal: Principal,
        *,
        driver_only: bool = False,
        include_inactive: bool = False,
    ) -> list[Ride]:
        if driver_only and principal.role == Role.DRIVER:
            return await self.rides.list_rides(
                driver_id=principal.identity, active_only=not include_inactive
            )
        return await self.rides.list_rides()

    # ── Internals ─────────────────────────────────────────────────────

    async def _owner_write(
        self, principal: Principal, ride_id: str, mutation: RideMutation
    ) -> Ride:
        try:
            return await self.rides.conditional_update(
                ride_id, RideCondition(owner_id=principal.identity), mutation
            )
        except PreconditionFailed:
            current = await self.rides.get_by_id(ride_id)
            error = owner_write_failure(current, principal.identity)
            raise (error or ConcurrencyConflictError()) from None

    @staticmethod
    def _validate_patch(patch: dict[str, Any]) -> dict[str, Any]:
        if not patch:
            raise ValidationError("Nothing to update.")
        unknown = set(patch) - PATCHABLE_RIDE_FIELDS
        if unknown:
            raise ValidationError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")

        fields = dict(patch)
        for name in _TEXT_FIELDS:
            if name in fields:
                fields[name] = _require_text(fields[name], name)
        if "active" in fields and not isinstance(fields["active"], bool):
            raise ValidationError("active must be a boolean.")
        if "total_seats" in fields:
            require_seat_count(fields["total_seats"], "total_seats", minimum=1)
        if "stops" in fields:
            fields["stops"] = sorted(fields["stops"] or [], key=lambda s: s.order)
        return fields
