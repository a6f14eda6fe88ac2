"""
Repository Pattern -- abstracts DB access so the booking services stay
DB-agnostic.

``RideRepository`` receives an ``AsyncSession`` (unit-of-work) and hands out
domain ``Ride`` entities.  ``conditional_update`` is the only way seat state
is ever written: the precondition is part of the UPDATE's WHERE clause and
the new seat count is computed from the row's current values, so the check
and the write cannot be separated by a concurrent request.
"""

from __future__ import annotations

import dataclasses
import logging
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import case, delete, exists, insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from .models import RideBookingModel, RideModel
from src.domain.entities import Location, Ride, Stop
from src.domain.exceptions import PreconditionFailed
from src.domain.inventory import RideCondition, RideMutation

logger = logging.getLogger(__name__)

_LOCATION_FIELDS = {
    "route_from_loc": ("route_from_lat", "route_from_lng"),
    "route_to_loc": ("route_to_lat", "route_to_lng"),
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _location(lat: Optional[float], lng: Optional[float]) -> Optional[Location]:
    if lat is None or lng is None:
        return None
    return Location(lat=lat, lng=lng)


def _column_values(fields: dict[str, Any]) -> dict[str, Any]:
    """Translate entity attribute names into ``rides`` column values."""
    values: dict[str, Any] = {}
    for name, value in fields.items():
        if name in _LOCATION_FIELDS:
            lat_col, lng_col = _LOCATION_FIELDS[name]
            values[lat_col] = value.lat if value else None
            values[lng_col] = value.lng if value else None
        elif name == "stops":
            values["stops"] = [dataclasses.asdict(stop) for stop in value]
        else:
            values[name] = value
    return values


def _seat_values(mutation: RideMutation) -> dict[str, Any]:
    seats = RideModel.seats_available
    total = RideModel.total_seats

    if mutation.total_seats is not None:
        shifted = seats + (mutation.total_seats - total)
        return {
            "seats_available": case((shifted < 0, 0), else_=shifted),
            "total_seats": mutation.total_seats,
        }
    if mutation.seats_set is not None:
        return {"seats_available": mutation.seats_set}
    if mutation.seat_delta > 0:
        shifted = seats + mutation.seat_delta
        return {"seats_available": case((shifted > total, total), else_=shifted)}
    if mutation.seat_delta < 0:
        shifted = seats + mutation.seat_delta
        return {"seats_available": case((shifted < 0, 0), else_=shifted)}
    return {}


def _where(ride_id: str, condition: RideCondition) -> list:
    clauses = [RideModel.id == ride_id]
    if condition.owner_id is not None:
        clauses.append(RideModel.driver_id == condition.owner_id)
    if condition.active is not None:
        clauses.append(RideModel.active == condition.active)
    if condition.min_seats_available is not None:
        clauses.append(RideModel.seats_available >= condition.min_seats_available)
    if condition.min_total_seats is not None:
        clauses.append(RideModel.total_seats >= condition.min_total_seats)
    if condition.rider_booked is not None:
        clauses.append(_booking_exists(ride_id, condition.rider_booked))
    if condition.rider_not_booked is not None:
        clauses.append(~_booking_exists(ride_id, condition.rider_not_booked))
    return clauses


def _booking_exists(ride_id: str, rider_id: str):
    return exists().where(
        RideBookingModel.ride_id == ride_id,
        RideBookingModel.rider_id == rider_id,
    )


class RideRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def insert(self, ride: Ride) -> Ride:
        now = _utcnow()
        model = RideModel(
            driver_id=ride.driver_id,
            route_from=ride.route_from,
            route_to=ride.route_to,
            time=ride.time,
            total_seats=ride.total_seats,
            seats_available=ride.seats_available,
            active=ride.active,
            created_at=now,
            updated_at=now,
            **_column_values(
                {
                    "route_from_loc": ride.route_from_loc,
                    "route_to_loc": ride.route_to_loc,
                    "stops": ride.stops,
                }
            ),
        )
        if ride.id:
            model.id = ride.id
        self.session.add(model)
        await self.session.flush()
        return self._to_entity(model, [])

    async def get_by_id(self, ride_id: str) -> Optional[Ride]:
        model = await self.session.get(RideModel, ride_id, populate_existing=True)
        if model is None:
            return None
        rosters = await self._rosters([ride_id])
        return self._to_entity(model, rosters[ride_id])

    async def list_rides(
        self, *, driver_id: Optional[str] = None, active_only: bool = True
    ) -> list[Ride]:
        query = select(RideModel)
        if driver_id is not None:
            query = query.where(RideModel.driver_id == driver_id)
        if active_only:
            query = query.where(RideModel.active == True)  # noqa: E712
        query = query.order_by(RideModel.created_at.desc(), RideModel.id.desc())

        result = await self.session.execute(query)
        models = list(result.scalars().all())
        rosters = await self._rosters([m.id for m in models])
        return [self._to_entity(m, rosters[m.id]) for m in models]

    async def conditional_update(
        self, ride_id: str, condition: RideCondition, mutation: RideMutation
    ) -> Ride:
        """Apply *mutation* only if *condition* holds; else ``PreconditionFailed``.

        The UPDATE and the roster change share a savepoint, so a failed
        roster write also rolls back the seat counter.
        """
        values = {**_column_values(mutation.fields), **_seat_values(mutation)}
        values["updated_at"] = _utcnow()
        stmt = (
            update(RideModel)
            .where(*_where(ride_id, condition))
            .values(**values)
            .returning(RideModel.id)
            .execution_options(synchronize_session=False)
        )

        try:
            async with self.session.begin_nested():
                result = await self.session.execute(stmt)
                if result.scalar_one_or_none() is None:
                    raise PreconditionFailed(ride_id)

                if mutation.add_rider is not None:
                    await self.session.execute(
                        insert(RideBookingModel).values(
                            ride_id=ride_id, rider_id=mutation.add_rider
                        )
                    )
                if mutation.remove_rider is not None:
                    deleted = await self.session.execute(
                        delete(RideBookingModel).where(
                            RideBookingModel.ride_id == ride_id,
                            RideBookingModel.rider_id == mutation.remove_rider,
                        )
                    )
                    if deleted.rowcount == 0:
                        raise PreconditionFailed(ride_id)
        except IntegrityError as exc:
            logger.debug("Roster constraint rejected write on ride %s: %s", ride_id, exc)
            raise PreconditionFailed(ride_id) from exc

        ride = await self.get_by_id(ride_id)
        if ride is None:
            raise PreconditionFailed(ride_id)
        return ride

    # ── Internals ─────────────────────────────────────────────────────

    async def _rosters(self, ride_ids: list[str]) -> dict[str, list[str]]:
        rosters: dict[str, list[str]] = defaultdict(list)
        if not ride_ids:
            return rosters
        result = await self.session.execute(
            select(RideBookingModel.ride_id, RideBookingModel.rider_id)
            .where(RideBookingModel.ride_id.in_(ride_ids))
            .order_by(RideBookingModel.id)
        )
        for ride_id, rider_id in result.all():
            rosters[ride_id].append(rider_id)
        return rosters

    @staticmethod
    def _to_entity(model: RideModel, riders: list[str]) -> Ride:
        return Ride(
            id=model.id,
            driver_id=model.driver_id,
            route_from=model.route_from,
            route_from_loc=_location(model.route_from_lat, model.route_from_lng),
            route_to=model.route_to,
            route_to_loc=_location(model.route_to_lat, model.route_to_lng),
            stops=[Stop(**stop) for stop in (model.stops or [])],
            time=model.time,
            total_seats=model.total_seats,
            seats_available=model.seats_available,
            booked_riders=list(riders),
            active=model.active,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )
