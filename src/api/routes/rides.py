"""
Ride endpoints
==============

POST   /api/v1/rides                 -- create a ride (driver)
GET    /api/v1/rides                 -- list active rides (``driverOnly`` for own rides)
GET    /api/v1/rides/{ride_id}       -- fetch one ride
PATCH  /api/v1/rides/{ride_id}       -- update route / time / capacity (owner)
DELETE /api/v1/rides/{ride_id}       -- soft-deactivate (owner)
PATCH  /api/v1/rides/{ride_id}/book  -- book a seat (student)
DELETE /api/v1/rides/{ride_id}/book  -- cancel own booking (student)
PATCH  /api/v1/rides/{ride_id}/seats -- driver seat override (owner)
"""

from __future__ import annotations

import logging
from typing import Optional

import redis.asyncio as aioredis
from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.auth import get_principal, require_role
from src.api.dependencies import get_db, get_lifecycle, get_seat_inventory
from src.api.middleware import limiter
from src.api.schemas import (
    RideActionResponse,
    RideCreateRequest,
    RideResponse,
    RideUpdateRequest,
    SeatAdjustRequest,
)
from src.config import settings
from src.domain.entities import Principal
from src.domain.enums import Role
from src.infrastructure.idempotency import IdempotencyStore
from src.infrastructure.redis_client import get_redis
from src.services.ride_lifecycle import RideLifecycle
from src.services.seat_inventory import SeatInventory

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/rides", tags=["rides"])


@router.post(
    "",
    status_code=201,
    response_model=RideResponse,
    summary="Create a ride",
)
@limiter.limit(settings.rate_limit)
async def create_ride(
    request: Request,
    body: RideCreateRequest,
    principal: Principal = Depends(require_role(Role.DRIVER)),
    lifecycle: RideLifecycle = Depends(get_lifecycle),
):
    ride = await lifecycle.create_ride(
        principal,
        route_from=body.route_from,
        route_from_loc=body.route_from_loc.to_domain() if body.route_from_loc else None,
        route_to=body.route_to,
        route_to_loc=body.route_to_loc.to_domain() if body.route_to_loc else None,
        stops=[stop.to_domain() for stop in body.stops],
        time=body.time,
        total_seats=body.total_seats,
    )
    return RideResponse.from_entity(ride)


@router.get(
    "",
    response_model=list[RideResponse],
    summary="List active rides, newest first",
)
@limiter.limit(settings.rate_limit)
async def list_rides(
    request: Request,
    driver_only: bool = Query(False, alias="driverOnly"),
    include_inactive: bool = Query(False, alias="includeInactive"),
    principal: Principal = Depends(get_principal),
    lifecycle: RideLifecycle = Depends(get_lifecycle),
):
    rides = await lifecycle.list_rides(
        principal, driver_only=driver_only, include_inactive=include_inactive
    )
    return [RideResponse.from_entity(r) for r in rides]


@router.get(
    "/{ride_id}",
    response_model=RideResponse,
    summary="Get one ride",
)
@limiter.limit(settings.rate_limit)
async def get_ride(
    request: Request,
    ride_id: str,
    principal: Principal = Depends(get_principal),
    lifecycle: RideLifecycle = Depends(get_lifecycle),
):
    return RideResponse.from_entity(await lifecycle.get_ride(principal, ride_id))


@router.patch(
    "/{ride_id}",
    response_model=RideResponse,
    summary="Update a ride",
    description=(
        "Owner only.  Changing totalSeats shifts seatsAvailable by the same "
        "amount, floored at zero; existing bookings are never cancelled."
    ),
)
@limiter.limit(settings.rate_limit)
async def update_ride(
    request: Request,
    ride_id: str,
    body: RideUpdateRequest,
    principal: Principal = Depends(require_role(Role.DRIVER)),
    lifecycle: RideLifecycle = Depends(get_lifecycle),
):
    ride = await lifecycle.update_ride(principal, ride_id, body.to_patch())
    return RideResponse.from_entity(ride)


@router.delete(
    "/{ride_id}",
    response_model=RideActionResponse,
    summary="Deactivate a ride",
)
@limiter.limit(settings.rate_limit)
async def deactivate_ride(
    request: Request,
    ride_id: str,
    principal: Principal = Depends(require_role(Role.DRIVER)),
    lifecycle: RideLifecycle = Depends(get_lifecycle),
):
    ride = await lifecycle.deactivate_ride(principal, ride_id)
    return RideActionResponse(message="Ride deactivated", ride=RideResponse.from_entity(ride))


@router.patch(
    "/{ride_id}/book",
    response_model=RideResponse,
    summary="Book a seat",
    responses={
        400: {"description": "Already booked, or no seats available"},
        409: {"description": "Ride is inactive, or the write kept losing a race"},
    },
)
@limiter.limit(settings.rate_limit)
async def book_ride(
    request: Request,
    ride_id: str,
    principal: Principal = Depends(require_role(Role.STUDENT)),
    inventory: SeatInventory = Depends(get_seat_inventory),
):
    return RideResponse.from_entity(await inventory.book(principal, ride_id))


@router.delete(
    "/{ride_id}/book",
    response_model=RideResponse,
    summary="Cancel own booking",
)
@limiter.limit(settings.rate_limit)
async def cancel_booking(
    request: Request,
    ride_id: str,
    principal: Principal = Depends(require_role(Role.STUDENT)),
    inventory: SeatInventory = Depends(get_seat_inventory),
):
    return RideResponse.from_entity(await inventory.cancel_booking(principal, ride_id))


@router.patch(
    "/{ride_id}/seats",
    response_model=RideResponse,
    summary="Adjust available seats",
    description=(
        "Owner only.  increment / decrement are not idempotent: send an "
        "Idempotency-Key header so a retried request is answered from the "
        "first attempt instead of being applied twice."
    ),
)
@limiter.limit(settings.rate_limit)
async def adjust_seats(
    request: Request,
    ride_id: str,
    body: SeatAdjustRequest,
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key", max_length=128),
    principal: Principal = Depends(require_role(Role.DRIVER)),
    inventory: SeatInventory = Depends(get_seat_inventory),
    db: AsyncSession = Depends(get_db),
    redis: aioredis.Redis = Depends(get_redis),
):
    if not idempotency_key:
        ride = await inventory.adjust_seats(principal, ride_id, body.action, body.amount)
        return RideResponse.from_entity(ride)

    store = IdempotencyStore(
        redis,
        scope=f"{principal.identity}:{ride_id}:seats",
        key=idempotency_key,
        ttl_seconds=settings.idempotency_ttl_seconds,
        pending_ttl_seconds=settings.idempotency_pending_ttl_seconds,
    )
    if not await store.claim():
        stored = await store.stored_response()
        if stored is None:
            raise HTTPException(
                status_code=409,
                detail="A request with this Idempotency-Key is still in progress",
            )
        logger.info("Replaying seat adjustment %s on ride %s", idempotency_key, ride_id)
        return RideResponse.model_validate_json(stored)

    try:
        ride = await inventory.adjust_seats(principal, ride_id, body.action, body.amount)
        # the stored response must never describe an uncommitted change
        await db.commit()
    except Exception:
        await store.release()
        raise

    response = RideResponse.from_entity(ride)
    await store.complete(response.model_dump_json(by_alias=True))
    return response
