"""FastAPI dependency injection helpers."""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from src.infrastructure.database import async_session_factory
from src.infrastructure.repositories import RideRepository
from src.services.ride_lifecycle import RideLifecycle
from src.services.seat_inventory import SeatInventory


async def get_db() -> AsyncSession:  # type: ignore[misc]
    """Yield an async DB session; commit on success, rollback on error."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def get_ride_repository(db: AsyncSession = Depends(get_db)) -> RideRepository:
    return RideRepository(db)


def get_lifecycle(rides: RideRepository = Depends(get_ride_repository)) -> RideLifecycle:
    return RideLifecycle(rides)


def get_seat_inventory(rides: RideRepository = Depends(get_ride_repository)) -> SeatInventory:
    return SeatInventory(rides)
