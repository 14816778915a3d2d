"""FastAPI dependencies."""

from typing import Annotated
from uuid import UUID

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import BadRequestException
from app.core.redis_client import CacheManager, get_redis_client
from app.database import get_db
from app.services.doctor_service import DoctorService


def get_cache_manager() -> CacheManager:
    """Get cache manager backed by the shared Redis client."""
    return CacheManager(redis_client=get_redis_client())


def get_doctor_service(
    cache_manager: Annotated[CacheManager, Depends(get_cache_manager)],
) -> DoctorService:
    """Get doctor service instance."""
    return DoctorService(cache_manager=cache_manager)


async def get_actor_id(
    x_actor_id: Annotated[str | None, Header()] = None,
) -> UUID | None:
    """
    Read the acting user from the X-Actor-Id header.

    Identity is established upstream; this service only records it.

    Raises:
        BadRequestException: If the header is not a valid UUID
    """
    if not x_actor_id:
        return None

    try:
        return UUID(x_actor_id)
    except ValueError:
        raise BadRequestException("X-Actor-Id must be a valid UUID")


# Type aliases for dependency injection
DatabaseSession = Annotated[AsyncSession, Depends(get_db)]
DoctorServiceDep = Annotated[DoctorService, Depends(get_doctor_service)]
ActorId = Annotated[UUID | None, Depends(get_actor_id)]
