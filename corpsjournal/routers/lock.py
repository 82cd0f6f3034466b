"""
Lock router.

GET  /lock        cached status, no network
POST /lock/check  full recomputation against network time
"""
from fastapi import APIRouter, Depends

from corpsjournal.core.deps import Services, get_services
from corpsjournal.schemas.lock import LockStatus

router = APIRouter(prefix="/lock", tags=["lock"])


@router.get(
    "",
    response_model=LockStatus,
    response_model_by_alias=True,
    summary="Cached lock status",
)
def cached_lock_status(services: Services = Depends(get_services)):
    return services.lock.cached_status()


@router.post(
    "/check",
    response_model=LockStatus,
    response_model_by_alias=True,
    summary="Recompute the lock status",
)
async def check_lock_status(services: Services = Depends(get_services)):
    """
    Queries the network time sources, scores tamper signals against the
    checkpoint log and caches the result. A check already in flight returns
    the cached status.
    """
    return await services.lock.check_status()
