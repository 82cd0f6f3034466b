"""
Badges router.

GET  /badges
GET  /badges/recent
POST /badges/{badge_id}/viewed
"""
from fastapi import APIRouter, Depends, Query

from corpsjournal.core.deps import Services, get_services
from corpsjournal.core.errors import BadgeNotFoundError
from corpsjournal.schemas.badge import Badge, BadgeStatus

router = APIRouter(prefix="/badges", tags=["badges"])


@router.get(
    "",
    response_model=dict[str, list[BadgeStatus]],
    response_model_by_alias=True,
    summary="Every badge grouped by category, with earned status",
)
def all_badges(services: Services = Depends(get_services)):
    return services.badges.all_badges_with_status()


@router.get(
    "/recent",
    response_model=list[Badge],
    response_model_by_alias=True,
    summary="Most recently earned badges, newest first",
)
def recent_badges(
    limit: int = Query(default=5, ge=1, le=50),
    services: Services = Depends(get_services),
):
    return services.badges.recently_earned(limit)


@router.post(
    "/{badge_id}/viewed",
    response_model=Badge,
    response_model_by_alias=True,
    responses={404: {"description": "Badge has not been awarded."}},
)
def mark_viewed(badge_id: str, services: Services = Depends(get_services)):
    badge = services.badges.mark_badge_as_viewed(badge_id)
    if badge is None:
        raise BadgeNotFoundError(badge_id)
    return badge
