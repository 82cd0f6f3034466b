"""
Profile router.

GET /profile
PUT /profile
GET /settings
PUT /settings
"""
from typing import Any

from fastapi import APIRouter, Body, Depends

from corpsjournal.core.deps import Services, get_services
from corpsjournal.core.errors import (
    CorpsJournalError,
    ProfileNotFoundError,
    StartDateChangeLimitError,
)
from corpsjournal.schemas.profile import ProfileUpdate, ServiceProfile

router = APIRouter(tags=["profile"])


@router.get(
    "/profile",
    response_model=ServiceProfile,
    response_model_by_alias=True,
    summary="Service info of the corps member",
    responses={404: {"description": "Service info has not been set up yet."}},
)
def get_profile(services: Services = Depends(get_services)):
    profile = services.profiles.get_profile()
    if profile is None:
        raise ProfileNotFoundError()
    return profile


@router.put(
    "/profile",
    response_model=ServiceProfile,
    response_model_by_alias=True,
    summary="Save service info",
    responses={409: {"description": "No start date changes left."}},
)
def save_profile(payload: ProfileUpdate, services: Services = Depends(get_services)):
    """
    The end date is derived as start + 1 year. Moving an existing start date
    more than 30 days after it was first set uses up one of three changes.
    """
    profile = services.profiles.save_profile(
        name=payload.name,
        state_of_deployment=payload.state_of_deployment,
        start_date=payload.start_date,
    )
    if profile is None:
        if not services.profiles.can_change_start_date():
            raise StartDateChangeLimitError()
        raise CorpsJournalError("Service info could not be saved.")
    return profile


@router.get("/settings", summary="App settings blob")
def get_settings(services: Services = Depends(get_services)) -> dict[str, Any]:
    return services.profiles.get_settings()


@router.put("/settings", summary="Replace the app settings blob")
def save_settings(
    values: dict[str, Any] = Body(..., examples=[{"theme": "dark", "notifications": True}]),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    if not services.profiles.save_settings(values):
        raise CorpsJournalError("Settings could not be saved.")
    return values
