"""
Entries router.

GET    /entries
POST   /entries
GET    /entries/count
POST   /entries/repair
GET    /entries/{entry_id}
PATCH  /entries/{entry_id}
DELETE /entries/{entry_id}
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status

from corpsjournal.core.deps import Services, get_services, require_editable
from corpsjournal.core.errors import CorpsJournalError, EntryNotFoundError
from corpsjournal.schemas.entry import (
    EntryCountResponse,
    EntryCreate,
    EntryUpdate,
    JournalEntry,
    RepairResponse,
)

router = APIRouter(prefix="/entries", tags=["entries"])


@router.get(
    "",
    response_model=list[JournalEntry],
    response_model_by_alias=True,
    summary="List, search or filter journal entries",
)
def list_entries(
    q: Optional[str] = Query(default=None, description="Case-insensitive search over title, content and tags."),
    month: Optional[int] = Query(default=None, ge=0, le=11, description="0-based month. Requires `year`."),
    year: Optional[int] = Query(default=None, ge=1900, le=9999),
    services: Services = Depends(get_services),
):
    """
    - `q` runs a search and counts towards the Search Explorer badge.
    - `month` + `year` restrict the result to one calendar month.
    """
    if q is not None and q.strip():
        entries = services.entries.search(q)
        services.badges.record_search()
    elif month is not None and year is not None:
        entries = services.entries.by_month(month, year)
    else:
        entries = services.entries.list()
    return entries


@router.post(
    "",
    response_model=JournalEntry,
    response_model_by_alias=True,
    status_code=status.HTTP_201_CREATED,
    summary="Create or replace a journal entry",
    responses={409: {"description": "The journal is locked."}},
)
def save_entry(payload: EntryCreate, services: Services = Depends(require_editable)):
    """Upsert by id. A previously unseen id counts as a newly created entry."""
    is_new = payload.id is None or services.entries.get(payload.id) is None
    entry_id = services.entries.save(payload.model_dump(by_alias=True, mode="json"))
    if entry_id is None:
        raise CorpsJournalError("The journal entry could not be saved.")

    saved = services.entries.get(entry_id)
    if is_new:
        services.badges.record_entry_created(saved)
    return saved


@router.get(
    "/count",
    response_model=EntryCountResponse,
    summary="Number of entries in a calendar month",
)
def count_entries(
    month: int = Query(ge=0, le=11, description="0-based month."),
    year: int = Query(ge=1900, le=9999),
    services: Services = Depends(get_services),
):
    return EntryCountResponse(month=month, year=year, count=services.entries.count_by_month(month, year))


@router.post(
    "/repair",
    response_model=RepairResponse,
    response_model_by_alias=True,
    summary="Repair missing or unparseable entry dates",
)
def repair_entries(services: Services = Depends(get_services)):
    result = services.entries.validate_and_repair()
    return RepairResponse(fixed_count=result.fixed_count)


@router.get(
    "/{entry_id}",
    response_model=JournalEntry,
    response_model_by_alias=True,
    responses={404: {"description": "Entry not found."}},
)
def get_entry(entry_id: str, services: Services = Depends(get_services)):
    entry = services.entries.get(entry_id)
    if entry is None:
        raise EntryNotFoundError(entry_id)
    return entry


@router.patch(
    "/{entry_id}",
    response_model=JournalEntry,
    response_model_by_alias=True,
    summary="Merge fields into an existing entry",
    responses={404: {"description": "Entry not found."}, 409: {"description": "The journal is locked."}},
)
def update_entry(entry_id: str, payload: EntryUpdate, services: Services = Depends(require_editable)):
    fields = payload.model_dump(by_alias=True, mode="json", exclude_unset=True)
    if not services.entries.update(entry_id, fields):
        raise EntryNotFoundError(entry_id)
    return services.entries.get(entry_id)


@router.delete(
    "/{entry_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete an entry and its media files",
    responses={404: {"description": "Entry not found."}, 409: {"description": "The journal is locked."}},
)
def delete_entry(entry_id: str, services: Services = Depends(require_editable)):
    if not services.entries.delete(entry_id):
        raise EntryNotFoundError(entry_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
