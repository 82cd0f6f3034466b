"""
Backup router.

GET    /backup/export
POST   /backup/import?mode=merge|replace
DELETE /data
"""
from fastapi import APIRouter, Depends, Query, Request, Response, status

from corpsjournal.core.deps import Services, get_services, require_editable
from corpsjournal.core.errors import CorpsJournalError, ImportValidationError
from corpsjournal.services.backup import ImportMode

router = APIRouter(tags=["backup"])


@router.get(
    "/backup/export",
    summary="Export a media-stripped backup document",
    responses={200: {"description": "Backup document with metadata, entries, settings and badges."}},
)
def export_backup(services: Services = Depends(get_services)):
    """
    Images are replaced by their file names and audio notes by placeholders.
    Counts towards the Data Guardian badge.
    """
    document = services.backup.export()
    services.badges.record_export()
    return document


@router.post(
    "/backup/import",
    summary="Import a backup document",
    responses={
        200: {"description": "Import statistics."},
        422: {"description": "The document is not valid JSON or has no entries array."},
    },
)
async def import_backup(
    request: Request,
    mode: ImportMode = Query(default=ImportMode.MERGE, description="`merge` keeps existing entries."),
    services: Services = Depends(require_editable),
):
    """
    The request body is the exported JSON document, read as-is so malformed
    files come back as a structured import error.
    """
    body = await request.body()
    result = services.backup.import_document(body, mode)
    if not result.success:
        raise ImportValidationError(result.error)
    return result.to_dict()


@router.delete(
    "/data",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete all entries, settings and media",
)
def clear_all_data(services: Services = Depends(require_editable)):
    if not services.entries.clear_all():
        raise CorpsJournalError("Journal data could not be cleared.")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
