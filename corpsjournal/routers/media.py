"""
Media router.

POST /media/images
POST /media/audio
POST /media/sweep
GET  /media/stats
"""
from fastapi import APIRouter, Depends, status

from corpsjournal.core.deps import Services, get_services
from corpsjournal.schemas.media import (
    MediaSaveRequest,
    MediaSaveResponse,
    MediaStatsResponse,
    SweepResponse,
)

router = APIRouter(prefix="/media", tags=["media"])


@router.post(
    "/images",
    response_model=MediaSaveResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Copy an image into permanent storage",
    responses={500: {"description": "The copy failed. The attachment was not stored."}},
)
def save_image(payload: MediaSaveRequest, services: Services = Depends(get_services)):
    return MediaSaveResponse(path=services.media.save_image(payload.temp_path, payload.entry_id))


@router.post(
    "/audio",
    response_model=MediaSaveResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Copy an audio recording into permanent storage",
    responses={500: {"description": "The copy failed. The attachment was not stored."}},
)
def save_audio(payload: MediaSaveRequest, services: Services = Depends(get_services)):
    return MediaSaveResponse(path=services.media.save_audio(payload.temp_path, payload.entry_id))


@router.post(
    "/sweep",
    response_model=SweepResponse,
    summary="Delete media files no entry references",
)
def sweep_media(services: Services = Depends(get_services)):
    return SweepResponse(deleted_count=services.entries.sweep_media())


@router.get("/stats", response_model=MediaStatsResponse, summary="Media storage usage")
def media_stats(services: Services = Depends(get_services)):
    return services.media.stats().to_dict()
