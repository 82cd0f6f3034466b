"""
Media schemas.

POST /media/images  → MediaSaveRequest → MediaSaveResponse
POST /media/audio   → MediaSaveRequest → MediaSaveResponse
POST /media/sweep   →                    SweepResponse
GET  /media/stats   →                    MediaStatsResponse
"""
from typing import Annotated

from pydantic import Field

from corpsjournal.schemas.common import CamelModel


class MediaSaveRequest(CamelModel):
    temp_path: Annotated[str, Field(min_length=1, description="Picker or recorder output to copy.")]
    entry_id: Annotated[str, Field(
        min_length=1,
        description="Owning entry id. May be a temporary id for an unsaved entry.",
    )]


class MediaSaveResponse(CamelModel):
    path: str


class SweepResponse(CamelModel):
    deleted_count: int


class MediaStatsResponse(CamelModel):
    total_bytes: int
    total_size_mb: str
    image_count: int
    audio_count: int
    total_files: int
