"""
Journal entry schemas.

Stored records (JournalEntry, AudioNote) keep their date-like fields as raw
strings: a corrupt value must survive a read so the repair pass can fix it.

POST  /entries          → EntryCreate  → JournalEntry
PATCH /entries/{id}     → EntryUpdate  → JournalEntry
POST  /entries/repair   →                RepairResponse
"""
from __future__ import annotations

import enum
from datetime import date, datetime
from typing import Annotated, Any, Optional

from pydantic import ConfigDict, Field, field_validator

from corpsjournal.schemas.common import CamelModel


class Mood(str, enum.Enum):
    happy = "happy"
    sad = "sad"
    excited = "excited"
    thoughtful = "thoughtful"
    anxious = "anxious"
    grateful = "grateful"
    calm = "calm"
    tired = "tired"


class SyncStatus(str, enum.Enum):
    local = "local"
    pending_sync = "pendingSync"
    synced = "synced"


def _coerce_instant(v: Any) -> Optional[str]:
    if isinstance(v, datetime):
        return v.isoformat()
    if isinstance(v, date):
        return v.isoformat()
    return v if isinstance(v, str) else None


def _coerce_mood(v: Any) -> Optional[str]:
    if isinstance(v, Mood):
        return v.value
    if isinstance(v, str) and v in Mood._value2member_map_:
        return v
    return None


def _coerce_str_list(v: Any) -> list[str]:
    if not isinstance(v, (list, tuple)):
        return []
    return [item for item in v if isinstance(item, str)]


# ---------------------------------------------------------------------------
# Stored records
# ---------------------------------------------------------------------------

class AudioNote(CamelModel):
    """An audio attachment. `uri` is None on backup placeholders."""
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    uri: Optional[str] = None
    name: str = ""
    date: Optional[str] = None
    duration: Optional[float] = None

    @field_validator("date", mode="before")
    @classmethod
    def coerce_date(cls, v: Any) -> Optional[str]:
        return _coerce_instant(v)

    @field_validator("duration", mode="before")
    @classmethod
    def coerce_duration(cls, v: Any) -> Optional[float]:
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            return None
        return v

    @field_validator("name", mode="before")
    @classmethod
    def coerce_name(cls, v: Any) -> str:
        return v if isinstance(v, str) else ""


class JournalEntry(CamelModel):
    """One journal entry as stored in the `entries` collection."""
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    title: str = ""
    content: str = ""
    date: Optional[str] = None
    mood: Optional[Mood] = None
    tags: list[str] = Field(default_factory=list)
    images: list[str] = Field(default_factory=list)
    audio_notes: list[AudioNote] = Field(default_factory=list)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    sync_status: SyncStatus = SyncStatus.local

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> Optional[str]:
        # Older builds wrote numeric millisecond ids
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(int(v))
        return v if isinstance(v, str) and v else None

    @field_validator("date", "created_at", "updated_at", mode="before")
    @classmethod
    def coerce_instants(cls, v: Any) -> Optional[str]:
        return _coerce_instant(v)

    @field_validator("mood", mode="before")
    @classmethod
    def coerce_mood(cls, v: Any) -> Optional[str]:
        return _coerce_mood(v)

    @field_validator("title", "content", mode="before")
    @classmethod
    def coerce_text(cls, v: Any) -> str:
        return v if isinstance(v, str) else ""

    @field_validator("tags", "images", mode="before")
    @classmethod
    def coerce_lists(cls, v: Any) -> list[str]:
        return _coerce_str_list(v)

    @field_validator("audio_notes", mode="before")
    @classmethod
    def coerce_audio_notes(cls, v: Any) -> list:
        if not isinstance(v, (list, tuple)):
            return []
        return [note for note in v if isinstance(note, (dict, AudioNote))]

    @field_validator("sync_status", mode="before")
    @classmethod
    def coerce_sync_status(cls, v: Any) -> str:
        if isinstance(v, SyncStatus):
            return v.value
        if isinstance(v, str) and v in SyncStatus._value2member_map_:
            return v
        return SyncStatus.local.value

    def media_paths(self) -> list[str]:
        """Every file path this entry references (images, then audio)."""
        paths = list(self.images)
        paths.extend(note.uri for note in self.audio_notes if note.uri)
        return paths


# ---------------------------------------------------------------------------
# Request / response schemas
# ---------------------------------------------------------------------------

class EntryCreate(CamelModel):
    """A new entry, or a full replacement when `id` matches an existing one."""
    id: Optional[str] = Field(default=None, description="Caller-supplied id. Generated when omitted.")
    title: Annotated[str, Field(max_length=100, description="Entry title.")] = ""
    content: str = ""
    date: Optional[datetime] = Field(
        default=None,
        description="Calendar date the entry represents. Defaults to now.",
        examples=["2026-02-20T09:30:00+01:00"],
    )
    mood: Optional[Mood] = None
    tags: list[str] = Field(default_factory=list)
    images: list[str] = Field(default_factory=list, description="Permanent media paths.")
    audio_notes: list[AudioNote] = Field(default_factory=list)
    created_at: Optional[datetime] = None


class EntryUpdate(CamelModel):
    """Partial update. Only fields present in the request body are merged."""
    title: Optional[Annotated[str, Field(max_length=100)]] = None
    content: Optional[str] = None
    date: Optional[datetime] = None
    mood: Optional[Mood] = None
    tags: Optional[list[str]] = None
    images: Optional[list[str]] = None
    audio_notes: Optional[list[AudioNote]] = None


class EntryCountResponse(CamelModel):
    month: int
    year: int
    count: int


class RepairResponse(CamelModel):
    fixed_count: int = Field(description="Entries whose dates were repaired.")
