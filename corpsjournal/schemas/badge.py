"""
Badge schemas.

GET  /badges                → dict[category, list[BadgeStatus]]
GET  /badges/recent         → list[Badge]
POST /badges/{id}/viewed    → Badge
"""
from __future__ import annotations

from typing import Any, Optional

from pydantic import ConfigDict, Field, field_validator

from corpsjournal.schemas.common import CamelModel


class BadgeProgress(CamelModel):
    """Aggregate usage counters, mutated incrementally."""
    model_config = ConfigDict(extra="allow")

    entries_count: int = 0
    streak_days: int = 0
    last_entry_date: Optional[str] = None
    tags_used: dict[str, int] = Field(default_factory=dict)
    search_count: int = 0
    export_count: int = 0
    first_entry_date: Optional[str] = None

    @field_validator("entries_count", "streak_days", "search_count", "export_count", mode="before")
    @classmethod
    def coerce_counter(cls, v: Any) -> int:
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            return 0
        return int(v)

    @field_validator("tags_used", mode="before")
    @classmethod
    def coerce_tags(cls, v: Any) -> dict:
        if not isinstance(v, dict):
            return {}
        return {
            str(tag): int(count)
            for tag, count in v.items()
            if isinstance(count, (int, float)) and not isinstance(count, bool)
        }


class Badge(CamelModel):
    """An awarded badge. At most one per definition id."""
    model_config = ConfigDict(extra="allow")

    id: str
    title: str = ""
    description: str = ""
    category: str = ""
    icon: str = ""
    awarded_at: Optional[str] = None
    viewed: bool = False


class BadgeStatus(CamelModel):
    """A badge definition annotated with whether it has been earned."""
    id: str
    title: str
    description: str
    category: str
    icon: str
    earned: bool
    earned_date: Optional[str] = None
