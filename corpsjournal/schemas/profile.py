"""
Service profile schemas.

GET /profile  → ServiceProfile
PUT /profile  → ProfileUpdate → ServiceProfile
"""
from __future__ import annotations

from datetime import date, datetime
from typing import Annotated, Any, Optional

from pydantic import ConfigDict, Field, field_validator

from corpsjournal.schemas.common import CamelModel

MAX_DATE_CHANGES = 3
SERVICE_TOTAL_DAYS = 365


class ServiceProfile(CamelModel):
    """The single service-info record of the corps member."""
    model_config = ConfigDict(extra="allow")

    name: str = ""
    state_of_deployment: str = ""
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    total_days: int = SERVICE_TOTAL_DAYS
    date_changes_left: int = MAX_DATE_CHANGES
    date_first_set: Optional[str] = None

    @field_validator("start_date", "end_date", "date_first_set", mode="before")
    @classmethod
    def coerce_instants(cls, v: Any) -> Optional[str]:
        if isinstance(v, (datetime, date)):
            return v.isoformat()
        return v if isinstance(v, str) else None

    @field_validator("name", "state_of_deployment", mode="before")
    @classmethod
    def coerce_text(cls, v: Any) -> str:
        return v if isinstance(v, str) else ""


class ProfileUpdate(CamelModel):
    name: Annotated[str, Field(min_length=1, max_length=120, description="Corps member name.")]
    state_of_deployment: str = Field(default="", max_length=60)
    start_date: datetime = Field(
        description="Service start date. The end date is derived as start + 1 year.",
        examples=["2026-03-10T00:00:00+01:00"],
    )

    @field_validator("name", mode="before")
    @classmethod
    def strip_and_check_empty(cls, v: str) -> str:
        stripped = v.strip() if isinstance(v, str) else v
        if not stripped:
            raise ValueError("name must not be empty after stripping whitespace")
        return stripped
