"""
Service lock schemas.

GET  /lock        → LockStatus (cached)
POST /lock/check  → LockStatus (recomputed)
"""
from __future__ import annotations

import enum
from typing import Optional

from pydantic import ConfigDict, Field

from corpsjournal.schemas.common import CamelModel


class LockState(str, enum.Enum):
    ACTIVE = "ACTIVE"
    GRACE_PERIOD = "GRACE_PERIOD"
    LOCKED_COMPLETED = "LOCKED_COMPLETED"
    LOCKED_TIME_MANIPULATION = "LOCKED_TIME_MANIPULATION"


class LockReason(str, enum.Enum):
    TIME_MANIPULATION = "TIME_MANIPULATION"
    SERVICE_COMPLETED = "SERVICE_COMPLETED"
    GRACE_PERIOD = "GRACE_PERIOD"


class TrustLevel(str, enum.Enum):
    HIGH = "HIGH"
    LOW = "LOW"


class Severity(str, enum.Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"


class TamperSignal(CamelModel):
    type: str
    severity: Severity
    description: str
    evidence: str = ""


class TimeCheckpoint(CamelModel):
    """One entry of the rolling device/network time log."""
    model_config = ConfigDict(extra="allow")

    id: str
    device_time: str
    network_times: list[str] = Field(default_factory=list)
    created_at: Optional[str] = None


class LockStatus(CamelModel):
    """Derived lock decision, cached between full recomputations."""
    model_config = ConfigDict(extra="allow")

    state: LockState = LockState.ACTIVE
    is_locked: bool = False
    reason: Optional[LockReason] = None
    message: Optional[str] = None
    service_end_date: Optional[str] = None
    grace_period_end: Optional[str] = None
    trust_level: TrustLevel = TrustLevel.HIGH
    days_remaining: Optional[int] = None
    confidence: int = 0
    signals: list[TamperSignal] = Field(default_factory=list)
    time_source: Optional[str] = None
    checked_at: Optional[str] = None
    timezone: Optional[str] = None

    @property
    def can_edit(self) -> bool:
        return not self.is_locked
