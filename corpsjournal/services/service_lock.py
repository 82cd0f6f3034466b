"""
Service lock engine: decides whether the journal is still editable.

State machine, evaluated on every full check
--------------------------------------------
confidence > 75                    → LOCKED_TIME_MANIPULATION
trusted time > end + grace period  → LOCKED_COMPLETED
trusted time > end                 → GRACE_PERIOD (editable, countdown)
otherwise                          → ACTIVE

Confidence comes from tamper signals measured against a rolling log of the
last 10 checkpoints: 50 per HIGH signal, 25 per MEDIUM, capped at 100.

`can_edit()` and `get_lock_message()` read the cached status and never touch
the network. Only `check_status()` recomputes.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Optional

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from corpsjournal.core.config import settings
from corpsjournal.core.dates import add_years, days_until, parse_instant, to_iso
from corpsjournal.core.logging import setup_logger
from corpsjournal.schemas.lock import (
    LockReason,
    LockState,
    LockStatus,
    Severity,
    TamperSignal,
    TimeCheckpoint,
    TrustLevel,
)
from corpsjournal.schemas.profile import ServiceProfile
from corpsjournal.services.kv_store import KeyValueStore, StoreKeys
from corpsjournal.services.service_profile import ServiceProfileStore
from corpsjournal.services.time_sources import TimeOracle, TrustedTime

logger = setup_logger("service_lock")

MAX_CHECKPOINTS = 10
BACKWARDS_TOLERANCE = timedelta(seconds=60)
MAX_FORWARD_JUMP = timedelta(days=7)
MANIPULATION_THRESHOLD = 75
LOW_TRUST_THRESHOLD = 50

MESSAGE_MANIPULATION = "Suspicious time changes detected. App locked for security."
MESSAGE_COMPLETED = "Your NYSC service year has concluded. The app is now in read-only mode."
MESSAGE_LOCKED_DEFAULT = "Your service year has ended. The app is now read-only."

_SEVERITY_WEIGHTS = {Severity.HIGH: 50, Severity.MEDIUM: 25}


@dataclass
class TamperAssessment:
    confidence: int = 0
    signals: list[TamperSignal] = field(default_factory=list)


def assess_tampering(checkpoints: list[TimeCheckpoint], device_now: datetime) -> TamperAssessment:
    """Score the current device time against the rolling checkpoint log."""
    if not checkpoints:
        return TamperAssessment()

    signals: list[TamperSignal] = []
    last_device = parse_instant(checkpoints[-1].device_time)
    if last_device is not None:
        delta = device_now - last_device
        if delta < -BACKWARDS_TOLERANCE:
            signals.append(TamperSignal(
                type="DEVICE_CLOCK_BACKWARDS",
                severity=Severity.HIGH,
                description="Device time moved backwards significantly",
                evidence=f"Time moved back by {abs(delta.total_seconds()):.0f} seconds",
            ))
        if delta > MAX_FORWARD_JUMP:
            signals.append(TamperSignal(
                type="TIME_JUMP_FORWARD",
                severity=Severity.MEDIUM,
                description="Device time jumped forward unusually",
                evidence=f"Time jumped forward by {delta / timedelta(days=1):.1f} days",
            ))

    observed = [
        moment
        for checkpoint in checkpoints
        for moment in (parse_instant(t) for t in checkpoint.network_times)
        if moment is not None
    ]
    if observed:
        latest_network = max(observed)
        behind = latest_network - device_now
        if behind > BACKWARDS_TOLERANCE:
            signals.append(TamperSignal(
                type="BEHIND_OBSERVED_NETWORK_TIME",
                severity=Severity.HIGH,
                description="Device time is earlier than a network time already observed",
                evidence=f"Device is {behind.total_seconds():.0f} seconds behind",
            ))

    confidence = min(100, sum(_SEVERITY_WEIGHTS[s.severity] for s in signals))
    return TamperAssessment(confidence=confidence, signals=signals)


def service_end_date(profile: Optional[ServiceProfile]) -> Optional[datetime]:
    """Stored endDate, or startDate + 1 year when endDate is unusable."""
    if profile is None:
        return None
    end = parse_instant(profile.end_date)
    if end is not None:
        return end
    start = parse_instant(profile.start_date)
    return add_years(start, 1) if start is not None else None


def evaluate_lock(
    profile: Optional[ServiceProfile],
    trusted_now: datetime,
    assessment: TamperAssessment,
    grace_days: int = settings.GRACE_PERIOD_DAYS,
) -> LockStatus:
    status = LockStatus(
        confidence=assessment.confidence,
        signals=assessment.signals,
        trust_level=(
            TrustLevel.LOW if assessment.confidence > LOW_TRUST_THRESHOLD else TrustLevel.HIGH
        ),
        checked_at=to_iso(trusted_now),
        timezone=settings.SERVICE_TIMEZONE_NAME,
    )

    end = service_end_date(profile) if profile and profile.start_date else None
    grace_end = end + timedelta(days=grace_days) if end is not None else None
    if end is not None:
        status.service_end_date = to_iso(end)
        status.grace_period_end = to_iso(grace_end)

    if assessment.confidence > MANIPULATION_THRESHOLD:
        status.state = LockState.LOCKED_TIME_MANIPULATION
        status.is_locked = True
        status.reason = LockReason.TIME_MANIPULATION
        status.message = MESSAGE_MANIPULATION
        return status

    if end is None:
        return status

    if trusted_now > grace_end:
        status.state = LockState.LOCKED_COMPLETED
        status.is_locked = True
        status.reason = LockReason.SERVICE_COMPLETED
        status.message = MESSAGE_COMPLETED
        status.days_remaining = 0
    elif trusted_now > end:
        days_left = days_until(grace_end, trusted_now)
        status.state = LockState.GRACE_PERIOD
        status.reason = LockReason.GRACE_PERIOD
        status.message = f"Service year ended. {days_left} days left for final entries."
        status.days_remaining = days_left
    else:
        status.days_remaining = days_until(end, trusted_now)
    return status


class ServiceLockEngine:

    def __init__(
        self,
        store: KeyValueStore,
        profiles: ServiceProfileStore,
        oracle: TimeOracle,
        device_clock: Callable[[], datetime],
        grace_days: int = settings.GRACE_PERIOD_DAYS,
    ):
        self._store = store
        self._profiles = profiles
        self._oracle = oracle
        self._device_clock = device_clock
        self._grace_days = grace_days
        self._in_flight = False

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    # ------------------------------------------------------------------
    # Full recomputation
    # ------------------------------------------------------------------

    async def check_status(self, profile: Optional[ServiceProfile] = None) -> LockStatus:
        if self._in_flight:
            logger.info("Lock check already running, returning cached status")
            return self.cached_status()

        self._in_flight = True
        try:
            profile = profile if profile is not None else self._profiles.get_profile()
            device_now = self._device_clock()
            trusted: TrustedTime = await self._oracle.trusted_time()

            checkpoints = self.checkpoints()
            assessment = assess_tampering(checkpoints, device_now)
            status = evaluate_lock(profile, trusted.time, assessment, self._grace_days)
            status.time_source = trusted.source

            self._append_checkpoint(checkpoints, device_now, trusted)
            self._persist(status)
        finally:
            self._in_flight = False

        if assessment.signals:
            kinds = ", ".join(s.type for s in assessment.signals)
            logger.warning(f"Tamper signals ({assessment.confidence}): {kinds}")
        logger.info(f"Lock status: {status.state.value} (source={trusted.source})")
        return status

    def _append_checkpoint(
        self, checkpoints: list[TimeCheckpoint], device_now: datetime, trusted: TrustedTime
    ) -> None:
        checkpoint = TimeCheckpoint(
            id=str(int(device_now.timestamp() * 1000)),
            device_time=to_iso(device_now),
            network_times=[to_iso(t) for t in trusted.network_times],
            created_at=to_iso(device_now),
        )
        window = (checkpoints + [checkpoint])[-MAX_CHECKPOINTS:]
        try:
            self._store.set_json(StoreKeys.TIME_CHECKPOINTS, [c.to_store() for c in window])
        except SQLAlchemyError as exc:
            logger.error(f"Error storing time checkpoint: {exc}")

    def _persist(self, status: LockStatus) -> None:
        try:
            self._store.set_json(StoreKeys.LOCK_STATUS, status.to_store())
        except SQLAlchemyError as exc:
            logger.error(f"Error caching lock status: {exc}")

    # ------------------------------------------------------------------
    # Cache reads
    # ------------------------------------------------------------------

    def checkpoints(self) -> list[TimeCheckpoint]:
        try:
            raw = self._store.get_json(StoreKeys.TIME_CHECKPOINTS, default=[])
        except SQLAlchemyError as exc:
            logger.error(f"Error reading time checkpoints: {exc}")
            return []
        if not isinstance(raw, list):
            return []
        checkpoints = []
        for item in raw:
            try:
                checkpoints.append(TimeCheckpoint.model_validate(item))
            except ValidationError:
                logger.warning("Skipping unreadable time checkpoint")
        return checkpoints[-MAX_CHECKPOINTS:]

    def cached_status(self) -> LockStatus:
        try:
            raw = self._store.get_json(StoreKeys.LOCK_STATUS)
        except SQLAlchemyError as exc:
            logger.error(f"Error reading cached lock status: {exc}")
            return LockStatus()
        if not isinstance(raw, dict):
            return LockStatus()
        try:
            return LockStatus.model_validate(raw)
        except ValidationError as exc:
            logger.warning(f"Unreadable cached lock status: {exc}")
            return LockStatus()

    def can_edit(self) -> bool:
        return self.cached_status().can_edit

    def get_lock_message(self) -> Optional[str]:
        status = self.cached_status()
        if status.is_locked:
            return status.message or MESSAGE_LOCKED_DEFAULT
        if status.reason == LockReason.GRACE_PERIOD:
            return status.message
        return None
