"""
Service profile store: the corps member's service info and the settings blob.

Canonical location of the profile is the standalone `serviceInfo` record.
Older builds also wrote it under `settings.serviceInfo`; when the canonical
record is missing, that copy is read and written to `serviceInfo`. The copy
inside settings is left as it is.
"""
from __future__ import annotations

import json
from datetime import datetime, timedelta
from typing import Any, Callable, Optional

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from corpsjournal.core.dates import add_years, calendar_day, now_local, parse_instant, to_iso, to_local
from corpsjournal.core.logging import setup_logger
from corpsjournal.schemas.profile import (
    MAX_DATE_CHANGES,
    SERVICE_TOTAL_DAYS,
    ServiceProfile,
)
from corpsjournal.services.kv_store import KeyValueStore, StoreKeys

logger = setup_logger("service_profile")

# Start-date edits inside this window after the first save are free
DATE_CHANGE_GRACE_DAYS = 30
_LEGACY_SETTINGS_KEY = "serviceInfo"


class ServiceProfileStore:

    def __init__(self, store: KeyValueStore, clock: Callable[[], datetime] = now_local):
        self._store = store
        self._clock = clock

    # ------------------------------------------------------------------
    # Settings blob
    # ------------------------------------------------------------------

    def get_settings(self) -> dict[str, Any]:
        try:
            value = self._store.get_json(StoreKeys.SETTINGS, default={})
        except SQLAlchemyError as exc:
            logger.error(f"Error getting settings: {exc}")
            return {}
        return value if isinstance(value, dict) else {}

    def save_settings(self, values: dict[str, Any]) -> bool:
        try:
            self._store.set_json(StoreKeys.SETTINGS, values)
        except SQLAlchemyError as exc:
            logger.error(f"Error saving settings: {exc}")
            return False
        return True

    # ------------------------------------------------------------------
    # Profile
    # ------------------------------------------------------------------

    def get_profile(self) -> Optional[ServiceProfile]:
        try:
            raw = self._store.get_json(StoreKeys.SERVICE_INFO)
        except SQLAlchemyError as exc:
            logger.error(f"Error getting service info: {exc}")
            return None

        if raw is not None:
            return self._parse(raw, origin=StoreKeys.SERVICE_INFO)

        legacy = self.get_settings().get(_LEGACY_SETTINGS_KEY)
        if legacy is None:
            return None
        profile = self._parse(legacy, origin=f"settings.{_LEGACY_SETTINGS_KEY}")
        if profile is not None:
            logger.info("Migrating service info from settings to its own record")
            self.replace_raw(profile.to_store())
        return profile

    @staticmethod
    def _parse(raw: Any, origin: str) -> Optional[ServiceProfile]:
        # Some builds stored the profile as a JSON string inside the JSON value
        if isinstance(raw, str):
            try:
                raw = json.loads(raw)
            except ValueError:
                logger.error(f"Unparseable service info in {origin}")
                return None
        if not isinstance(raw, dict):
            logger.error(f"Service info in {origin} is not an object")
            return None
        try:
            return ServiceProfile.model_validate(raw)
        except ValidationError as exc:
            logger.error(f"Invalid service info in {origin}: {exc}")
            return None

    def replace_raw(self, values: dict[str, Any]) -> bool:
        """Overwrite the canonical record as-is (backup import, migration)."""
        try:
            self._store.set_json(StoreKeys.SERVICE_INFO, values)
        except SQLAlchemyError as exc:
            logger.error(f"Error saving service info: {exc}")
            return False
        return True

    def in_grace_window(
        self, profile: Optional[ServiceProfile] = None, now: Optional[datetime] = None
    ) -> bool:
        profile = profile if profile is not None else self.get_profile()
        first_set = parse_instant(profile.date_first_set) if profile else None
        if first_set is None:
            return True
        now = now or self._clock()
        return now < first_set + timedelta(days=DATE_CHANGE_GRACE_DAYS)

    def can_change_start_date(self, now: Optional[datetime] = None) -> bool:
        profile = self.get_profile()
        if profile is None:
            return True
        return profile.date_changes_left > 0 or self.in_grace_window(profile, now)

    def save_profile(
        self,
        name: str,
        state_of_deployment: str,
        start_date: datetime | str,
        now: Optional[datetime] = None,
    ) -> Optional[ServiceProfile]:
        """
        Save the profile, deriving endDate = startDate + 1 year.

        Changing an existing start date after the grace window costs one of
        the remaining date changes. Returns None, writing nothing, when such
        a change is requested with no changes left or the start date cannot
        be parsed.
        """
        now = now or self._clock()
        start = parse_instant(start_date)
        if start is None:
            logger.warning(f"Service info not saved: unparseable start date {start_date!r}")
            return None
        start = to_local(start)

        existing = self.get_profile()
        changes_left = existing.date_changes_left if existing else MAX_DATE_CHANGES
        first_set = parse_instant(existing.date_first_set) if existing else None

        start_changed = (
            existing is not None
            and existing.start_date is not None
            and calendar_day(existing.start_date) != start.date()
        )
        if start_changed and not self.in_grace_window(existing, now):
            if changes_left <= 0:
                logger.warning("Start date change refused: no changes left")
                return None
            changes_left -= 1

        profile = ServiceProfile(
            name=name,
            state_of_deployment=state_of_deployment,
            start_date=to_iso(start),
            end_date=to_iso(add_years(start, 1)),
            total_days=SERVICE_TOTAL_DAYS,
            date_changes_left=max(0, changes_left),
            date_first_set=to_iso(first_set or now),
        )
        if not self.replace_raw(profile.to_store()):
            return None
        logger.info(f"Service info saved (start={profile.start_date}, changes_left={changes_left})")
        return profile
