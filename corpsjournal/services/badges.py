"""
Badge engine: usage progress tracking and idempotent badge awards.

Progress and awards live in the `badgeProgress` and `badges` records. Every
recorder updates progress first and then runs the award sweep, which only
evaluates definitions that have not been awarded yet.
"""
from __future__ import annotations

import threading
from datetime import datetime, timedelta
from typing import Any, Callable, Iterable, Optional

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from corpsjournal.core.dates import now_local, parse_instant, to_iso
from corpsjournal.core.logging import setup_logger
from corpsjournal.schemas.badge import Badge, BadgeProgress, BadgeStatus
from corpsjournal.schemas.entry import JournalEntry
from corpsjournal.services.badge_definitions import BADGES, BadgeDefinition
from corpsjournal.services.kv_store import KeyValueStore, StoreKeys
from corpsjournal.services.service_profile import ServiceProfileStore

logger = setup_logger("badge_engine")


class BadgeEngine:

    def __init__(
        self,
        store: KeyValueStore,
        profiles: ServiceProfileStore,
        clock: Callable[[], datetime] = now_local,
        definitions: Iterable[BadgeDefinition] = BADGES,
    ):
        self._store = store
        self._profiles = profiles
        self._clock = clock
        self._definitions = tuple(definitions)
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------

    def get_progress(self) -> BadgeProgress:
        try:
            raw = self._store.get_json(StoreKeys.BADGE_PROGRESS, default={})
        except SQLAlchemyError as exc:
            logger.error(f"Error reading badge progress: {exc}")
            return BadgeProgress()
        if not isinstance(raw, dict):
            return BadgeProgress()
        try:
            return BadgeProgress.model_validate(raw)
        except ValidationError as exc:
            logger.error(f"Unreadable badge progress, starting fresh: {exc}")
            return BadgeProgress()

    def get_badges(self) -> list[Badge]:
        try:
            raw = self._store.get_json(StoreKeys.BADGES, default=[])
        except SQLAlchemyError as exc:
            logger.error(f"Error reading badges: {exc}")
            return []
        if not isinstance(raw, list):
            return []
        badges = []
        for item in raw:
            try:
                badges.append(Badge.model_validate(item))
            except ValidationError as exc:
                logger.warning(f"Skipping unreadable badge record: {exc}")
        return badges

    def replace_progress(self, values: dict[str, Any]) -> None:
        self._store.set_json(StoreKeys.BADGE_PROGRESS, values)

    def replace_badges(self, values: list[Any]) -> None:
        self._store.set_json(StoreKeys.BADGES, values)

    def has_badge(self, badge_id: str) -> bool:
        return any(b.id == badge_id for b in self.get_badges())

    # ------------------------------------------------------------------
    # Recorders
    # ------------------------------------------------------------------

    def record_entry_created(self, entry: JournalEntry) -> list[str]:
        """
        Count a newly created entry.

        Streak rule, by calendar day of the engine clock: same day as the last
        entry leaves it unchanged, the next day extends it, any gap resets it
        to 1.
        """
        with self._lock:
            progress = self.get_progress()
            now = self._clock()
            today = now.date()

            last = parse_instant(progress.last_entry_date)
            if last is None:
                progress.streak_days = 1
            elif last.date() == today:
                progress.streak_days = max(progress.streak_days, 1)
            elif last.date() == today - timedelta(days=1):
                progress.streak_days += 1
            else:
                progress.streak_days = 1

            for tag in entry.tags:
                progress.tags_used[tag] = progress.tags_used.get(tag, 0) + 1

            progress.entries_count += 1
            progress.last_entry_date = today.isoformat()
            if not progress.first_entry_date:
                progress.first_entry_date = to_iso(now)

            if not self._save_progress(progress):
                return []
            return self._award_pending()

    def record_search(self) -> list[str]:
        with self._lock:
            progress = self.get_progress()
            progress.search_count += 1
            if not self._save_progress(progress):
                return []
            return self._award_pending()

    def record_export(self) -> list[str]:
        with self._lock:
            progress = self.get_progress()
            progress.export_count += 1
            if not self._save_progress(progress):
                return []
            return self._award_pending()

    def _save_progress(self, progress: BadgeProgress) -> bool:
        try:
            self.replace_progress(progress.to_store())
        except SQLAlchemyError as exc:
            logger.error(f"Error saving badge progress: {exc}")
            return False
        return True

    # ------------------------------------------------------------------
    # Awards
    # ------------------------------------------------------------------

    def check_for_new_badges(self) -> list[str]:
        with self._lock:
            return self._award_pending()

    def _award_pending(self) -> list[str]:
        progress = self.get_progress()
        profile = self._profiles.get_profile()
        badges = self.get_badges()
        earned = {b.id for b in badges}
        now = self._clock()

        awarded = []
        for definition in self._definitions:
            if definition.id in earned:
                continue
            try:
                met = definition.condition(progress, profile, now)
            except (TypeError, ValueError) as exc:
                logger.warning(f"Badge condition {definition.id} failed: {exc}")
                continue
            if not met:
                continue
            badges.append(Badge(
                id=definition.id,
                title=definition.title,
                description=definition.description,
                category=definition.category,
                icon=definition.icon,
                awarded_at=to_iso(now),
                viewed=False,
            ))
            earned.add(definition.id)
            awarded.append(definition.id)

        if awarded:
            try:
                self.replace_badges([b.to_store() for b in badges])
            except SQLAlchemyError as exc:
                logger.error(f"Error saving awarded badges: {exc}")
                return []
            logger.info(f"Awarded badges: {', '.join(awarded)}")
        return awarded

    # ------------------------------------------------------------------
    # Display
    # ------------------------------------------------------------------

    def all_badges_with_status(self) -> dict[str, list[BadgeStatus]]:
        """Every definition, earned or not, grouped by category."""
        earned = {b.id: b for b in self.get_badges()}
        grouped: dict[str, list[BadgeStatus]] = {}
        for definition in self._definitions:
            badge = earned.get(definition.id)
            grouped.setdefault(definition.category, []).append(BadgeStatus(
                id=definition.id,
                title=definition.title,
                description=definition.description,
                category=definition.category,
                icon=definition.icon,
                earned=badge is not None,
                earned_date=badge.awarded_at if badge else None,
            ))
        return grouped

    def recently_earned(self, limit: int = 5) -> list[Badge]:
        def awarded(badge: Badge) -> float:
            moment = parse_instant(badge.awarded_at)
            return moment.timestamp() if moment else 0.0

        return sorted(self.get_badges(), key=awarded, reverse=True)[:limit]

    def mark_badge_as_viewed(self, badge_id: str) -> Optional[Badge]:
        """Returns the updated badge, or None when it has not been awarded."""
        with self._lock:
            badges = self.get_badges()
            target = next((b for b in badges if b.id == badge_id), None)
            if target is None:
                return None
            target.viewed = True
            try:
                self.replace_badges([b.to_store() for b in badges])
            except SQLAlchemyError as exc:
                logger.error(f"Error marking badge {badge_id} as viewed: {exc}")
                return None
        return target
