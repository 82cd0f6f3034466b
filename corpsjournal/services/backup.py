"""
Backup codec: media-stripped JSON export and merge/replace import.

Export document
---------------
{
  "metadata": {exportDate, appVersion, exportVersion, entriesCount,
               badgesCount, mediaNote},
  "entries": [...],          # images → [], audio → placeholders
  "settings": {...},
  "serviceInfo": {...} | null,
  "badges": [...],
  "badgeProgress": {...}
}

Import never re-attaches media. A re-imported export yields entries with
empty `images` and placeholder audio notes.
"""
from __future__ import annotations

import enum
import json
import os
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional

from pydantic import ValidationError

from corpsjournal.core.config import settings
from corpsjournal.core.dates import now_local, to_iso
from corpsjournal.core.logging import setup_logger
from corpsjournal.schemas.entry import JournalEntry
from corpsjournal.services.badges import BadgeEngine
from corpsjournal.services.entries import EntryRepository
from corpsjournal.services.service_profile import ServiceProfileStore

logger = setup_logger("backup")

EXPORT_VERSION = "1.2"
MEDIA_NOTE = (
    "Images and audio recordings are not included in this backup. "
    "Only their file names are kept so entries can be matched with media "
    "transferred separately."
)

ERROR_UNPARSEABLE = "Invalid data format. The file appears to be corrupted."
ERROR_NO_ENTRIES = "Invalid backup file format. Entries data is missing or corrupted."
ERROR_UNEXPECTED = "An unexpected error occurred during import."


class ImportMode(str, enum.Enum):
    MERGE = "merge"
    REPLACE = "replace"


@dataclass
class ImportStats:
    entries_imported: int = 0
    entries_skipped: int = 0
    settings_imported: bool = False
    service_info_imported: bool = False
    badges_imported: int = 0

    def to_dict(self) -> dict:
        return {
            "entriesImported": self.entries_imported,
            "entriesSkipped": self.entries_skipped,
            "settingsImported": self.settings_imported,
            "serviceInfoImported": self.service_info_imported,
            "badgesImported": self.badges_imported,
        }


@dataclass
class ImportResult:
    success: bool
    error: Optional[str] = None
    stats: Optional[ImportStats] = field(default=None)

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "error": self.error,
            "stats": self.stats.to_dict() if self.stats else None,
        }


def _strip_media(record: dict[str, Any]) -> dict[str, Any]:
    """Replace media on one stored entry with name-only placeholders."""
    stripped = dict(record)
    images = [p for p in record.get("images") or [] if isinstance(p, str)]
    if images or "imageFilenames" not in record:
        stripped["originalImageCount"] = len(images)
        stripped["imageFilenames"] = [os.path.basename(p) for p in images]
    stripped["images"] = []

    placeholders = []
    for note in record.get("audioNotes") or []:
        if not isinstance(note, dict):
            continue
        uri = note.get("uri")
        original = os.path.basename(uri) if uri else note.get("originalFilename")
        placeholders.append({
            "id": note.get("id"),
            "name": note.get("name", ""),
            "date": note.get("date"),
            "originalFilename": original,
            "uri": None,
            "isPlaceholder": True,
        })
    stripped["audioNotes"] = placeholders
    return stripped


class BackupCodec:

    def __init__(
        self,
        entries: EntryRepository,
        profiles: ServiceProfileStore,
        badges: BadgeEngine,
        clock: Callable[[], datetime] = now_local,
        app_version: str = settings.APP_VERSION,
    ):
        self._entries = entries
        self._profiles = profiles
        self._badges = badges
        self._clock = clock
        self._app_version = app_version

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def export(self) -> dict[str, Any]:
        entries = [_strip_media(e.to_store()) for e in self._entries.list()]
        badges = [b.to_store() for b in self._badges.get_badges()]
        profile = self._profiles.get_profile()

        document = {
            "metadata": {
                "exportDate": to_iso(self._clock()),
                "appVersion": self._app_version,
                "exportVersion": EXPORT_VERSION,
                "entriesCount": len(entries),
                "badgesCount": len(badges),
                "mediaNote": MEDIA_NOTE,
            },
            "entries": entries,
            "settings": self._profiles.get_settings(),
            "serviceInfo": profile.to_store() if profile else None,
            "badges": badges,
            "badgeProgress": self._badges.get_progress().to_store(),
        }
        logger.info(f"Exported {len(entries)} entries and {len(badges)} badges")
        return document

    def export_json(self) -> str:
        return json.dumps(self.export(), indent=2, ensure_ascii=False)

    # ------------------------------------------------------------------
    # Import
    # ------------------------------------------------------------------

    def import_document(
        self,
        document: str | bytes | dict[str, Any],
        mode: ImportMode = ImportMode.REPLACE,
    ) -> ImportResult:
        """
        Import a backup document. Never raises: malformed input and storage
        failures come back as ImportResult(success=False, error=...).
        """
        if isinstance(document, (str, bytes)):
            try:
                document = json.loads(document)
            except ValueError as exc:
                logger.error(f"Backup document is not valid JSON: {exc}")
                return ImportResult(success=False, error=ERROR_UNPARSEABLE)

        if not isinstance(document, dict) or not isinstance(document.get("entries"), list):
            logger.error("Backup document has no entries array")
            return ImportResult(success=False, error=ERROR_NO_ENTRIES)

        try:
            stats = self._apply(document, ImportMode(mode))
        except Exception as exc:
            logger.error(f"Error importing backup: {exc}")
            return ImportResult(success=False, error=ERROR_UNEXPECTED)

        logger.info(
            f"Import completed ({ImportMode(mode).value}): "
            f"{stats.entries_imported} imported, {stats.entries_skipped} skipped"
        )
        return ImportResult(success=True, stats=stats)

    def _apply(self, document: dict[str, Any], mode: ImportMode) -> ImportStats:
        stats = ImportStats()
        incoming: list[JournalEntry] = []
        for index, item in enumerate(document["entries"]):
            if not isinstance(item, dict):
                logger.warning(f"Skipping non-object entry at position {index}")
                stats.entries_skipped += 1
                continue
            try:
                incoming.append(JournalEntry.model_validate(item))
            except ValidationError as exc:
                logger.warning(f"Skipping unreadable entry at position {index}: {exc}")
                stats.entries_skipped += 1

        # First occurrence of an id wins; merge also skips ids already stored
        seen = self._entries.existing_ids() if mode is ImportMode.MERGE else set()
        fresh = []
        for entry in incoming:
            if entry.id and entry.id in seen:
                stats.entries_skipped += 1
                continue
            if entry.id:
                seen.add(entry.id)
            fresh.append(entry)

        if mode is ImportMode.MERGE:
            stats.entries_imported = self._entries.extend(fresh)
        else:
            stats.entries_imported = self._entries.replace_all(fresh)

        if isinstance(document.get("settings"), dict):
            if self._profiles.save_settings(document["settings"]):
                stats.settings_imported = True

        if isinstance(document.get("serviceInfo"), dict):
            if self._profiles.replace_raw(document["serviceInfo"]):
                stats.service_info_imported = True

        if isinstance(document.get("badges"), list):
            self._badges.replace_badges(document["badges"])
            stats.badges_imported = len(document["badges"])

        if isinstance(document.get("badgeProgress"), dict):
            self._badges.replace_progress(document["badgeProgress"])

        return stats
