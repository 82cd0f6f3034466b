"""
Entry repository: CRUD and queries over the `entries` collection.

Public API
----------
list()                       → list[JournalEntry]   (never raises)
save(entry)                  → id | None            (upsert by id)
update(id, fields)           → bool                 (False when id is absent)
delete(id)                   → bool                 (cascades to media)
get(id)                      → JournalEntry | None
by_month(month, year)        → list[JournalEntry]   (month is 0-based)
search(query)                → list[JournalEntry]
validate_and_repair()        → RepairResult          (the only silent fixer)

Concurrency contract: read-modify-write calls are serialized by one lock per
repository. Last write wins; there is no version check.
"""
from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Callable, Iterable, Optional

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from corpsjournal.core.dates import (
    calendar_day,
    normalize_instant,
    now_local,
    parse_instant,
    to_iso,
    to_local,
)
from corpsjournal.core.logging import setup_logger
from corpsjournal.schemas.entry import JournalEntry, SyncStatus
from corpsjournal.services.kv_store import KeyValueStore, StoreKeys
from corpsjournal.services.media import MediaStore

logger = setup_logger("entry_repository")


@dataclass
class RepairResult:
    fixed_count: int

    def to_dict(self) -> dict:
        return {"fixedCount": self.fixed_count}


def _field_key(name: str) -> str:
    """Map a snake_case or camelCase field name to its stored key."""
    field = JournalEntry.model_fields.get(name)
    if field is not None and field.alias:
        return field.alias
    return name


class EntryRepository:

    def __init__(
        self,
        store: KeyValueStore,
        media: Optional[MediaStore] = None,
        clock: Callable[[], datetime] = now_local,
    ):
        self._store = store
        self._media = media
        self._clock = clock
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------

    def _load(self) -> list[JournalEntry]:
        try:
            raw = self._store.get_json(StoreKeys.ENTRIES, default=[])
        except SQLAlchemyError as exc:
            logger.error(f"Error reading journal entries: {exc}")
            return []
        if not isinstance(raw, list):
            logger.error("Stored entries collection is not a list, reading as empty")
            return []

        entries: list[JournalEntry] = []
        for index, item in enumerate(raw):
            if not isinstance(item, dict):
                logger.warning(f"Skipping non-object entry at position {index}")
                continue
            try:
                entries.append(JournalEntry.model_validate(item))
            except ValidationError as exc:
                logger.warning(f"Skipping unreadable entry at position {index}: {exc}")
        return entries

    def _write(self, entries: list[JournalEntry]) -> None:
        self._store.set_json(StoreKeys.ENTRIES, [e.to_store() for e in entries])

    def _new_id(self, taken: set[str], now: datetime) -> str:
        base = f"entry_{int(now.timestamp() * 1000)}"
        candidate, suffix = base, 1
        while candidate in taken:
            candidate = f"{base}_{suffix}"
            suffix += 1
        return candidate

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list(self) -> list[JournalEntry]:
        return self._load()

    def get(self, entry_id: str) -> Optional[JournalEntry]:
        return next((e for e in self._load() if e.id == entry_id), None)

    def existing_ids(self) -> set[str]:
        return {e.id for e in self._load() if e.id}

    def by_month(self, month: int, year: int) -> list[JournalEntry]:
        """
        Entries whose `date` falls in the given 0-based month, read on the
        service timezone calendar. Unparseable dates are skipped.
        """
        matches = []
        for entry in self._load():
            moment = parse_instant(entry.date)
            if moment is None:
                logger.warning(f"Entry {entry.id} has an unparseable date {entry.date!r}, excluded")
                continue
            moment = to_local(moment)
            if moment.month - 1 == month and moment.year == year:
                matches.append(entry)
        return matches

    def count_by_month(self, month: int, year: int) -> int:
        return len(self.by_month(month, year))

    def has_entry_on(self, day: date) -> bool:
        return any(calendar_day(e.date) == day for e in self._load())

    def search(self, query: Optional[str]) -> list[JournalEntry]:
        """Case-insensitive substring match over title, content and tags."""
        entries = self._load()
        if not query or not query.strip():
            return entries
        needle = query.lower()
        return [
            e for e in entries
            if needle in e.title.lower()
            or needle in e.content.lower()
            or any(needle in tag.lower() for tag in e.tags)
        ]

    def referenced_media(self) -> set[str]:
        paths: set[str] = set()
        for entry in self._load():
            paths.update(entry.media_paths())
        return paths

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def save(self, entry: JournalEntry | dict[str, Any]) -> Optional[str]:
        """
        Upsert by id. Assigns an id when absent, normalizes `date` and
        `createdAt` (falling back to now), bumps `updatedAt` and resets
        `syncStatus` to local. Returns the id, or None if the write failed.
        """
        record = (
            entry.model_copy(deep=True)
            if isinstance(entry, JournalEntry)
            else JournalEntry.model_validate(entry)
        )
        with self._lock:
            entries = self._load()
            now = self._clock()
            if not record.id:
                record.id = self._new_id({e.id for e in entries if e.id}, now)
            record.date = normalize_instant(record.date, now)
            record.created_at = normalize_instant(record.created_at, now)
            record.updated_at = to_iso(now)
            record.sync_status = SyncStatus.local

            updated = [record] + [e for e in entries if e.id != record.id]
            try:
                self._write(updated)
            except SQLAlchemyError as exc:
                logger.error(f"Error saving journal entry {record.id}: {exc}")
                return None
        return record.id

    def update(self, entry_id: str, fields: dict[str, Any]) -> bool:
        """
        Merge `fields` into an existing entry. The id never changes.
        A synced entry is demoted to pendingSync.
        """
        changes = {_field_key(k): v for k, v in fields.items()}
        changes.pop("id", None)

        with self._lock:
            entries = self._load()
            index = next((i for i, e in enumerate(entries) if e.id == entry_id), None)
            if index is None:
                return False

            current = entries[index]
            now = self._clock()
            merged = current.to_store()
            merged.update(changes)
            if "date" in changes:
                merged["date"] = normalize_instant(changes["date"], now)
            merged["updatedAt"] = to_iso(now)
            merged["syncStatus"] = (
                SyncStatus.pending_sync.value
                if current.sync_status == SyncStatus.synced
                else current.sync_status.value
            )
            try:
                entries[index] = JournalEntry.model_validate(merged)
                self._write(entries)
            except ValidationError as exc:
                logger.error(f"Rejected update for entry {entry_id}: {exc}")
                return False
            except SQLAlchemyError as exc:
                logger.error(f"Error updating journal entry {entry_id}: {exc}")
                return False
        return True

    def delete(self, entry_id: str) -> bool:
        """
        Remove the entry, then every media file it references.
        Individual media failures are logged; the entry stays deleted.
        """
        with self._lock:
            entries = self._load()
            target = next((e for e in entries if e.id == entry_id), None)
            if target is None:
                return False
            try:
                self._write([e for e in entries if e.id != entry_id])
            except SQLAlchemyError as exc:
                logger.error(f"Error deleting journal entry {entry_id}: {exc}")
                return False

        for path in target.media_paths():
            self._delete_media(path)
        return True

    def _delete_media(self, path: str) -> None:
        if self._media is None:
            return
        try:
            self._media.delete(path)
        except Exception as exc:
            logger.warning(f"Could not delete media {path}: {exc}")

    def validate_and_repair(self) -> RepairResult:
        """
        Repair entries with a missing or unparseable `date`, `createdAt` or
        `updatedAt`. date ← createdAt (or now); createdAt ← date;
        updatedAt ← createdAt. Persists only when something changed.
        """
        with self._lock:
            entries = self._load()
            now = self._clock()
            fixed = 0
            for entry in entries:
                changed = False
                created = parse_instant(entry.created_at)
                if parse_instant(entry.date) is None:
                    entry.date = to_iso(created if created is not None else now)
                    changed = True
                if created is None:
                    entry.created_at = to_iso(parse_instant(entry.date))
                    changed = True
                if parse_instant(entry.updated_at) is None:
                    entry.updated_at = to_iso(parse_instant(entry.created_at))
                    changed = True
                if changed:
                    logger.info(f"Repaired dates on entry {entry.id}")
                    fixed += 1

            if fixed:
                try:
                    self._write(entries)
                except SQLAlchemyError as exc:
                    logger.error(f"Error persisting repaired entries: {exc}")
                    return RepairResult(fixed_count=0)
        return RepairResult(fixed_count=fixed)

    # ------------------------------------------------------------------
    # Bulk operations (backup import, data wipe)
    # ------------------------------------------------------------------

    def replace_all(self, entries: Iterable[JournalEntry]) -> int:
        with self._lock:
            records = self._with_ids(list(entries), taken=set())
            self._write(records)
        return len(records)

    def extend(self, entries: Iterable[JournalEntry]) -> int:
        with self._lock:
            existing = self._load()
            records = self._with_ids(list(entries), taken={e.id for e in existing if e.id})
            self._write(existing + records)
        return len(records)

    def _with_ids(self, records: list[JournalEntry], taken: set[str]) -> list[JournalEntry]:
        taken = taken | {r.id for r in records if r.id}
        now = self._clock()
        for record in records:
            if not record.id:
                record.id = self._new_id(taken, now)
                taken.add(record.id)
        return records

    def clear_all(self) -> bool:
        """Drop entries and settings, then sweep every media file."""
        with self._lock:
            try:
                self._store.delete(StoreKeys.ENTRIES, StoreKeys.SETTINGS)
            except SQLAlchemyError as exc:
                logger.error(f"Error clearing journal data: {exc}")
                return False
        if self._media is not None:
            self._media.sweep_orphans([])
        return True

    def sweep_media(self) -> int:
        if self._media is None:
            return 0
        return self._media.sweep_orphans(self.referenced_media())
