"""
Key-value store: the persisted logical records of the journal.

Each key holds one JSON document (entries, settings, serviceInfo, badges,
badgeProgress, lockStatus, timeCheckpoints). Every read or write opens its
own short session so services can be used from any thread.
"""
from __future__ import annotations

import json
from typing import Any, Callable

from sqlalchemy.orm import Session

from corpsjournal.core.logging import setup_logger
from corpsjournal.models.kv_record import KVRecord

logger = setup_logger("kv_store")


class StoreKeys:
    ENTRIES          = "entries"
    SETTINGS         = "settings"
    SERVICE_INFO     = "serviceInfo"
    BADGES           = "badges"
    BADGE_PROGRESS   = "badgeProgress"
    LOCK_STATUS      = "lockStatus"
    TIME_CHECKPOINTS = "timeCheckpoints"


class KeyValueStore:
    """JSON documents keyed by name, persisted through SQLAlchemy."""

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def get_raw(self, key: str) -> str | None:
        with self._session_factory() as db:
            record = db.get(KVRecord, key)
            return record.value if record is not None else None

    def set_raw(self, key: str, value: str) -> None:
        with self._session_factory() as db:
            record = db.get(KVRecord, key)
            if record is None:
                db.add(KVRecord(key=key, value=value))
            else:
                record.value = value
            db.commit()

    def get_json(self, key: str, default: Any = None) -> Any:
        """
        Decode the document stored under `key`.
        Missing or corrupt documents read as `default`; corruption is logged.
        """
        raw = self.get_raw(key)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except (ValueError, TypeError) as exc:
            logger.error(f"Corrupt JSON under key {key!r}, reading as default: {exc}")
            return default

    def set_json(self, key: str, value: Any) -> None:
        self.set_raw(key, json.dumps(value, ensure_ascii=False))

    def delete(self, *keys: str) -> None:
        with self._session_factory() as db:
            for key in keys:
                record = db.get(KVRecord, key)
                if record is not None:
                    db.delete(record)
            db.commit()

    def keys(self) -> list[str]:
        with self._session_factory() as db:
            return [row[0] for row in db.query(KVRecord.key).order_by(KVRecord.key).all()]
