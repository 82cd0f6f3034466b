"""
Explicit construction of the core services and the FastAPI dependencies that
hand them to routers.

Every service receives its storage backend and clock from here. Tests build
their own `Services` against a temporary database and override
`get_services`.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional, Sequence

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from corpsjournal.core.config import settings
from corpsjournal.core.dates import now_local
from corpsjournal.core.errors import JournalLockedError
from corpsjournal.db.base import SessionLocal
from corpsjournal.services.backup import BackupCodec
from corpsjournal.services.badges import BadgeEngine
from corpsjournal.services.entries import EntryRepository
from corpsjournal.services.kv_store import KeyValueStore
from corpsjournal.services.media import MediaStore
from corpsjournal.services.service_lock import ServiceLockEngine
from corpsjournal.services.service_profile import ServiceProfileStore
from corpsjournal.services.time_sources import TimeOracle, TimeSource, default_time_sources


@dataclass
class Services:
    store: KeyValueStore
    media: MediaStore
    entries: EntryRepository
    profiles: ServiceProfileStore
    badges: BadgeEngine
    backup: BackupCodec
    lock: ServiceLockEngine


def build_services(
    session_factory: Callable[[], Session],
    media_root: str = settings.MEDIA_ROOT,
    time_sources: Optional[Sequence[TimeSource]] = None,
    clock: Callable[[], datetime] = now_local,
    device_clock: Optional[Callable[[], datetime]] = None,
) -> Services:
    """Wire every core service around one store, one media root and one clock."""
    store = KeyValueStore(session_factory)
    media = MediaStore(media_root)

    entries = EntryRepository(store, media=media, clock=clock)
    profiles = ServiceProfileStore(store, clock=clock)
    badges = BadgeEngine(store, profiles, clock=clock)
    backup = BackupCodec(entries, profiles, badges, clock=clock)

    device_clock = device_clock or clock
    oracle = TimeOracle(
        time_sources if time_sources is not None else default_time_sources(),
        device_clock=device_clock,
        tz=settings.service_timezone,
    )
    lock = ServiceLockEngine(
        store, profiles, oracle, device_clock=device_clock, grace_days=settings.GRACE_PERIOD_DAYS
    )
    return Services(
        store=store,
        media=media,
        entries=entries,
        profiles=profiles,
        badges=badges,
        backup=backup,
        lock=lock,
    )


def get_services(request: Request) -> Services:
    services = getattr(request.app.state, "services", None)
    if services is None:
        services = build_services(SessionLocal)
        request.app.state.services = services
    return services


def require_editable(services: Services = Depends(get_services)) -> Services:
    """Refuse a mutating request while the cached lock status is locked."""
    status = services.lock.cached_status()
    if status.is_locked:
        raise JournalLockedError(
            reason=status.reason.value if status.reason else None,
            message=services.lock.get_lock_message(),
        )
    return services
