"""
Network time sources and the trusted-time estimate.

Sources are tried concurrently, each bounded by its own timeout. A source
that times out, answers with a non-200 status or returns a payload without a
usable timestamp is dropped. The trusted time is the median of whatever
answered; with no answers it is the device clock in the service timezone.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, tzinfo
from typing import Any, Callable, Optional, Protocol, Sequence

import aiohttp

from corpsjournal.core.config import settings
from corpsjournal.core.dates import parse_instant, service_tz
from corpsjournal.core.logging import setup_logger

logger = setup_logger("time_sources")

# Payload keys, in the order they are read
_TIME_KEYS = ("datetime", "utc_datetime", "dateTime", "currentDateTime")

SOURCE_DEVICE = "device"
SOURCE_NETWORK = "network"


class TimeSource(Protocol):
    name: str

    async def fetch(self, session: aiohttp.ClientSession) -> Optional[datetime]:
        ...


@dataclass
class ObservedTime:
    source: str
    time: datetime


def parse_time_payload(payload: Any) -> Optional[datetime]:
    """Read the first usable timestamp out of a time API response body."""
    if not isinstance(payload, dict):
        return None
    for key in _TIME_KEYS:
        moment = parse_instant(payload.get(key))
        if moment is not None:
            return moment
    return None


class HttpTimeSource:

    def __init__(self, url: str, timeout: float = settings.TIME_SOURCE_TIMEOUT_SECONDS):
        self.name = url
        self.url = url
        self.timeout = timeout

    async def fetch(self, session: aiohttp.ClientSession) -> Optional[datetime]:
        client_timeout = aiohttp.ClientTimeout(total=self.timeout)
        async with session.get(self.url, timeout=client_timeout) as response:
            if response.status != 200:
                logger.warning(f"Time source {self.url} answered {response.status}")
                return None
            payload = await response.json(content_type=None)
        return parse_time_payload(payload)

    def __repr__(self) -> str:
        return f"HttpTimeSource({self.url!r})"


def default_time_sources() -> tuple[HttpTimeSource, ...]:
    return tuple(
        HttpTimeSource(url, timeout=settings.TIME_SOURCE_TIMEOUT_SECONDS)
        for url in settings.time_source_urls_list
    )


def median_time(times: Sequence[datetime]) -> Optional[datetime]:
    """Upper median of the observed instants."""
    if not times:
        return None
    ordered = sorted(times)
    return ordered[len(ordered) // 2]


@dataclass
class TrustedTime:
    time: datetime
    source: str
    observations: list[ObservedTime] = field(default_factory=list)

    @property
    def network_times(self) -> list[datetime]:
        return [o.time for o in self.observations]


class TimeOracle:

    def __init__(
        self,
        sources: Sequence[TimeSource],
        device_clock: Callable[[], datetime],
        tz: Optional[tzinfo] = None,
        timeout: float = settings.TIME_SOURCE_TIMEOUT_SECONDS,
    ):
        self.sources = tuple(sources)
        self._device_clock = device_clock
        self._tz = tz
        self._timeout = timeout

    async def _fetch_one(
        self, source: TimeSource, session: aiohttp.ClientSession
    ) -> Optional[ObservedTime]:
        try:
            moment = await asyncio.wait_for(source.fetch(session), timeout=self._timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Time source {source.name} timed out")
            return None
        except (aiohttp.ClientError, ValueError) as exc:
            logger.warning(f"Time source {source.name} failed: {exc}")
            return None
        if moment is None:
            return None
        return ObservedTime(source=source.name, time=moment)

    async def observe(self) -> list[ObservedTime]:
        if not self.sources:
            return []
        async with aiohttp.ClientSession() as session:
            results = await asyncio.gather(
                *(self._fetch_one(source, session) for source in self.sources)
            )
        return [r for r in results if r is not None]

    async def trusted_time(self) -> TrustedTime:
        observations = await self.observe()
        tz = self._tz or service_tz()
        median = median_time([o.time for o in observations])
        if median is not None:
            return TrustedTime(time=median.astimezone(tz), source=SOURCE_NETWORK, observations=observations)

        logger.warning("No time source reachable, falling back to the device clock")
        device_now = self._device_clock()
        if device_now.tzinfo is None:
            device_now = device_now.astimezone()
        return TrustedTime(time=device_now.astimezone(tz), source=SOURCE_DEVICE)
