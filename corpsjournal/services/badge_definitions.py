"""
Static badge registry.

Each condition is a pure function of (progress, profile, now). `now` comes
from the badge engine's clock so time-based badges are testable.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from corpsjournal.core.dates import add_months, parse_instant
from corpsjournal.schemas.badge import BadgeProgress
from corpsjournal.schemas.profile import ServiceProfile

Condition = Callable[[BadgeProgress, Optional[ServiceProfile], datetime], bool]


class BadgeCategory:
    MILESTONES = "Milestones"
    ENTRIES    = "Journal Entries"
    ENGAGEMENT = "App Engagement"
    TIMELINE   = "NYSC Timeline"
    QUALITY    = "Content Quality"


# Thresholds
_WEEKLY_STREAK_DAYS    = 7
_TAG_MASTER_TAGS       = 5
_SEARCH_EXPLORER_USES  = 10
_SERVICE_START_WINDOW  = 14
_HALFWAY_MONTHS        = 6


@dataclass(frozen=True)
class BadgeDefinition:
    id: str
    title: str
    description: str
    category: str
    icon: str
    condition: Condition


# ---------------------------------------------------------------------------
# Conditions
# ---------------------------------------------------------------------------

def _entries_at_least(count: int) -> Condition:
    def condition(progress, profile, now):
        return progress.entries_count >= count
    return condition


def _weekly_streak(progress, profile, now):
    return progress.streak_days >= _WEEKLY_STREAK_DAYS


def _tag_master(progress, profile, now):
    return len(progress.tags_used) >= _TAG_MASTER_TAGS


def _search_explorer(progress, profile, now):
    return progress.search_count >= _SEARCH_EXPLORER_USES


def _data_guardian(progress, profile, now):
    return progress.export_count >= 1


def _service_started(progress, profile, now):
    """First entry within 14 days (either side) of the service start."""
    start = parse_instant(profile.start_date) if profile else None
    first_entry = parse_instant(progress.first_entry_date)
    if start is None or first_entry is None:
        return False
    diff_days = math.ceil(abs(first_entry - start) / timedelta(days=1))
    return diff_days <= _SERVICE_START_WINDOW


def _halfway_mark(progress, profile, now):
    start = parse_instant(profile.start_date) if profile else None
    if start is None:
        return False
    return now >= add_months(start, _HALFWAY_MONTHS)


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

BADGES: tuple[BadgeDefinition, ...] = (
    BadgeDefinition(
        id="first_entry",
        title="First Entry",
        description="Created your first journal entry",
        category=BadgeCategory.MILESTONES,
        icon="book-open",
        condition=_entries_at_least(1),
    ),
    BadgeDefinition(
        id="prolific_writer_25",
        title="Prolific Writer I",
        description="Created 25 journal entries",
        category=BadgeCategory.ENTRIES,
        icon="edit",
        condition=_entries_at_least(25),
    ),
    BadgeDefinition(
        id="prolific_writer_50",
        title="Prolific Writer II",
        description="Created 50 journal entries",
        category=BadgeCategory.ENTRIES,
        icon="edit",
        condition=_entries_at_least(50),
    ),
    BadgeDefinition(
        id="prolific_writer_100",
        title="Prolific Writer III",
        description="Created 100 journal entries",
        category=BadgeCategory.ENTRIES,
        icon="edit",
        condition=_entries_at_least(100),
    ),
    BadgeDefinition(
        id="weekly_streak",
        title="Weekly Streak",
        description="Created entries for 7 consecutive days",
        category=BadgeCategory.ENTRIES,
        icon="calendar",
        condition=_weekly_streak,
    ),
    BadgeDefinition(
        id="tag_master",
        title="Tag Master",
        description="Used at least 5 different tags in entries",
        category=BadgeCategory.QUALITY,
        icon="tag",
        condition=_tag_master,
    ),
    BadgeDefinition(
        id="search_explorer",
        title="Search Explorer",
        description="Used the search function 10 times",
        category=BadgeCategory.ENGAGEMENT,
        icon="search",
        condition=_search_explorer,
    ),
    BadgeDefinition(
        id="data_guardian",
        title="Data Guardian",
        description="Used the export/backup feature",
        category=BadgeCategory.ENGAGEMENT,
        icon="shield",
        condition=_data_guardian,
    ),
    BadgeDefinition(
        id="service_started",
        title="Service Started",
        description="Recorded first entry at beginning of service",
        category=BadgeCategory.TIMELINE,
        icon="flag",
        condition=_service_started,
    ),
    BadgeDefinition(
        id="halfway_mark",
        title="Halfway Mark",
        description="Reached 6 months in service",
        category=BadgeCategory.TIMELINE,
        icon="clock",
        condition=_halfway_mark,
    ),
)

BADGES_BY_ID: dict[str, BadgeDefinition] = {b.id: b for b in BADGES}


def get_badge_definition(badge_id: str) -> Optional[BadgeDefinition]:
    return BADGES_BY_ID.get(badge_id)
