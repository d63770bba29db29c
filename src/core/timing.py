"""Time-derived state of an upgrade record — pure functions, no I/O.

Their answers change with nothing but elapsed time, so they are recomputed
from the record on every call and never stored.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from src.core.catalog import UpgradeId
from src.core.context import as_utc

if TYPE_CHECKING:
    from src.core.context import UpgradeContext
    from src.data.models import UpgradeRecord

# Research megaphone retires on its own after a week on screen
RESEARCH_VISIBLE_DAYS = 7


def is_snoozed(record: UpgradeRecord, ctx: UpgradeContext) -> bool:
    """True while the last snooze is within the id's snooze duration.

    The instant the duration elapses is still snoozed; one tick later is not.
    """
    if record.last_snoozed_at is None:
        return False
    upgrade_id = UpgradeId.from_unique_id(record.unique_id)
    if upgrade_id is None:
        return False
    return as_utc(ctx.now) - as_utc(record.last_snoozed_at) <= upgrade_id.snooze_duration(ctx)


def has_viewed(record: UpgradeRecord) -> bool:
    return record.first_viewed_at is not None


def days_since_first_viewed(record: UpgradeRecord, now: datetime) -> int:
    """Whole days elapsed since the first view, 0 if never viewed."""
    if record.first_viewed_at is None:
        return 0
    elapsed = as_utc(now) - as_utc(record.first_viewed_at)
    if elapsed <= timedelta(0):
        return 0
    return elapsed // timedelta(days=1)


def has_completed_visible_duration(record: UpgradeRecord, now: datetime) -> bool:
    """Whether the record has been on screen long enough to retire by itself."""
    if UpgradeId.from_unique_id(record.unique_id) is UpgradeId.RESEARCH_MEGAPHONE_1:
        return days_since_first_viewed(record, now) >= RESEARCH_VISIBLE_DAYS
    return False
