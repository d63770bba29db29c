"""
Experience Upgrades — Data Models.

One row per upgrade id that has ever been viewed, snoozed or completed.
Ids that were never touched have no row; a fresh in-memory record stands
in for them until the first mutation.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass
class UpgradeRecord:
    """Persisted state of a single experience upgrade.

    `unique_id` is the catalog id's stored key (e.g. "009", "chatColors").
    Timestamps are timezone-aware UTC datetimes, None when unset.
    """

    unique_id: str
    is_complete: bool = False
    first_viewed_at: datetime | None = None   # first view wins, never overwritten
    last_snoozed_at: datetime | None = None   # refreshed on every snooze
