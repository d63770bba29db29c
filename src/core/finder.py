"""
Experience Upgrades — Finder.

Decides which experience upgrade to show next and records what the user
did with it. Queries take a read transaction and an UpgradeContext;
mutations take a write transaction. All of them run inside the transaction
they are given and never open one of their own.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Callable, Union

from src.core.catalog import UpgradeId
from src.core.context import as_utc, utc_now
from src.core.timing import has_completed_visible_duration, is_snoozed
from src.data.models import UpgradeRecord

if TYPE_CHECKING:
    from src.core.context import UpgradeContext
    from src.ports.storage_port import ReadTransaction, WriteTransaction

logger = logging.getLogger(__name__)

UpgradeRef = Union[UpgradeId, UpgradeRecord]


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


def active_ids(ctx: UpgradeContext) -> list[UpgradeId]:
    """Ids that may be shown on this device right now, in catalog order."""
    try:
        is_primary = ctx.account.is_primary_device()
    except Exception as exc:
        logger.warning("Failed to read primary device state: %s", exc)
        is_primary = False

    return [
        upgrade_id
        for upgrade_id in UpgradeId
        if (upgrade_id.show_on_linked_devices or is_primary)
        and not upgrade_id.has_expired(ctx.now)
        and upgrade_id.is_eligible(ctx)
    ]


def active_list(txn: ReadTransaction, ctx: UpgradeContext) -> list[UpgradeRecord]:
    """All running upgrades that have yet to be completed.

    Sorted by priority from highest to lowest; upgrades of equal priority
    keep catalog order. Ids without a stored row get a fresh record.
    """
    ids = active_ids(ctx)
    position = {upgrade_id.value: index for index, upgrade_id in enumerate(ids)}

    # is_complete is filtered here rather than in the query so that rows for
    # finished ids still count as accounted for.
    candidates: list[UpgradeRecord] = []
    unsaved = dict(position)
    for record in txn.fetch_many(position):
        upgrade_id = UpgradeId.from_unique_id(record.unique_id)
        if upgrade_id is None:
            logger.debug("Ignoring stored upgrade with unknown id %s", record.unique_id)
            continue
        if not upgrade_id.should_save:
            # Stored rows for ids that are no longer saved
            continue
        if not record.is_complete and not has_completed_visible_duration(record, ctx.now):
            candidates.append(record)
        unsaved.pop(record.unique_id, None)

    candidates.extend(UpgradeRecord(unique_id=unique_id) for unique_id in unsaved)

    candidates.sort(
        key=lambda record: (
            -UpgradeId(record.unique_id).priority,
            position[record.unique_id],
        )
    )
    return candidates


def next_upgrade(txn: ReadTransaction, ctx: UpgradeContext) -> UpgradeRecord | None:
    """The upgrade to show now: the first active one that isn't snoozed."""
    for record in active_list(txn, ctx):
        if not is_snoozed(record, ctx):
            return record
    return None


def all_incomplete(txn: ReadTransaction, ctx: UpgradeContext) -> list[UpgradeRecord]:
    """Every active upgrade, snoozed or not."""
    return active_list(txn, ctx)


def has_incomplete(
    upgrade_id: UpgradeId, txn: ReadTransaction, ctx: UpgradeContext,
) -> bool:
    return any(r.unique_id == upgrade_id.value for r in all_incomplete(txn, ctx))


def has_unsnoozed(
    upgrade_id: UpgradeId, txn: ReadTransaction, ctx: UpgradeContext,
) -> bool:
    """True if the upgrade is active and not currently snoozed."""
    for record in all_incomplete(txn, ctx):
        if record.unique_id == upgrade_id.value:
            return not is_snoozed(record, ctx)
    return False


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------


def _as_record(ref: UpgradeRef) -> UpgradeRecord:
    if isinstance(ref, UpgradeRecord):
        return ref
    return UpgradeRecord(unique_id=ref.value)


def _upsert_with(
    record: UpgradeRecord,
    txn: WriteTransaction,
    field: str,
    change: Callable[[UpgradeRecord], bool],
) -> UpgradeRecord | None:
    """Read the stored row (or fall back to `record`), apply `change`, save `field`.

    Returns the saved record, or None when the id is not saved at all.
    """
    upgrade_id = UpgradeId.from_unique_id(record.unique_id)
    if upgrade_id is None or not upgrade_id.should_save:
        logger.debug("Skipping save for experience upgrade %s", record.unique_id)
        return None

    current = txn.fetch(record.unique_id) or record
    if not change(current):
        return current
    txn.upsert(current, fields=[field])
    return current


def mark_viewed(
    record: UpgradeRecord, txn: WriteTransaction, now: datetime | None = None,
) -> UpgradeRecord | None:
    """Record the first time an upgrade was shown. Later views change nothing."""
    logger.info("Marking experience upgrade as seen %s", record.unique_id)
    viewed_at = as_utc(now or utc_now())

    def change(current: UpgradeRecord) -> bool:
        if current.first_viewed_at is not None:
            return False
        current.first_viewed_at = viewed_at
        return True

    return _upsert_with(record, txn, "first_viewed_at", change)


def mark_snoozed(
    ref: UpgradeRef, txn: WriteTransaction, now: datetime | None = None,
) -> UpgradeRecord | None:
    """Snooze an upgrade; snoozing again restarts the cooldown."""
    record = _as_record(ref)
    logger.info("Marking experience upgrade as snoozed %s", record.unique_id)
    snoozed_at = as_utc(now or utc_now())

    def change(current: UpgradeRecord) -> bool:
        current.last_snoozed_at = snoozed_at
        return True

    return _upsert_with(record, txn, "last_snoozed_at", change)


def mark_complete(ref: UpgradeRef, txn: WriteTransaction) -> UpgradeRecord | None:
    """Permanently retire an upgrade. No-op for upgrades that can't be completed."""
    record = _as_record(ref)
    upgrade_id = UpgradeId.from_unique_id(record.unique_id)
    if upgrade_id is None or not upgrade_id.can_be_completed:
        logger.info(
            "Skipping marking experience upgrade as complete for %s", record.unique_id,
        )
        return None

    logger.info("Marking experience upgrade as complete %s", record.unique_id)

    def change(current: UpgradeRecord) -> bool:
        current.is_complete = True
        return True

    return _upsert_with(record, txn, "is_complete", change)


def mark_all_complete_for_new_user(txn: WriteTransaction) -> None:
    """Complete every upgrade a freshly registered account should never see."""
    for upgrade_id in UpgradeId:
        if upgrade_id.skip_for_new_users:
            mark_complete(upgrade_id, txn)
