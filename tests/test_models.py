"""Tests for src.data.models — UpgradeRecord dataclass."""

from dataclasses import asdict
from datetime import datetime, timezone

from src.data.models import UpgradeRecord


def test_fresh_record_defaults():
    record = UpgradeRecord(unique_id="chatColors")
    assert record.unique_id == "chatColors"
    assert record.is_complete is False
    assert record.first_viewed_at is None
    assert record.last_snoozed_at is None


def test_record_with_all_fields():
    viewed = datetime(2026, 1, 1, tzinfo=timezone.utc)
    snoozed = datetime(2026, 1, 2, tzinfo=timezone.utc)
    record = UpgradeRecord(
        unique_id="009",
        is_complete=True,
        first_viewed_at=viewed,
        last_snoozed_at=snoozed,
    )
    assert record.is_complete is True
    assert record.first_viewed_at == viewed
    assert record.last_snoozed_at == snoozed


def test_record_serializable():
    d = asdict(UpgradeRecord(unique_id="linkPreviews"))
    assert d == {
        "unique_id": "linkPreviews",
        "is_complete": False,
        "first_viewed_at": None,
        "last_snoozed_at": None,
    }
