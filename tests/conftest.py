"""Shared test fixtures and configuration.

Sets up environment variables before any src imports, and provides common
fixtures like a temp DB and an UpgradeContext factory pinned to a fixed clock.
"""

import os

# Patch env vars BEFORE any src imports
os.environ.setdefault("DATABASE_PATH", ":memory:")
os.environ.setdefault("NOTIFICATION_PERMISSION_TIMEOUT", "0.05")
os.environ.setdefault("DONATE_SNOOZE_DAYS", "30")

import pytest
from datetime import datetime, timedelta, timezone

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def tmp_db_path(tmp_path):
    """Return a temporary SQLite DB path."""
    return str(tmp_path / "test_upgrades.db")


@pytest.fixture
def upgrade_db(tmp_db_path):
    """Return an UpgradeDB instance backed by a temp file."""
    from src.data.db import UpgradeDB
    return UpgradeDB(db_path=tmp_db_path)


@pytest.fixture
def make_context():
    """Build an UpgradeContext at NOW for an account registered 30 days ago.

    Defaults: primary device, no remote flags, all permissions granted,
    reachable, no avatar.
    """
    from src.adapters.static_providers import build_static_context

    def _make(registered_at=NOW - timedelta(days=30), at=NOW, **kwargs):
        return build_static_context(registered_at=registered_at, now=at, **kwargs)

    return _make


@pytest.fixture
def favorable_context(make_context):
    """Context in which every upgrade's own condition holds."""
    from src.adapters.static_providers import (
        StaticAccount,
        StaticPermissions,
        StaticProfile,
        StaticRemoteConfig,
    )
    from src.core import catalog

    def _make(registered_at=NOW - timedelta(days=30), at=NOW, primary_device=True):
        return make_context(
            registered_at=registered_at,
            at=at,
            account=StaticAccount(
                registered_at=registered_at,
                primary_device=primary_device,
                master_key=False,
                pin_reminder_due=True,
            ),
            remote_config=StaticRemoteConfig(flags={
                catalog.KBS: True,
                catalog.RESEARCH_MEGAPHONE: True,
                catalog.GROUPS_V2_SHOW_SPLASH: True,
                catalog.GROUP_CALLING: True,
                catalog.DONATE_MEGAPHONE: True,
            }),
            profile=StaticProfile(avatar=False),
            permissions=StaticPermissions(contacts=False, notifications=False),
        )

    return _make
