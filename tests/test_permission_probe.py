"""Tests for src.adapters.permission_probe — bounded notification query."""

import threading
import time
from datetime import datetime, timedelta, timezone

import pytest

from src.adapters.permission_probe import CallbackPermissionProbe
from src.core.catalog import UpgradeId
from src.ports.context_port import ProviderError

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _probe(notification_query, contacts=True):
    return CallbackPermissionProbe(
        notification_query=notification_query,
        contacts_query=lambda: contacts,
    )


class TestNotificationsAuthorized:
    def test_immediate_answer(self):
        probe = _probe(lambda complete: complete(True))
        assert probe.notifications_authorized(timeout=1.0) is True

    def test_answer_from_another_thread(self):
        def query(complete):
            threading.Thread(target=complete, args=(False,)).start()

        assert _probe(query).notifications_authorized(timeout=2.0) is False

    def test_no_answer_times_out(self):
        probe = _probe(lambda complete: None)
        started = time.monotonic()
        with pytest.raises(TimeoutError):
            probe.notifications_authorized(timeout=0.01)
        assert time.monotonic() - started < 1.0

    def test_late_answer_is_dropped(self):
        captured = []
        probe = _probe(captured.append)
        with pytest.raises(TimeoutError):
            probe.notifications_authorized(timeout=0.01)
        captured[0](True)  # no error, nothing to deliver to

    def test_query_failure_raises_provider_error(self):
        def query(complete):
            raise OSError("notification center unavailable")

        with pytest.raises(ProviderError):
            _probe(query).notifications_authorized(timeout=0.1)

    def test_contacts_passthrough(self):
        assert _probe(lambda c: c(True), contacts=False).contacts_authorized() is False


class TestProbeWithCatalog:
    def test_timeout_makes_reminder_ineligible(self, make_context):
        ctx = make_context(
            permissions=_probe(lambda complete: None),
            notification_timeout=0.01,
        )
        assert UpgradeId.NOTIFICATION_PERMISSION_REMINDER.is_eligible(ctx) is False

    def test_denied_permission_makes_reminder_eligible(self, make_context):
        ctx = make_context(permissions=_probe(lambda complete: complete(False)))
        assert UpgradeId.NOTIFICATION_PERMISSION_REMINDER.is_eligible(ctx) is True

    def test_young_account_never_queries(self, make_context):
        calls = []
        ctx = make_context(
            registered_at=NOW - timedelta(hours=1),
            permissions=_probe(calls.append),
        )
        assert UpgradeId.NOTIFICATION_PERMISSION_REMINDER.is_eligible(ctx) is False
        assert calls == []
