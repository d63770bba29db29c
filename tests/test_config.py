"""Tests for src.config — Settings validation."""

import logging

import pytest
from pydantic import ValidationError

from src.config import Settings, settings


class TestSettingsDefaults:
    def test_defaults(self):
        s = Settings()
        assert s.DATABASE_PATH == "data/upgrades.db"
        assert s.NOTIFICATION_PERMISSION_TIMEOUT == 0.05
        assert s.DONATE_SNOOZE_DAYS == 30
        assert s.LOG_LEVEL == "INFO"

    def test_singleton_reads_test_env(self):
        assert settings.DATABASE_PATH == ":memory:"


class TestSettingsParsing:
    def test_string_values_are_coerced(self):
        s = Settings(NOTIFICATION_PERMISSION_TIMEOUT="0.25", DONATE_SNOOZE_DAYS="14")
        assert s.NOTIFICATION_PERMISSION_TIMEOUT == 0.25
        assert s.DONATE_SNOOZE_DAYS == 14

    def test_non_positive_timeout_rejected(self):
        with pytest.raises(ValidationError):
            Settings(NOTIFICATION_PERMISSION_TIMEOUT="0")

    def test_negative_snooze_rejected(self):
        with pytest.raises(ValidationError):
            Settings(DONATE_SNOOZE_DAYS=-1)

    def test_log_level_normalized(self):
        s = Settings(LOG_LEVEL=" debug ")
        assert s.LOG_LEVEL == "DEBUG"
        assert s.log_level == logging.DEBUG

    def test_unknown_log_level_rejected(self):
        with pytest.raises(ValidationError):
            Settings(LOG_LEVEL="chatty")
