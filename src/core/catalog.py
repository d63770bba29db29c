"""
Experience Upgrades — Catalog.

The closed set of experience upgrades (megaphones) and their rules: when
each may launch, how it ranks, whether its state is saved, whether it can
ever be completed, how long a snooze lasts, and whether linked devices see
it. Rule values live in a lookup table; eligibility conditions in a second
table keyed the same way.

No I/O of its own: rules only read the UpgradeContext they are handed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum, IntEnum
from typing import TYPE_CHECKING, Callable

from src.core.context import as_utc
from src.ports.context_port import ProviderError

if TYPE_CHECKING:
    from src.core.context import UpgradeContext

logger = logging.getLogger(__name__)

DAY = timedelta(days=1)
HOUR = timedelta(hours=1)

# Remote config keys
KBS = "kbs"
RESEARCH_MEGAPHONE = "researchMegaphone"
GROUPS_V2_SHOW_SPLASH = "groupsV2ShowSplash"
GROUP_CALLING = "groupCalling"
DONATE_MEGAPHONE = "donateMegaphone"
DONATE_MEGAPHONE_SNOOZE_INTERVAL = "donateMegaphoneSnoozeInterval"


class Priority(IntEnum):
    """Coarse ranking bucket. Higher values show first."""

    LOW = 0
    MEDIUM = 1
    HIGH = 2


class UpgradeId(str, Enum):
    """Every experience upgrade, in catalog order.

    Values are the stored row keys and must never change.
    """

    INTRODUCING_PINS = "009"
    PIN_REMINDER = "pinReminder"  # never saved, re-prompts for the PIN periodically
    NOTIFICATION_PERMISSION_REMINDER = "notificationPermissionReminder"
    CONTACT_PERMISSION_REMINDER = "contactPermissionReminder"
    LINK_PREVIEWS = "linkPreviews"
    RESEARCH_MEGAPHONE_1 = "researchMegaphone1"
    GROUPS_V2_AND_MENTIONS_SPLASH_2 = "groupsV2AndMentionsSplash2"
    GROUP_CALLS_MEGAPHONE = "groupCallsMegaphone"
    SHARING_SUGGESTIONS = "sharingSuggestions"
    DONATE_MEGAPHONE = "donateMegaphone"
    CHAT_COLORS = "chatColors"
    AVATAR_BUILDER = "avatarBuilder"

    @classmethod
    def from_unique_id(cls, unique_id: str) -> UpgradeId | None:
        """Map a stored key back to its id; None for keys no longer in the catalog."""
        try:
            return cls(unique_id)
        except ValueError:
            return None

    @property
    def rules(self) -> UpgradeRules:
        return _RULES[self]

    @property
    def priority(self) -> Priority:
        return self.rules.priority

    @property
    def skip_for_new_users(self) -> bool:
        return self.rules.skip_for_new_users

    @property
    def delay_after_registration(self) -> timedelta:
        return self.rules.delay_after_registration

    @property
    def should_save(self) -> bool:
        return self.rules.should_save

    @property
    def can_be_completed(self) -> bool:
        return self.rules.can_be_completed

    @property
    def show_on_linked_devices(self) -> bool:
        return self.rules.show_on_linked_devices

    def has_expired(self, now: datetime) -> bool:
        """Whether this upgrade's run has ended as of `now`."""
        expires_at = self.rules.expires_at
        return expires_at is not None and as_utc(now) > expires_at

    def snooze_duration(self, ctx: UpgradeContext) -> timedelta:
        if self.rules.snooze_duration is not None:
            return self.rules.snooze_duration
        return _remote_snooze_duration(ctx)

    def is_eligible(self, ctx: UpgradeContext) -> bool:
        """Whether this upgrade may be shown at all right now.

        Accounts younger than `delay_after_registration` are rejected before
        any id-specific provider is consulted. Any provider failure makes
        the upgrade ineligible rather than raising.
        """
        try:
            registered_at = ctx.account.registration_date()
        except Exception as exc:
            logger.warning("Failed to read registration date for %s: %s", self.value, exc)
            return False

        if registered_at is not None and ctx.now - as_utc(registered_at) < self.delay_after_registration:
            return False

        try:
            return bool(_ELIGIBILITY[self](ctx))
        except Exception as exc:
            logger.warning(
                "Eligibility check for %s failed, treating as not eligible: %s",
                self.value, exc,
            )
            return False


@dataclass(frozen=True)
class UpgradeRules:
    """Static rule values for one upgrade.

    `snooze_duration` of None means the duration comes from remote config.
    """

    priority: Priority = Priority.MEDIUM
    skip_for_new_users: bool = True
    delay_after_registration: timedelta = timedelta(0)
    should_save: bool = True
    can_be_completed: bool = True
    snooze_duration: timedelta | None = 2 * DAY
    show_on_linked_devices: bool = False
    expires_at: datetime | None = None


_RULES: dict[UpgradeId, UpgradeRules] = {
    UpgradeId.INTRODUCING_PINS: UpgradeRules(
        priority=Priority.HIGH,
        skip_for_new_users=False,
        delay_after_registration=2 * HOUR,  # create a PIN after a key backup failure
    ),
    UpgradeId.PIN_REMINDER: UpgradeRules(
        delay_after_registration=8 * HOUR,
        should_save=False,
        can_be_completed=False,
    ),
    UpgradeId.NOTIFICATION_PERMISSION_REMINDER: UpgradeRules(
        delay_after_registration=DAY,
        can_be_completed=False,
        snooze_duration=30 * DAY,
        show_on_linked_devices=True,
    ),
    UpgradeId.CONTACT_PERMISSION_REMINDER: UpgradeRules(
        delay_after_registration=DAY,
        can_be_completed=False,
        snooze_duration=30 * DAY,
        show_on_linked_devices=True,
    ),
    UpgradeId.LINK_PREVIEWS: UpgradeRules(),
    UpgradeId.RESEARCH_MEGAPHONE_1: UpgradeRules(
        priority=Priority.LOW,
        skip_for_new_users=False,
    ),
    UpgradeId.GROUPS_V2_AND_MENTIONS_SPLASH_2: UpgradeRules(),
    UpgradeId.GROUP_CALLS_MEGAPHONE: UpgradeRules(),
    UpgradeId.SHARING_SUGGESTIONS: UpgradeRules(show_on_linked_devices=True),
    UpgradeId.DONATE_MEGAPHONE: UpgradeRules(
        priority=Priority.LOW,
        skip_for_new_users=False,
        delay_after_registration=5 * DAY,
        can_be_completed=False,
        snooze_duration=None,
        show_on_linked_devices=True,
    ),
    UpgradeId.CHAT_COLORS: UpgradeRules(priority=Priority.LOW),
    UpgradeId.AVATAR_BUILDER: UpgradeRules(),
}


# ---------------------------------------------------------------------------
# Eligibility conditions (checked only once the registration delay has passed)
# ---------------------------------------------------------------------------


def _always(ctx: UpgradeContext) -> bool:
    return True


def _introducing_pins(ctx: UpgradeContext) -> bool:
    # PIN setup needs a connection and no existing PIN
    return (
        ctx.remote_config.get_bool(KBS)
        and ctx.reachability.is_reachable()
        and not ctx.account.has_master_key()
    )


def _pin_reminder(ctx: UpgradeContext) -> bool:
    return ctx.account.is_due_for_pin_reminder()


def _notification_permission_reminder(ctx: UpgradeContext) -> bool:
    logger.info("Checking notification authorization")
    try:
        authorized = ctx.permissions.notifications_authorized(ctx.permission_timeout())
    except (TimeoutError, ProviderError) as exc:
        logger.warning("Failed to query notification permission: %s", exc)
        return False
    logger.info("Checked notification authorization: %s", authorized)
    return not authorized


def _contact_permission_reminder(ctx: UpgradeContext) -> bool:
    return not ctx.permissions.contacts_authorized()


def _remote_flag(key: str) -> Callable[[UpgradeContext], bool]:
    def check(ctx: UpgradeContext) -> bool:
        return ctx.remote_config.get_bool(key)

    return check


def _avatar_builder(ctx: UpgradeContext) -> bool:
    return not ctx.profile.has_avatar()


_ELIGIBILITY: dict[UpgradeId, Callable[[UpgradeContext], bool]] = {
    UpgradeId.INTRODUCING_PINS: _introducing_pins,
    UpgradeId.PIN_REMINDER: _pin_reminder,
    UpgradeId.NOTIFICATION_PERMISSION_REMINDER: _notification_permission_reminder,
    UpgradeId.CONTACT_PERMISSION_REMINDER: _contact_permission_reminder,
    UpgradeId.LINK_PREVIEWS: _always,
    UpgradeId.RESEARCH_MEGAPHONE_1: _remote_flag(RESEARCH_MEGAPHONE),
    UpgradeId.GROUPS_V2_AND_MENTIONS_SPLASH_2: _remote_flag(GROUPS_V2_SHOW_SPLASH),
    UpgradeId.GROUP_CALLS_MEGAPHONE: _remote_flag(GROUP_CALLING),
    UpgradeId.SHARING_SUGGESTIONS: _always,
    UpgradeId.DONATE_MEGAPHONE: _remote_flag(DONATE_MEGAPHONE),
    UpgradeId.CHAT_COLORS: _always,
    UpgradeId.AVATAR_BUILDER: _avatar_builder,
}


def _remote_snooze_duration(ctx: UpgradeContext) -> timedelta:
    """Donate snooze from remote config, falling back to DONATE_SNOOZE_DAYS."""
    try:
        duration = ctx.remote_config.get_duration(DONATE_MEGAPHONE_SNOOZE_INTERVAL)
    except Exception as exc:
        logger.warning("Failed to read %s: %s", DONATE_MEGAPHONE_SNOOZE_INTERVAL, exc)
        duration = None
    if duration is None:
        from src.config import settings
        duration = timedelta(days=settings.DONATE_SNOOZE_DAYS)
    return duration
