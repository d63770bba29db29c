"""Static context providers — fixed-value implementations of the context ports.

Used wherever provider answers are known up front: tests, previews, and
hosts that snapshot platform state before asking for the next upgrade.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta

from src.core.context import UpgradeContext, utc_now


@dataclass
class StaticAccount:
    """Implements AccountPort."""

    registered_at: datetime | None = None
    primary_device: bool = True
    master_key: bool = False
    pin_reminder_due: bool = False

    def registration_date(self) -> datetime | None:
        return self.registered_at

    def is_primary_device(self) -> bool:
        return self.primary_device

    def has_master_key(self) -> bool:
        return self.master_key

    def is_due_for_pin_reminder(self) -> bool:
        return self.pin_reminder_due


@dataclass
class StaticRemoteConfig:
    """Implements RemoteConfigPort. Missing flags read as False."""

    flags: dict[str, bool] = field(default_factory=dict)
    durations: dict[str, timedelta] = field(default_factory=dict)

    def get_bool(self, key: str) -> bool:
        return self.flags.get(key, False)

    def get_duration(self, key: str) -> timedelta | None:
        return self.durations.get(key)


@dataclass
class StaticProfile:
    """Implements ProfilePort."""

    avatar: bool = False

    def has_avatar(self) -> bool:
        return self.avatar


@dataclass
class StaticPermissions:
    """Implements PermissionPort. The timeout is ignored: answers are immediate."""

    contacts: bool = True
    notifications: bool = True

    def contacts_authorized(self) -> bool:
        return self.contacts

    def notifications_authorized(self, timeout: float) -> bool:
        return self.notifications


@dataclass
class StaticReachability:
    """Implements ReachabilityPort."""

    reachable: bool = True

    def is_reachable(self) -> bool:
        return self.reachable


def build_static_context(
    registered_at: datetime | None = None,
    primary_device: bool = True,
    flags: dict[str, bool] | None = None,
    now: datetime | None = None,
    **overrides,
) -> UpgradeContext:
    """Assemble an UpgradeContext from static providers.

    `overrides` replaces any of the five providers by field name
    (account, remote_config, profile, permissions, reachability).
    """
    providers = {
        "account": StaticAccount(registered_at=registered_at, primary_device=primary_device),
        "remote_config": StaticRemoteConfig(flags=dict(flags or {})),
        "profile": StaticProfile(),
        "permissions": StaticPermissions(),
        "reachability": StaticReachability(),
    }
    unknown = set(overrides) - set(providers) - {"notification_timeout"}
    if unknown:
        raise ValueError(f"Unknown context overrides: {sorted(unknown)}")
    providers.update(overrides)
    return UpgradeContext(now=now or utc_now(), **providers)
