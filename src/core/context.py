"""Eligibility context — the read-only snapshot every catalog rule sees.

Assembled once per query and threaded through the finder, so rules never
reach for process-wide singletons and tests can hand in fakes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from src.ports.context_port import (
        AccountPort,
        PermissionPort,
        ProfilePort,
        ReachabilityPort,
        RemoteConfigPort,
    )


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Return `value` as an aware UTC datetime; naive values are read as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True)
class UpgradeContext:
    """Providers plus the wall-clock instant a query is evaluated at.

    Cheap values (registration date, primary device) are read from the
    account port on demand, like the expensive ones, so a rule that
    short-circuits never pays for a provider it did not need.
    """

    account: AccountPort
    remote_config: RemoteConfigPort
    profile: ProfilePort
    permissions: PermissionPort
    reachability: ReachabilityPort
    now: datetime = field(default_factory=utc_now)
    notification_timeout: float | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "now", as_utc(self.now))

    def permission_timeout(self) -> float:
        if self.notification_timeout is not None:
            return self.notification_timeout
        from src.config import settings
        return settings.NOTIFICATION_PERMISSION_TIMEOUT
