"""Context ports — read-only providers consulted by eligibility rules.

Core modules depend on these protocols, never on a specific platform API.
Each provider may raise ProviderError (or TimeoutError for bounded probes);
the catalog turns either into "not eligible".
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Protocol


class ProviderError(Exception):
    """Raised when a context provider cannot answer."""


class AccountPort(Protocol):
    """Account and registration state of the local device."""

    def registration_date(self) -> datetime | None: ...

    def is_primary_device(self) -> bool: ...

    def has_master_key(self) -> bool: ...

    def is_due_for_pin_reminder(self) -> bool: ...


class RemoteConfigPort(Protocol):
    """Remote config and feature flag values by key."""

    def get_bool(self, key: str) -> bool: ...

    def get_duration(self, key: str) -> timedelta | None: ...


class ProfilePort(Protocol):
    """Local profile state."""

    def has_avatar(self) -> bool: ...


class PermissionPort(Protocol):
    """Device authorization statuses."""

    def contacts_authorized(self) -> bool: ...

    def notifications_authorized(self, timeout: float) -> bool: ...


class ReachabilityPort(Protocol):
    """Network reachability."""

    def is_reachable(self) -> bool: ...
