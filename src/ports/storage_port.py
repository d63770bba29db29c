"""Storage port — abstract interface for the upgrade record store.

Core modules depend on these protocols, never on a specific database.
A transaction is supplied by the caller; the core never opens one itself.
"""

from __future__ import annotations

from typing import Iterable, Iterator, Protocol

from src.data.models import UpgradeRecord


class UpgradeStorageError(Exception):
    """Raised when a fetch or upsert against the record store fails."""


class ReadTransaction(Protocol):
    """Consistent read view over upgrade records."""

    def fetch(self, unique_id: str) -> UpgradeRecord | None: ...

    def fetch_many(self, unique_ids: Iterable[str]) -> Iterator[UpgradeRecord]: ...


class WriteTransaction(ReadTransaction, Protocol):
    """Read view that can also upsert records."""

    def upsert(self, record: UpgradeRecord, fields: Iterable[str]) -> None: ...
