"""Callback permission probe — implements PermissionPort over callback APIs.

Platform permission APIs answer through a completion callback, possibly on
another thread and possibly never. The probe fires the query and waits at
most `timeout` seconds for the answer; a late answer is dropped.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable

from src.ports.context_port import ProviderError

logger = logging.getLogger(__name__)

Completion = Callable[[bool], None]


class CallbackPermissionProbe:
    """PermissionPort backed by callback-style status queries.

    Args:
        notification_query: Starts a notification-status lookup and calls
            the completion with True when notifications are authorized.
        contacts_query: Returns whether contacts access is authorized.
    """

    def __init__(
        self,
        notification_query: Callable[[Completion], None],
        contacts_query: Callable[[], bool],
    ) -> None:
        self._notification_query = notification_query
        self._contacts_query = contacts_query

    def contacts_authorized(self) -> bool:
        return self._contacts_query()

    def notifications_authorized(self, timeout: float) -> bool:
        """Block for at most `timeout` seconds; raise TimeoutError if no answer came."""
        done = threading.Event()
        lock = threading.Lock()
        answer: list[bool] = []
        abandoned: list[bool] = []

        def complete(authorized: bool) -> None:
            with lock:
                if abandoned or answer:
                    logger.debug("Dropping late notification authorization answer")
                    return
                answer.append(bool(authorized))
            done.set()

        try:
            self._notification_query(complete)
        except Exception as exc:
            raise ProviderError(f"Notification authorization query failed: {exc}") from exc

        done.wait(timeout)
        with lock:
            if not answer:
                abandoned.append(True)
                raise TimeoutError("timeout fetching notification permissions")
            return answer[0]
