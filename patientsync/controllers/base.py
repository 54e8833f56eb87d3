"""
Base Controller Contract — shared plumbing for the view controllers.

A controller owns presentation state derived from the repository, tells its
view when that state changes, and can be torn down.  After ``close()`` no
response may be applied: every state update goes through ``_is_active()``
first.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, Optional

from patientsync.client.errors import GatewayError, Notice, to_notice
from patientsync.store.repository import RecordRepository

ChangeListener = Callable[[], None]


class LoadState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    LOADED = "loaded"
    FAILED = "failed"


class BaseController:
    """
    Common state for controllers.

    - notices: every error surfaced to the user, oldest first
    - on_change: called after each state change (view re-render hook)
    """

    logger = logging.getLogger("patientsync.controllers")

    def __init__(
        self,
        repository: RecordRepository,
        *,
        on_change: Optional[ChangeListener] = None,
    ) -> None:
        self._repository = repository
        self._on_change = on_change
        self._active = True
        self.notices: list[Notice] = []

    @property
    def active(self) -> bool:
        return self._active

    @property
    def last_notice(self) -> Optional[Notice]:
        return self.notices[-1] if self.notices else None

    def close(self) -> None:
        """Tear down.  Responses still in flight are dropped when they land."""
        self._active = False
        self.logger.debug("%s closed", type(self).__name__)

    def dismiss_notices(self) -> None:
        self.notices.clear()
        self._notify()

    # ── Internal ──

    def _is_active(self, what: str) -> bool:
        if not self._active:
            self.logger.debug(
                "%s: discarding %s after close", type(self).__name__, what
            )
        return self._active

    def _surface(self, error: GatewayError, action: str) -> Optional[Notice]:
        """Log an error and, while the view is still around, queue a notice."""
        if not self._active:
            self.logger.warning(
                "%s: failed to %s after close: %s", type(self).__name__, action, error
            )
            return None
        notice = to_notice(error, action)
        self.logger.warning("Failed to %s: %s", action, error)
        self.notices.append(notice)
        return notice

    def _notify(self) -> None:
        if self._on_change is not None and self._active:
            self._on_change()
