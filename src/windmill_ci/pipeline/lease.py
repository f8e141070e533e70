"""Lease: explicit ownership of the work a pipeline schedules."""

from __future__ import annotations

import logging
from typing import Callable

log = logging.getLogger(__name__)


class Lease:
    """Handle held by a pipeline's manager, chains and timers.

    Once revoked it stays revoked: no new step is launched under it and the
    registered cancel callbacks (pending timers) run exactly once.
    """

    def __init__(self, owner: str = "") -> None:
        self.owner = owner
        self._active = True
        self._on_revoke: list[Callable[[], None]] = []

    @property
    def active(self) -> bool:
        return self._active

    def on_revoke(self, callback: Callable[[], None]) -> None:
        if not self._active:
            callback()
            return
        self._on_revoke.append(callback)

    def discard(self, callback: Callable[[], None]) -> None:
        try:
            self._on_revoke.remove(callback)
        except ValueError:
            pass

    def revoke(self) -> None:
        if not self._active:
            return
        log.debug("Lease revoked: %s", self.owner or "<anonymous>")
        self._active = False
        callbacks, self._on_revoke = self._on_revoke, []
        for callback in callbacks:
            callback()
