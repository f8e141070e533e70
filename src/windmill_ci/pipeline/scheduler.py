"""Repeat-until scheduler: fixed-interval re-runs of one step."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Callable

from .context import Context

if TYPE_CHECKING:
    from .chain import ProcessChain
    from .manager import ProcessManager

log = logging.getLogger(__name__)


class RepeatUntil:
    """Launch a fresh node every ``every`` seconds until ``until`` of them succeeded.

    The first tick runs ``every`` seconds after ``start``; each later tick
    ``every`` seconds after the previous tick's process exited, whatever its
    outcome. Ticks never overlap. ``then`` runs exactly once, after the
    qualifying tick, and no tick is scheduled after it. Revoking the manager's
    lease cancels the pending timer, or terminates the tick in flight.

    An exception raised by ``make_chain`` or ``then`` ends the loop and is left
    on ``task`` for the owner to collect.
    """

    def __init__(
        self,
        manager: ProcessManager,
        make_chain: Callable[[], ProcessChain],
        every: float,
        until: int,
        then: Callable[[], None],
    ) -> None:
        if every < 0:
            raise ValueError("Interval must not be negative")
        if until < 1:
            raise ValueError("At least one success is required")
        self.manager = manager
        self.make_chain = make_chain
        self.every = every
        self.until = until
        self.then = then
        self.ticks = 0
        self.successes = 0
        self._task: asyncio.Task[None] | None = None
        self._fired = False

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def fired(self) -> bool:
        return self._fired

    @property
    def task(self) -> asyncio.Task[None] | None:
        return self._task

    def start(self) -> RepeatUntil:
        if self._task is not None:
            raise RuntimeError("Scheduler already started")
        lease = self.manager.lease
        if not lease.active:
            log.info("Pipeline abandoned, not scheduling")
            return self
        self._task = asyncio.get_running_loop().create_task(self._run(), name="repeat-until")
        lease.on_revoke(self.cancel)
        return self

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def wait(self) -> None:
        """Wait until the loop stopped, either fired or cancelled."""
        if self._task is None:
            return
        try:
            await self._task
        except asyncio.CancelledError:
            if not self._task.cancelled():
                raise

    async def _run(self) -> None:
        lease = self.manager.lease
        try:
            while self.successes < self.until:
                await asyncio.sleep(self.every)
                if not lease.active:
                    return
                node = self.make_chain()
                node.consume()
                node.tolerate_failure = True
                outcome = await self.manager.execute(node, Context(node.info))
                self.ticks += 1
                if outcome.is_success:
                    self.successes += 1
                else:
                    log.debug("Tick %d of %s did not qualify (%s)", self.ticks, node.label, outcome.failure_reason)
        finally:
            lease.discard(self.cancel)

        if lease.active:
            self._fired = True
            self.then()
