"""Process manager: launches chain nodes one at a time and reports their lifecycle."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import Any, Callable, Mapping

from .activity import Activity, Artefact
from .chain import Continuation, ProcessChain
from .context import Context
from .lease import Lease
from .monitor import ProcessMonitor
from .outcome import Outcome, classify
from .recovery import RecoveryBinding
from .scheduler import RepeatUntil
from .step import Step

log = logging.getLogger(__name__)


class ProcessManager:
    """Runs at most one step at a time on behalf of a single pipeline.

    ``launch`` returns immediately with a task; the chain then progresses in
    ``_drive``: execute a node, classify its exit, and either stop (failed),
    run the recovery function (recoverable) or ask the node's continuation for
    the next node (success). Nothing is launched once the lease is revoked.
    """

    def __init__(self, monitor: ProcessMonitor | None = None, lease: Lease | None = None) -> None:
        self.monitor = monitor
        self.lease = lease or Lease()
        self._active: ProcessChain | None = None

    @property
    def active(self) -> ProcessChain | None:
        return self._active

    def chain(
        self,
        step: Step,
        activity: Activity | None = None,
        artefact: Artefact | None = None,
        info: Mapping[str, Any] | None = None,
        on_success: Continuation | None = None,
        recovery: RecoveryBinding | None = None,
    ) -> ProcessChain:
        """Build a node bound to this manager."""
        return ProcessChain(
            manager=self,
            step=step,
            activity=activity,
            artefact=artefact,
            info=dict(info or {}),
            on_success=on_success,
            recovery=recovery,
        )

    def launch(
        self,
        chain: ProcessChain,
        recover: RecoveryBinding | None = None,
        context: Mapping[str, Any] | None = None,
    ) -> asyncio.Task[Outcome | None]:
        """Start ``chain`` and return a handle on its final outcome.

        The handle resolves to the outcome of the last executed node, or
        ``None`` if the lease was revoked before anything ran.
        """
        chain.consume()
        loop = asyncio.get_running_loop()
        return loop.create_task(
            self._drive(chain, Context(context), recover or chain.recovery),
            name=f"chain:{chain.label}",
        )

    def repeat(
        self,
        make_chain: Callable[[], ProcessChain],
        every: float,
        until: int,
        then: Callable[[], None],
    ) -> RepeatUntil:
        """Run a fresh node from ``make_chain`` every ``every`` seconds until ``until`` successes."""
        return RepeatUntil(self, make_chain, every=every, until=until, then=then).start()

    async def _drive(
        self,
        node: ProcessChain,
        context: Context,
        recovery: RecoveryBinding | None,
    ) -> Outcome | None:
        outcome: Outcome | None = None
        while True:
            if not self.lease.active:
                log.info("Pipeline abandoned, not launching %s", node.label)
                return outcome

            context.merge(node.info)
            outcome = await self.execute(node, context, recovery=recovery)

            if outcome.is_failed:
                return outcome
            if not self.lease.active:
                log.info("Pipeline abandoned after %s", node.label)
                return outcome

            if outcome.is_recoverable and recovery is not None:
                substitute = recovery.on_trigger(node, context)
                if substitute is not None and substitute.recovery is not None:
                    log.warning("Ignoring recovery declared by substitute node %s", substitute.label)
                    substitute = replace(substitute, recovery=None)
                next_node = substitute
                recovery = None
            else:
                next_node = node.next(context)
                recovery = next_node.recovery if next_node is not None else None

            if next_node is None:
                return outcome
            next_node.consume()
            node = next_node

    async def execute(
        self,
        node: ProcessChain,
        context: Context,
        recovery: RecoveryBinding | None = None,
    ) -> Outcome:
        """Run a single node's step and classify how it ended."""
        if self._active is not None:
            raise RuntimeError(f"{node.label} launched while {self._active.label} is still running")
        self._active = node
        try:
            step = node.step
            if step.artifact is not None:
                step.artifact.reset()

            if self.monitor is not None:
                self.monitor.will_launch(self, node, context)

            launched: list[int] = []

            def on_launch(pid: int) -> None:
                launched.append(pid)
                if self.monitor is not None:
                    self.monitor.did_launch(self, node, pid, context)

            try:
                status = await step.run(on_launch=on_launch)
            except OSError as e:
                log.error("Could not launch %s: %s", step.command_str, e)
                outcome = Outcome.spawn_failure(e)
            else:
                info = step.artifact.read() if step.artifact is not None else None
                outcome = replace(classify(status, info, recovery), pid=launched[0] if launched else None)
                log.debug("%s exited %d: %s", node.label, status, outcome.status.value)

            if self.monitor is not None:
                self.monitor.did_exit(self, node, outcome, context)
            return outcome
        finally:
            self._active = None
