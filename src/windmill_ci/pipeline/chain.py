"""Chain node: a step plus the continuation that builds the next node."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Mapping

from .activity import Activity, Artefact
from .context import Context
from .outcome import Outcome
from .recovery import RecoveryBinding
from .step import Step

if TYPE_CHECKING:
    from .manager import ProcessManager

# Continuation: (merged context) -> next node, or None to end the chain
Continuation = Callable[[Context], "ProcessChain | None"]


@dataclass(eq=False)
class ProcessChain:
    """One node of a lazily-built chain.

    A node is consumed by its first launch. The next node does not exist until
    ``on_success`` is called with the merged context after this node's step
    exited successfully.
    """

    manager: ProcessManager
    step: Step
    activity: Activity | None = None
    artefact: Artefact | None = None
    info: dict[str, Any] = field(default_factory=dict)
    on_success: Continuation | None = None
    recovery: RecoveryBinding | None = None
    tolerate_failure: bool = False
    _consumed: bool = field(default=False, init=False, repr=False)

    @property
    def consumed(self) -> bool:
        return self._consumed

    def consume(self) -> None:
        if self._consumed:
            raise RuntimeError(f"Chain node {self.label} was already launched")
        self._consumed = True

    @property
    def label(self) -> str:
        return self.activity.value if self.activity else self.step.name

    def metadata(self) -> dict[str, Any]:
        return {
            "activity": self.activity.value if self.activity else None,
            "artefact": self.artefact.value if self.artefact else None,
        }

    def next(self, context: Context) -> ProcessChain | None:
        if self.on_success is None:
            return None
        return self.on_success(context)

    def launch(
        self,
        recover: RecoveryBinding | None = None,
        context: Mapping[str, Any] | None = None,
    ) -> asyncio.Task[Outcome | None]:
        """Start this chain on its manager; ``recover`` overrides the node's own binding."""
        return self.manager.launch(self, recover=recover, context=context)
