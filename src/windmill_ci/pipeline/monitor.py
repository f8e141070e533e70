"""Monitor interface: observer of step lifecycle events."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .chain import ProcessChain
    from .context import Context
    from .manager import ProcessManager
    from .outcome import Outcome


class ProcessMonitor(ABC):
    """Receives, in order, will_launch -> did_launch -> did_exit for every step.

    ``did_launch`` is skipped when the process could not be spawned.
    """

    def will_launch(self, manager: ProcessManager, chain: ProcessChain, context: Context) -> None:
        """Called before the process is spawned."""

    @abstractmethod
    def did_launch(self, manager: ProcessManager, chain: ProcessChain, pid: int, context: Context) -> None:
        ...

    @abstractmethod
    def did_exit(self, manager: ProcessManager, chain: ProcessChain, outcome: Outcome, context: Context) -> None:
        ...
