"""Recovery binding: one exit status that swaps in a substitute node."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable

if TYPE_CHECKING:
    from .chain import ProcessChain
    from .context import Context

# on_trigger(exited_chain, context) -> substitute node, or None to end the chain
RecoveryFunction = Callable[["ProcessChain", "Context"], "ProcessChain | None"]


@dataclass(frozen=True)
class RecoveryBinding:
    trigger_status: int
    on_trigger: RecoveryFunction

    def __post_init__(self) -> None:
        if self.trigger_status == 0:
            raise ValueError("Exit status 0 cannot trigger a recovery")


def recover(trigger_status: int, on_trigger: RecoveryFunction) -> RecoveryBinding:
    """Bind ``on_trigger`` to ``trigger_status`` for a single launch."""
    return RecoveryBinding(trigger_status=trigger_status, on_trigger=on_trigger)
