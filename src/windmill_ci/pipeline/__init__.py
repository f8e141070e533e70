"""Process-orchestration engine: steps, chains, manager, recovery, repeat-until."""

from .activity import Activity, Artefact
from .artifact import ResultArtifact, ResultInfo, Summary
from .chain import Continuation, ProcessChain
from .context import Context
from .events import EventBus, EventCallback, Events
from .lease import Lease
from .manager import ProcessManager
from .monitor import ProcessMonitor
from .outcome import FailureKind, Outcome, StepStatus, classify
from .recovery import RecoveryBinding, recover
from .scheduler import RepeatUntil
from .step import Step

__all__ = [
    "Activity",
    "Artefact",
    "ResultArtifact",
    "ResultInfo",
    "Summary",
    "Continuation",
    "ProcessChain",
    "Context",
    "EventBus",
    "EventCallback",
    "Events",
    "Lease",
    "ProcessManager",
    "ProcessMonitor",
    "FailureKind",
    "Outcome",
    "StepStatus",
    "classify",
    "RecoveryBinding",
    "recover",
    "RepeatUntil",
    "Step",
]
