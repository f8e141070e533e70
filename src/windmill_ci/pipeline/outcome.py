"""Step outcome and exit classification."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from .artifact import ResultInfo

if TYPE_CHECKING:
    from .recovery import RecoveryBinding


class StepStatus(str, Enum):
    SUCCESS = "success"
    RECOVERABLE = "recoverable"
    FAILED = "failed"


class FailureKind(str, Enum):
    PROCESS = "process"  # nonzero exit, no recovery match
    REPORT = "report"  # zero exit, errors or test failures in the result artifact
    SPAWN = "spawn"  # process never started


@dataclass(frozen=True)
class Outcome:
    """Terminal state of one launched step."""

    status: StepStatus
    exit_status: int | None = None
    info: ResultInfo | None = None
    failure_kind: FailureKind | None = None
    failure_reason: str = ""
    pid: int | None = None

    @property
    def is_success(self) -> bool:
        return self.status is StepStatus.SUCCESS

    @property
    def is_recoverable(self) -> bool:
        return self.status is StepStatus.RECOVERABLE

    @property
    def is_failed(self) -> bool:
        return self.status is StepStatus.FAILED

    @classmethod
    def spawn_failure(cls, error: BaseException) -> Outcome:
        return cls(
            status=StepStatus.FAILED,
            failure_kind=FailureKind.SPAWN,
            failure_reason=f"could not launch: {error}",
        )


def classify(
    exit_status: int,
    info: ResultInfo | None = None,
    recovery: RecoveryBinding | None = None,
) -> Outcome:
    """Decide success or failure from the exit status, corroborated by the tool's report.

    Rules, first match wins:

    1. the recovery trigger status -> RECOVERABLE
    2. nonzero exit -> FAILED (process)
    3. error count in the report -> FAILED (report)
    4. failed tests in the report -> FAILED (report)
    5. SUCCESS
    """
    if recovery is not None and exit_status == recovery.trigger_status:
        return Outcome(status=StepStatus.RECOVERABLE, exit_status=exit_status, info=info)
    if exit_status != 0:
        return Outcome(
            status=StepStatus.FAILED,
            exit_status=exit_status,
            info=info,
            failure_kind=FailureKind.PROCESS,
            failure_reason=f"exit status {exit_status}",
        )
    if info is not None and info.has_errors:
        return Outcome(
            status=StepStatus.FAILED,
            exit_status=exit_status,
            info=info,
            failure_kind=FailureKind.REPORT,
            failure_reason=f"{info.error_count} error(s) reported",
        )
    if info is not None and info.has_test_failures:
        return Outcome(
            status=StepStatus.FAILED,
            exit_status=exit_status,
            info=info,
            failure_kind=FailureKind.REPORT,
            failure_reason=f"{info.tests_failed_count} test(s) failed",
        )
    return Outcome(status=StepStatus.SUCCESS, exit_status=exit_status, info=info)
