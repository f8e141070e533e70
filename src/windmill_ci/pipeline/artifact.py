"""Result artifact: structured report a tool writes next to its exit status."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

log = logging.getLogger(__name__)

INFO_FILENAME = "info.json"


class Summary(BaseModel):
    """One error, warning or test failure recorded by a tool."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    issue_type: str | None = Field(default=None, alias="issueType")
    message: str | None = None
    recovery_suggestion: str | None = Field(default=None, alias="recoverySuggestion")
    test_case_name: str | None = Field(default=None, alias="testCaseName")


class ResultInfo(BaseModel):
    """Counters read from a result artifact once its step has exited."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    error_count: int = Field(default=0, alias="errorCount")
    warning_count: int = Field(default=0, alias="warningCount")
    tests_count: int | None = Field(default=None, alias="testsCount")
    tests_failed_count: int | None = Field(default=None, alias="testsFailedCount")
    error_summaries: list[Summary] = Field(default_factory=list, alias="errorSummaries")
    warning_summaries: list[Summary] = Field(default_factory=list, alias="warningSummaries")
    test_failure_summaries: list[Summary] = Field(default_factory=list, alias="testFailureSummaries")

    @property
    def has_errors(self) -> bool:
        return self.error_count > 0

    @property
    def has_test_failures(self) -> bool:
        return (self.tests_failed_count or 0) > 0

    def summaries(self, which: str) -> list[dict[str, Any]]:
        return [s.model_dump(exclude_none=True) for s in getattr(self, which)]


class ResultArtifact:
    """Handle to where a tool writes its report, agreed upon before launch.

    ``path`` is either the JSON report itself or a bundle directory holding
    ``info.json``.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def __repr__(self) -> str:
        return f"ResultArtifact({str(self.path)!r})"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, ResultArtifact) and other.path == self.path

    def __hash__(self) -> int:
        return hash(self.path)

    @property
    def info_path(self) -> Path:
        if self.path.is_dir():
            return self.path / INFO_FILENAME
        return self.path

    def reset(self) -> None:
        """Remove a report left over from a previous run."""
        info = self.info_path
        if info.is_file():
            info.unlink()

    def read(self) -> ResultInfo | None:
        """Parse the report. Missing or malformed reports give ``None``."""
        info = self.info_path
        if not info.is_file():
            log.debug("No result artifact at %s", info)
            return None
        try:
            data = json.loads(info.read_text(encoding="utf-8"))
            return ResultInfo.model_validate(data)
        except (OSError, ValueError, ValidationError) as e:
            log.warning("Unreadable result artifact at %s: %s", info, e)
            return None
