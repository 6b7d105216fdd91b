"""
Pydantic models for run reports.

Reporters never see live suite nodes; the aggregator flattens resolved tests
and hook failures into CaseResult records first.
"""

import traceback
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..execution.models import FailureEvent, RunStats
from ..suite.models import TestNode, TestStatus


class CaseResult(BaseModel):
    """A resolved test or a failed hook, as reporters see it."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., description="Test name or hook title")
    full_title: str = Field(..., description="Space-joined suite titles and name")
    classname: str = Field("", description="Full title of the owning suite")
    suite_titles: List[str] = Field(default_factory=list, description="Titles from root to owner")
    status: str = Field(..., description="passed, failed or skipped")
    duration: float = Field(0.0, ge=0, description="Duration of the last attempt in seconds")
    attempts: int = Field(0, ge=0, description="Attempts made")
    tags: List[str] = Field(default_factory=list, description="Effective tags")
    hook: bool = Field(False, description="True for hook failures")
    error_message: Optional[str] = Field(None, description="Error message if failed")
    error_type: Optional[str] = Field(None, description="Exception type if failed")
    stack_trace: Optional[str] = Field(None, description="Formatted traceback if failed")
    artifacts: List[str] = Field(default_factory=list, description="Failure artifact paths")

    @property
    def passed(self) -> bool:
        return self.status == "passed"

    @property
    def failed(self) -> bool:
        return self.status == "failed"

    @property
    def skipped(self) -> bool:
        return self.status == "skipped"

    @classmethod
    def from_test(cls, test: TestNode) -> "CaseResult":
        status = {
            TestStatus.PASSED: "passed",
            TestStatus.FAILED: "failed",
        }.get(test.status, "skipped")

        suite_titles = test.titles[:-1]
        return cls(
            name=test.name,
            full_title=test.full_title,
            classname=test.parent.full_title if test.parent else "",
            suite_titles=suite_titles,
            status=status,
            duration=test.duration,
            attempts=test.attempts,
            tags=sorted(test.effective_tags),
            artifacts=[str(path) for bundle in test.artifacts for path in bundle.files],
            **_error_fields(test.error if status == "failed" else None),
        )

    @classmethod
    def from_hook_failure(cls, event: FailureEvent) -> "CaseResult":
        suite_titles = event.suite.titles if event.suite else []
        return cls(
            name=event.title,
            full_title=" ".join(suite_titles + [event.title]),
            classname=event.classname,
            suite_titles=suite_titles,
            status="failed",
            hook=True,
            artifacts=[str(path) for path in event.bundle.files] if event.bundle else [],
            **_error_fields(event.error),
        )


def _error_fields(error: Optional[BaseException]) -> Dict[str, Any]:
    if error is None:
        return {}
    return {
        "error_message": str(error) or type(error).__name__,
        "error_type": type(error).__name__,
        "stack_trace": "".join(
            traceback.format_exception(type(error), error, error.__traceback__)
        ),
    }


class RunReport(BaseModel):
    """Everything a reporter needs about one finished run."""

    model_config = ConfigDict(extra="forbid")

    run_id: str = Field(..., description="Run identifier")
    stats: RunStats = Field(..., description="Final run counters")
    cases: List[CaseResult] = Field(
        default_factory=list, description="Tests and hook failures in execution order"
    )
    generated_at: datetime = Field(default_factory=datetime.now)

    @property
    def tests(self) -> List[CaseResult]:
        return [case for case in self.cases if not case.hook]

    @property
    def failures(self) -> List[CaseResult]:
        return [case for case in self.cases if case.failed]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "stats": self.stats.to_summary(),
            "tests": [case.model_dump() for case in self.tests],
            "failures": [case.model_dump() for case in self.failures],
            "generated_at": self.generated_at.isoformat(),
        }
