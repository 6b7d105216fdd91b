"""
Data models for test runs and artifact capture.

Defines the immutable run configuration, the run statistics accumulator, the
failure artifact bundle and the contexts handed to test and hook bodies.
"""

import json
import os
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..core.exceptions import ConfigurationError, SkipTest, StatsMismatchError
from ..suite.models import Hook, SuiteNode, TestNode


ARTIFACTS_ENV = "CONDUCTOR_FAILURE_ARTIFACTS"
ARTIFACTS_DIR_ENV = "CONDUCTOR_FAILURE_ARTIFACTS_OUTPUT_DIR"
TRUTHY = ("true", "1", "yes")


class ArtifactCaptureConfig(BaseModel):
    """Arming switch and output location for failure artifacts."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    enabled: bool = Field(False, description="Capture artifacts on failure")
    output_dir: Optional[Path] = Field(None, description="Directory receiving bundles")

    @property
    def armed(self) -> bool:
        """Capture happens only when enabled and a directory is configured."""
        return self.enabled and self.output_dir is not None

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ArtifactCaptureConfig":
        """Read the arming toggle and output directory from the environment."""
        env = os.environ if environ is None else environ
        output_dir = env.get(ARTIFACTS_DIR_ENV) or None
        return cls(
            enabled=env.get(ARTIFACTS_ENV, "").lower() in TRUTHY,
            output_dir=Path(output_dir) if output_dir else None,
        )


class RunConfig(BaseModel):
    """Immutable input to a single run."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    globs: List[str] = Field(default_factory=list, description="Suite file patterns")
    tag: List[str] = Field(default_factory=list, description="Ordered tag expressions")
    filter: Optional[str] = Field(None, description="Regex searched in full test titles")
    retries: int = Field(0, ge=0, description="Extra attempts for a failing test")
    reporter: str = Field("spec", description="Reporter name")
    reporter_options: Union[str, Dict[str, str], None] = Field(
        None, description="Reporter options as 'k=v,k2=v2' or a mapping"
    )
    flags: List[str] = Field(default_factory=list, description="Enabled feature flags")
    timeout: Optional[float] = Field(None, gt=0, description="Per test/hook timeout in seconds")
    artifacts: ArtifactCaptureConfig = Field(
        default_factory=ArtifactCaptureConfig.from_env,
        description="Failure artifact capture settings",
    )

    @field_validator("globs", "tag", "flags", mode="before")
    @classmethod
    def coerce_list(cls, v):
        """Accept a single string where a list is expected."""
        if v is None:
            return []
        if isinstance(v, str):
            return [v]
        return v

    @field_validator("reporter")
    @classmethod
    def validate_reporter(cls, v):
        if not v or not v.strip():
            raise ValueError("Reporter name cannot be empty")
        return v.strip()

    @classmethod
    def from_file(cls, path: Union[str, Path], **overrides) -> "RunConfig":
        """
        Load a run configuration from a YAML or JSON mapping.

        Keyword overrides replace values from the file; ``None`` overrides are
        ignored so unset command-line options keep the file's values.
        """
        path = Path(path)
        try:
            text = path.read_text(encoding="utf-8")
            if path.suffix.lower() == ".json":
                data = json.loads(text)
            else:
                data = yaml.safe_load(text)
        except (OSError, ValueError, yaml.YAMLError) as e:
            raise ConfigurationError(
                f"Cannot read run configuration {path}: {e}",
                setting="config",
            ) from e

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigurationError(
                f"Run configuration must be a mapping: {path}",
                setting="config",
            )

        data = {key.replace("-", "_"): value for key, value in data.items()}
        data.update({key: value for key, value in overrides.items() if value is not None})
        return cls.build(**data)

    @classmethod
    def build(cls, **values) -> "RunConfig":
        """Construct a RunConfig, converting validation errors to ConfigurationError."""
        try:
            return cls(**values)
        except ValidationError as e:
            violations = [
                f"{'.'.join(str(p) for p in error['loc'])}: {error['msg']}"
                for error in e.errors()
            ]
            raise ConfigurationError(
                "Invalid run configuration: " + "; ".join(violations),
                setting="run_config",
                violations=violations,
            ) from e


class RunStats(BaseModel):
    """Outcome counters for a run."""

    tests: int = Field(0, ge=0, description="Resolved tests")
    passes: int = Field(0, ge=0, description="Passed tests")
    failures: int = Field(0, ge=0, description="Failed tests plus hook failures")
    pending: int = Field(0, ge=0, description="Skipped or pending tests")
    hook_failures: int = Field(0, ge=0, description="Failures raised by hooks")

    start: Optional[datetime] = Field(None, description="Run start time")
    end: Optional[datetime] = Field(None, description="Run end time")
    duration: float = Field(0.0, ge=0, description="Run duration in seconds")

    @property
    def test_failures(self) -> int:
        return self.failures - self.hook_failures

    @property
    def is_reconciled(self) -> bool:
        """Every resolved test is counted exactly once as pass, failure or pending."""
        return self.tests == self.passes + self.test_failures + self.pending

    @property
    def ok(self) -> bool:
        return self.failures == 0

    def reconcile(self) -> "RunStats":
        if not self.is_reconciled:
            raise StatsMismatchError(
                f"Run counters do not reconcile: tests={self.tests} passes={self.passes} "
                f"failures={self.failures} (hooks={self.hook_failures}) pending={self.pending}",
                stats=self.to_summary(),
            )
        return self

    def to_summary(self) -> Dict[str, Any]:
        return {
            "tests": self.tests,
            "passes": self.passes,
            "failures": self.failures,
            "pending": self.pending,
            "hook_failures": self.hook_failures,
            "duration": self.duration,
        }


class ArtifactBundle(BaseModel):
    """The four forensic files written for one failure."""

    model_config = ConfigDict(extra="forbid")

    identifier: str = Field(..., description="Unsanitized failure identifier")
    stem: str = Field(..., description="Sanitized file name stem")
    directory: Path = Field(..., description="Output directory")
    created_at: datetime = Field(default_factory=datetime.now)

    @property
    def screenshot(self) -> Path:
        return self.directory / f"{self.stem}.png"

    @property
    def page_source(self) -> Path:
        return self.directory / f"{self.stem}.html"

    @property
    def browser_log(self) -> Path:
        return self.directory / f"{self.stem}.browser.txt"

    @property
    def driver_log(self) -> Path:
        return self.directory / f"{self.stem}.driver.txt"

    @property
    def files(self) -> List[Path]:
        return [self.screenshot, self.page_source, self.browser_log, self.driver_log]


@dataclass
class FailureEvent:
    """A failed test (after retries) or a failed hook."""

    identifier: str
    title: str
    error: BaseException
    suite: Optional[SuiteNode] = None
    test: Optional[TestNode] = None
    hook: Optional[Hook] = None
    bundle: Optional[ArtifactBundle] = None

    @property
    def is_hook(self) -> bool:
        return self.hook is not None

    @property
    def classname(self) -> str:
        if self.suite is not None:
            return self.suite.full_title
        if self.test is not None and self.test.parent is not None:
            return self.test.parent.full_title
        return ""

    @property
    def message(self) -> str:
        return str(self.error) or type(self.error).__name__


@dataclass
class RunContext:
    """State shared by every test and hook of one run, built fresh per run."""

    config: RunConfig
    run_id: str
    session: Any = None
    data: Dict[str, Any] = field(default_factory=dict)


@dataclass
class TestContext:
    """Handed to test and hook bodies."""

    __test__ = False

    run: RunContext
    test: Optional[TestNode] = None
    hook: Optional[Hook] = None
    attempt: int = 1

    @property
    def session(self) -> Any:
        return self.run.session

    @session.setter
    def session(self, value: Any) -> None:
        self.run.session = value

    @property
    def data(self) -> Dict[str, Any]:
        return self.run.data

    def skip(self, reason: Optional[str] = None) -> None:
        """Skip the current test at runtime."""
        raise SkipTest(reason)
