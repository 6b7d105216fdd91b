"""
Base exception classes for QA Conductor.

Provides a hierarchy of exceptions for the error types that can occur while
configuring, running and reporting a test run.
"""

from typing import Optional, Dict, Any


class ConductorError(Exception):
    """Base exception class for all QA Conductor errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.context = context or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for structured logging."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "context": self.context,
        }


class ConfigurationError(ConductorError):
    """Raised when run configuration is invalid. Always raised before any test runs."""

    def __init__(
        self,
        message: str,
        setting: Optional[str] = None,
        violations: Optional[list] = None,
        error_code: str = "CONFIGURATION_INVALID",
    ):
        super().__init__(message, error_code)
        self.setting = setting
        self.violations = violations or []
        self.context.update(
            {
                "setting": setting,
                "violations": violations,
            }
        )


class DiscoveryError(ConfigurationError):
    """Raised when suite files cannot be found or loaded."""

    def __init__(
        self,
        message: str,
        pattern: Optional[str] = None,
        file_path: Optional[str] = None,
    ):
        super().__init__(message, setting="globs", error_code="DISCOVERY_FAILED")
        self.pattern = pattern
        self.file_path = file_path
        self.context.update(
            {
                "pattern": pattern,
                "file_path": file_path,
            }
        )


class ReporterError(ConductorError):
    """Raised when a reporter fails to write its output."""

    def __init__(
        self,
        message: str,
        reporter: Optional[str] = None,
        output_path: Optional[str] = None,
    ):
        super().__init__(message, "REPORTER_FAILED")
        self.reporter = reporter
        self.output_path = output_path
        self.context.update(
            {
                "reporter": reporter,
                "output_path": output_path,
            }
        )


class ArtifactCaptureError(ConductorError):
    """Raised inside the capturer when a bundle cannot be collected or written."""

    def __init__(
        self,
        message: str,
        stem: Optional[str] = None,
        artifact: Optional[str] = None,
    ):
        super().__init__(message, "ARTIFACT_CAPTURE_FAILED")
        self.stem = stem
        self.artifact = artifact
        self.context.update(
            {
                "stem": stem,
                "artifact": artifact,
            }
        )


class StatsMismatchError(ConductorError):
    """Raised when run counters do not reconcile at the end of a run."""

    def __init__(self, message: str, stats: Optional[Dict[str, Any]] = None):
        super().__init__(message, "STATS_MISMATCH")
        self.stats = stats or {}
        self.context.update({"stats": stats})


class SkipTest(Exception):
    """Raised from a test body to skip the test at runtime."""

    def __init__(self, reason: Optional[str] = None):
        super().__init__(reason or "skipped")
        self.reason = reason
