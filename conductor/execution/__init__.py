"""Host engine, run models and failure artifact capture."""

from .models import (
    ArtifactCaptureConfig,
    RunConfig,
    RunStats,
    ArtifactBundle,
    FailureEvent,
    RunContext,
    TestContext,
)
from .engine import HostEngine, RunListener, hook_identifier
from .artifacts import FailureArtifactCapturer, sanitize_stem
from .session import AutomationSession, PlaywrightSession

__all__ = [
    "ArtifactCaptureConfig",
    "RunConfig",
    "RunStats",
    "ArtifactBundle",
    "FailureEvent",
    "RunContext",
    "TestContext",
    "HostEngine",
    "RunListener",
    "hook_identifier",
    "FailureArtifactCapturer",
    "sanitize_stem",
    "AutomationSession",
    "PlaywrightSession",
]
