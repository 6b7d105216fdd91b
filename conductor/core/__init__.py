"""Core components for QA Conductor."""

from .config import Config
from .exceptions import (
    ConductorError,
    ConfigurationError,
    DiscoveryError,
    ReporterError,
    ArtifactCaptureError,
    StatsMismatchError,
    SkipTest,
)
from .logging_config import setup_logging, get_logger

__all__ = [
    "Config",
    "ConductorError",
    "ConfigurationError",
    "DiscoveryError",
    "ReporterError",
    "ArtifactCaptureError",
    "StatsMismatchError",
    "SkipTest",
    "setup_logging",
    "get_logger",
]
