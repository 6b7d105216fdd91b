"""
QA Conductor - tag-selected end-to-end test runs

Runs suites of async tests with setup and teardown hooks, selects them by
tags, roles, feature flags and title filters, and captures screenshots, page
source and logs from the browser session whenever something fails.
"""

__version__ = "0.1.0"
__author__ = "QA Conductor Team"

from .core.config import Config
from .core.exceptions import ConductorError, ConfigurationError, SkipTest
from .core.logging_config import setup_logging
from .execution.models import ArtifactCaptureConfig, RunConfig, RunStats
from .suite.models import SuiteNode, flag
from .runner import run_tests, run_tests_sync, plan_tests

__all__ = [
    "Config",
    "ConductorError",
    "ConfigurationError",
    "SkipTest",
    "setup_logging",
    "ArtifactCaptureConfig",
    "RunConfig",
    "RunStats",
    "SuiteNode",
    "flag",
    "run_tests",
    "run_tests_sync",
    "plan_tests",
]
