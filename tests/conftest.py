"""
Pytest configuration and shared fixtures for QA Conductor tests.

Provides suite fixture paths, in-memory automation sessions and a recording
run listener for all test modules.
"""

import logging
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from conductor.execution.models import (
    ARTIFACTS_DIR_ENV,
    ARTIFACTS_ENV,
    RunConfig,
    RunContext,
)


FIXTURES_DIR = Path(__file__).parent / "fixtures"


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep the developer's environment from arming capture or changing logging."""
    for name in (ARTIFACTS_ENV, ARTIFACTS_DIR_ENV, "CI", "CONDUCTOR_LOG_LEVEL", "CONDUCTOR_LOG_FORMAT"):
        monkeypatch.delenv(name, raising=False)
    yield
    logging.getLogger("conductor").handlers.clear()


@pytest.fixture
def fixtures_dir():
    return FIXTURES_DIR


@pytest.fixture
def suite_file(fixtures_dir):
    """Resolve a suite fixture by short name, e.g. ``suite_file("tag")``."""

    def resolve(name: str) -> str:
        return str(fixtures_dir / f"{name}_suite.py")

    return resolve


@pytest.fixture
def json_report(tmp_path):
    """Reporter settings that keep stdout clean and leave a parseable report."""
    output = tmp_path / "report.json"
    return {"reporter": "json", "reporter_options": f"output={output}"}


@pytest.fixture
def fake_session():
    """An AutomationSession backed by AsyncMocks."""
    session = AsyncMock()
    session.screenshot.return_value = b"\x89PNG\r\n\x1a\n"
    session.page_source.return_value = "<html><body>checkout</body></html>"
    session.browser_logs.return_value = [{"level": "error", "message": "boom"}]
    session.driver_logs.return_value = ["POST /api/pay 500"]
    return session


@pytest.fixture
def run_context():
    return RunContext(config=RunConfig(), run_id="test-run")


class RecordingListener:
    """Run listener that records every callback in order."""

    def __init__(self):
        self.events = []

    async def on_test_start(self, test, attempt):
        self.events.append(("start", test.full_title, attempt))

    async def on_test_retry(self, test, attempt, error):
        self.events.append(("retry", test.full_title, attempt))

    async def on_test_end(self, test):
        self.events.append(("end", test.full_title, test.status.value))

    async def on_failure(self, event):
        self.events.append(("failure", event.identifier, event.is_hook))

    def of(self, kind):
        return [event[1:] for event in self.events if event[0] == kind]


@pytest.fixture
def listener():
    return RecordingListener()
