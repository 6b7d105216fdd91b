"""
Stats aggregation.

Subscribed to the host engine as a run listener; counts every resolved test
and hook failure as it happens and keeps them in execution order for the
report.
"""

from datetime import datetime
from typing import List, Optional, Union

from ..core.logging_config import get_logger
from ..execution.models import FailureEvent, RunStats
from ..suite.models import TestNode, TestStatus
from .models import CaseResult, RunReport


class StatsAggregator:
    """Run listener maintaining RunStats."""

    def __init__(self, run_id: str = "run"):
        self.run_id = run_id
        self.stats = RunStats()
        self.logger = get_logger(__name__, run_id=run_id)

        self._entries: List[Union[TestNode, FailureEvent]] = []
        self.failure_events: List[FailureEvent] = []

    def start(self) -> None:
        self.stats.start = datetime.now()

    async def on_test_end(self, test: TestNode) -> None:
        self.stats.tests += 1
        if test.status == TestStatus.PASSED:
            self.stats.passes += 1
        elif test.status == TestStatus.FAILED:
            self.stats.failures += 1
        else:
            self.stats.pending += 1
        self._entries.append(test)

    async def on_failure(self, event: FailureEvent) -> None:
        self.failure_events.append(event)
        if event.is_hook:
            self.stats.failures += 1
            self.stats.hook_failures += 1
            self._entries.append(event)

    def finish(self) -> RunStats:
        """Stamp timing and verify the counters reconcile."""
        self.stats.end = datetime.now()
        if self.stats.start is not None:
            self.stats.duration = (self.stats.end - self.stats.start).total_seconds()

        self.logger.debug(
            "Run counters finalized",
            extra={"metadata": self.stats.to_summary()},
        )
        return self.stats.reconcile()

    def build_report(self, stats: Optional[RunStats] = None) -> RunReport:
        cases = [
            CaseResult.from_test(entry) if isinstance(entry, TestNode)
            else CaseResult.from_hook_failure(entry)
            for entry in self._entries
        ]
        return RunReport(run_id=self.run_id, stats=stats or self.stats, cases=cases)
