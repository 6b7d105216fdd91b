"""
Execution driver.

Entry point for a single run: validates configuration up front, discovers and
selects tests, runs them on the host engine with the stats aggregator and the
failure artifact capturer subscribed, and hands the result to the reporter.
"""

import time
import uuid
from typing import Any, Callable, Iterable, List, Optional, Sequence

from ..core.exceptions import ConfigurationError
from ..core.logging_config import get_logger, log_performance
from ..reporting.reporters import Reporter, get_reporter
from ..reporting.stats import StatsAggregator
from ..selection.engine import SelectionEngine
from ..selection.models import SelectionPlan
from ..suite.discovery import FileDiscovery
from ..suite.models import SuiteNode
from .artifacts import FailureArtifactCapturer
from .engine import HostEngine
from .models import RunConfig, RunContext, RunStats
from .session import AutomationSession


SessionProvider = Callable[[RunContext], Optional[AutomationSession]]


class ExecutionDriver:
    """
    Runs one configured test run end to end.

    A fresh RunContext is built for every ``run`` call; suite files are
    re-executed on discovery so no module or session state leaks between runs.
    """

    def __init__(
        self,
        config: RunConfig,
        session_provider: Optional[SessionProvider] = None,
        listeners: Iterable[Any] = (),
        run_id: Optional[str] = None,
        discovery: Optional[FileDiscovery] = None,
    ):
        """
        Initialize the driver.

        Args:
            config: Immutable run configuration
            session_provider: Returns the active automation session for a run;
                defaults to the session a suite stored on its context
            listeners: Extra run listeners, notified after stats and capture
            run_id: Run identifier for log correlation
            discovery: Suite file discovery, mainly for tests
        """
        self.config = config
        self.session_provider = session_provider
        self.listeners = list(listeners)
        self.run_id = run_id or f"run-{uuid.uuid4().hex[:8]}"
        self.discovery = discovery or FileDiscovery(logger=get_logger(
            "conductor.suite.discovery", run_id=self.run_id
        ))
        self.logger = get_logger(__name__, run_id=self.run_id)

    def _selection_engine(self) -> SelectionEngine:
        return SelectionEngine(
            expressions=self.config.tag,
            filter=self.config.filter,
            flags=self.config.flags,
            logger=get_logger("conductor.selection", run_id=self.run_id),
        )

    def _resolve_roots(self, suites: Optional[Sequence[SuiteNode]]) -> List[SuiteNode]:
        if suites is not None:
            return list(suites)
        if not self.config.globs:
            raise ConfigurationError("No suite files or suites given", setting="globs")
        return self.discovery.discover(self.config.globs)

    def plan(self, suites: Optional[Sequence[SuiteNode]] = None) -> SelectionPlan:
        """Discover and select without running anything."""
        selection = self._selection_engine()
        return selection.plan(self._resolve_roots(suites))

    async def run(self, suites: Optional[Sequence[SuiteNode]] = None) -> RunStats:
        """
        Execute the run.

        Returns:
            Final, reconciled RunStats

        Raises:
            ConfigurationError: Before any test runs, for unknown reporters,
                invalid filters, unmatched globs or broken suite files
            ReporterError: If the report cannot be written
        """
        start_time = time.time()

        reporter: Reporter = get_reporter(self.config.reporter, self.config.reporter_options)
        selection = self._selection_engine()
        roots = self._resolve_roots(suites)

        for root in roots:
            for test in root.walk_tests():
                test.reset()

        plan = selection.plan(roots)

        context = RunContext(config=self.config, run_id=self.run_id)
        capturer = FailureArtifactCapturer(
            self.config.artifacts,
            self._session_provider_for(context),
            run_id=self.run_id,
        )
        if self.config.artifacts.enabled and not capturer.armed:
            self.logger.warning("Failure artifacts enabled without an output directory; capture is off")

        aggregator = StatsAggregator(run_id=self.run_id)
        engine = HostEngine(
            retries=self.config.retries,
            timeout=self.config.timeout,
            listeners=[aggregator, capturer, *self.listeners],
            run_id=self.run_id,
        )

        self.logger.info(
            f"Starting run: {len(plan.selected)} of {plan.total} tests selected",
            extra={
                "metadata": {
                    "reporter": reporter.name,
                    "retries": self.config.retries,
                    "capture_armed": capturer.armed,
                }
            },
        )

        aggregator.start()
        await engine.run(roots, plan, context)
        stats = aggregator.finish()

        reporter.write(aggregator.build_report(stats))

        log_performance(
            self.logger,
            "test_run",
            time.time() - start_time,
            tests=stats.tests,
            passes=stats.passes,
            failures=stats.failures,
            pending=stats.pending,
            bundles=len(capturer.bundles),
        )
        return stats

    def _session_provider_for(self, context: RunContext) -> Callable[[], Optional[AutomationSession]]:
        if self.session_provider is None:
            return lambda: context.session
        return lambda: self.session_provider(context)
