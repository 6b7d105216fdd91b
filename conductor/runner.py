"""
Programmatic API.

    >>> stats = run_tests_sync(globs=["suites/**/*.py"], tag=["smoke"])
    >>> stats.ok
    True
"""

import asyncio
from typing import Any, Iterable, Optional, Sequence

from .execution.driver import ExecutionDriver, SessionProvider
from .execution.models import RunConfig, RunStats
from .selection.models import SelectionPlan
from .suite.models import SuiteNode


def _resolve_config(config: Optional[RunConfig], options: dict) -> RunConfig:
    """Merge keyword options over a base config (or over the defaults)."""
    if config is None:
        return RunConfig.build(**options)
    if not options:
        return config
    values = config.model_dump(exclude_unset=True)
    values.update(options)
    return RunConfig.build(**values)


async def run_tests(
    config: Optional[RunConfig] = None,
    suites: Optional[Sequence[SuiteNode]] = None,
    session_provider: Optional[SessionProvider] = None,
    listeners: Iterable[Any] = (),
    **options,
) -> RunStats:
    """
    Run a test run and return its final RunStats.

    Args:
        config: Run configuration; keyword options override its fields
        suites: Pre-built root suites; when omitted, ``globs`` are discovered
        session_provider: Returns the automation session used for capture
        listeners: Extra run listeners
        **options: RunConfig fields

    Raises:
        ConfigurationError: If the configuration is invalid
    """
    run_config = _resolve_config(config, options)
    driver = ExecutionDriver(run_config, session_provider=session_provider, listeners=listeners)
    return await driver.run(suites)


def run_tests_sync(*args, **kwargs) -> RunStats:
    """Blocking wrapper around ``run_tests`` for scripts and the CLI."""
    return asyncio.run(run_tests(*args, **kwargs))


def plan_tests(
    config: Optional[RunConfig] = None,
    suites: Optional[Sequence[SuiteNode]] = None,
    **options,
) -> SelectionPlan:
    """Discover and select tests without running them."""
    run_config = _resolve_config(config, options)
    return ExecutionDriver(run_config).plan(suites)
