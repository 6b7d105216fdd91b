"""
Host execution engine.

Walks suite trees depth-first, runs hooks around selected tests, retries
failing tests and reports every outcome to run listeners. Listeners are
awaited in order before the engine moves on, so artifact writes and stats
updates for a node complete before the next node starts.
"""

import asyncio
import inspect
import time
from typing import Any, Iterable, List, Optional, Sequence, Set, Tuple

from ..core.exceptions import SkipTest
from ..core.logging_config import get_logger
from ..selection.models import SelectionPlan
from ..suite.models import Hook, HookKind, SuiteNode, TestNode, TestStatus
from .models import FailureEvent, RunContext, TestContext


class RunListener:
    """Base class for run listeners; every callback is optional."""

    async def on_test_start(self, test: TestNode, attempt: int) -> None:
        pass

    async def on_test_retry(self, test: TestNode, attempt: int, error: BaseException) -> None:
        pass

    async def on_test_end(self, test: TestNode) -> None:
        pass

    async def on_failure(self, event: FailureEvent) -> None:
        pass


class _SuiteAborted(Exception):
    """Unwinds the tree up to the suite that owns a failed each-hook."""

    def __init__(self, suite: SuiteNode):
        super().__init__(suite.full_title)
        self.suite = suite


def _accepts_context(fn) -> bool:
    try:
        parameters = inspect.signature(fn).parameters.values()
    except (TypeError, ValueError):
        return True
    return any(
        p.kind in (p.POSITIONAL_ONLY, p.POSITIONAL_OR_KEYWORD, p.VAR_POSITIONAL)
        for p in parameters
    )


def hook_identifier(hook: Hook, test: Optional[TestNode] = None) -> str:
    """Name a hook failure after the test it ran for, or its suite and kind."""
    if test is not None and hook.kind.is_each:
        return test.full_title
    label = f"{hook.kind.value} hook"
    if hook.name:
        label = f"{label} {hook.name}"
    return f"{hook.suite.full_title} {label}".strip()


class HostEngine:
    """
    Runs selected tests with before/after hook semantics.

    Each attempt runs ``before_each`` hooks outermost first, the body, then
    ``after_each`` hooks innermost first. A failing each-hook aborts the rest
    of the suite that owns it; a failing ``before_all`` aborts its own suite.
    """

    def __init__(
        self,
        retries: int = 0,
        timeout: Optional[float] = None,
        listeners: Iterable[Any] = (),
        run_id: str = "run",
    ):
        self.retries = retries
        self.timeout = timeout
        self.listeners: List[Any] = list(listeners)
        self.logger = get_logger(__name__, run_id=run_id)

    @property
    def max_attempts(self) -> int:
        return 1 + self.retries

    async def run(
        self,
        roots: Sequence[SuiteNode],
        plan: SelectionPlan,
        context: RunContext,
    ) -> None:
        selected = {id(test) for test in plan.selected}
        for root in roots:
            await self._run_suite(root, selected, context)

    async def _emit(self, name: str, *args) -> None:
        for listener in self.listeners:
            handler = getattr(listener, name, None)
            if handler is None:
                continue
            result = handler(*args)
            if inspect.isawaitable(result):
                await result

    async def _invoke(self, fn, context: TestContext) -> Optional[BaseException]:
        """Run a body or hook, returning the exception it raised, if any."""
        try:
            result = fn(context) if _accepts_context(fn) else fn()
            if inspect.isawaitable(result):
                if self.timeout:
                    loop = asyncio.get_running_loop()
                    deadline = loop.time() + self.timeout
                    try:
                        await asyncio.wait_for(result, self.timeout)
                    except asyncio.TimeoutError as e:
                        # a TimeoutError raised by the body itself is its own failure
                        if loop.time() < deadline:
                            return e
                        return TimeoutError(f"Timeout of {self.timeout}s exceeded")
                else:
                    await result
        except Exception as e:
            return e
        return None

    # Suites

    async def _run_suite(self, suite: SuiteNode, selected: Set[int], context: RunContext) -> None:
        tests = [test for test in suite.walk_tests() if id(test) in selected]
        if not tests:
            return

        if all(test.is_pending for test in tests):
            for test in tests:
                await self._resolve_pending(test)
            return

        self.logger.debug(f"Entering suite: {suite.full_title or '<root>'}")

        try:
            outcome = await self._run_all_hooks(suite, HookKind.BEFORE_ALL, context)
            if outcome == "skipped":
                for test in tests:
                    await self._resolve_pending(test)
            elif outcome == "ok":
                await self._run_children(suite, selected, context)
        except _SuiteAborted as aborted:
            self.logger.debug(f"Suite aborted by hook failure: {aborted.suite.full_title}")
            await self._run_all_hooks(suite, HookKind.AFTER_ALL, context)
            if aborted.suite is not suite:
                raise
            return

        await self._run_all_hooks(suite, HookKind.AFTER_ALL, context)

    async def _run_children(self, suite: SuiteNode, selected: Set[int], context: RunContext) -> None:
        for child in suite.children:
            if isinstance(child, SuiteNode):
                await self._run_suite(child, selected, context)
            elif id(child) in selected:
                await self._run_test(child, context)

    async def _run_all_hooks(self, suite: SuiteNode, kind: HookKind, context: RunContext) -> str:
        for hook in suite.hooks_of(kind):
            error = await self._invoke(hook.body, TestContext(run=context, hook=hook))
            if error is None:
                continue
            if isinstance(error, SkipTest):
                if kind == HookKind.BEFORE_ALL:
                    return "skipped"
                continue
            await self._hook_failed(hook, error)
            return "failed"
        return "ok"

    # Tests

    async def _resolve_pending(self, test: TestNode) -> None:
        test.status = TestStatus.SKIPPED
        await self._emit("on_test_end", test)

    async def _finish(self, test: TestNode) -> None:
        """Record a test's final outcome; failures also become failure events."""
        await self._emit("on_test_end", test)
        if test.status == TestStatus.FAILED:
            await self._emit(
                "on_failure",
                FailureEvent(
                    identifier=test.full_title,
                    title=test.name,
                    error=test.error,
                    suite=test.parent,
                    test=test,
                ),
            )

    async def _run_each_hooks(
        self, test: TestNode, kind: HookKind, attempt: int, context: RunContext
    ) -> Tuple[str, Optional[Hook], Optional[BaseException]]:
        """Run each-hooks for a test, stopping at the first failure or skip."""
        suites = test.parent.path if test.parent else []
        if kind == HookKind.AFTER_EACH:
            suites = list(reversed(suites))

        for suite in suites:
            for hook in suite.hooks_of(kind):
                ctx = TestContext(run=context, test=test, hook=hook, attempt=attempt)
                error = await self._invoke(hook.body, ctx)
                if error is None:
                    continue
                if isinstance(error, SkipTest):
                    if kind == HookKind.BEFORE_EACH:
                        return "skipped", hook, None
                    continue
                return "failed", hook, error
        return "ok", None, None

    async def _run_after_each(self, test: TestNode, attempt: int, context: RunContext) -> None:
        outcome, hook, error = await self._run_each_hooks(test, HookKind.AFTER_EACH, attempt, context)
        if outcome == "failed":
            await self._hook_failed(hook, error, test)
            raise _SuiteAborted(hook.suite)

    async def _run_test(self, test: TestNode, context: RunContext) -> None:
        if test.is_pending:
            await self._resolve_pending(test)
            return

        for attempt in range(1, self.max_attempts + 1):
            test.attempts = attempt
            test.status = TestStatus.RUNNING
            await self._emit("on_test_start", test, attempt)

            outcome, hook, hook_error = await self._run_each_hooks(
                test, HookKind.BEFORE_EACH, attempt, context
            )
            if outcome == "failed":
                test.status = TestStatus.NOT_RUN
                await self._hook_failed(hook, hook_error, test)
                raise _SuiteAborted(hook.suite)
            if outcome == "skipped":
                await self._resolve_pending(test)
                await self._run_after_each(test, attempt, context)
                return

            start = time.perf_counter()
            error = await self._invoke(test.body, TestContext(run=context, test=test, attempt=attempt))
            test.duration = time.perf_counter() - start

            final = True
            if error is None:
                test.status = TestStatus.PASSED
                test.error = None
            elif isinstance(error, SkipTest):
                test.status = TestStatus.SKIPPED
                test.error = None
            else:
                test.status = TestStatus.FAILED
                test.error = error
                final = attempt == self.max_attempts

            if final:
                await self._finish(test)
            else:
                self.logger.info(
                    f"Retrying test ({attempt}/{self.max_attempts}): {test.full_title}",
                    extra={"metadata": {"error": str(error)}},
                )
                await self._emit("on_test_retry", test, attempt, error)

            outcome, hook, hook_error = await self._run_each_hooks(
                test, HookKind.AFTER_EACH, attempt, context
            )
            if outcome == "failed":
                if not final:
                    # No further attempt will run, so the failure is final now
                    await self._finish(test)
                await self._hook_failed(hook, hook_error, test)
                raise _SuiteAborted(hook.suite)

            if final:
                return

    async def _hook_failed(self, hook: Hook, error: BaseException, test: Optional[TestNode] = None) -> None:
        event = FailureEvent(
            identifier=hook_identifier(hook, test),
            title=hook.title_for(test),
            error=error,
            suite=hook.suite,
            test=test,
            hook=hook,
        )
        self.logger.warning(
            f"Hook failed: {hook.suite.full_title} {event.title}: {error}",
            extra={"metadata": {"hook": hook.kind.value, "error_type": type(error).__name__}},
        )
        await self._emit("on_failure", event)
