"""
Selection engine.

Decides which discovered tests run, combining tag expressions, feature-flag
gating and the free-text filter. Matching is exact on normalized tag names:
``tag`` never selects a node tagged ``tag1``.
"""

import logging
import re
from typing import FrozenSet, Iterable, List, Optional, Pattern, Sequence, Union

from ..core.exceptions import ConfigurationError
from ..suite.models import SuiteNode, TestNode
from .models import Polarity, SelectionDecision, SelectionPlan, TagExpression


ExpressionLike = Union[str, TagExpression]


def parse_expressions(expressions: Optional[Iterable[ExpressionLike]]) -> List[TagExpression]:
    """Parse raw strings, passing already parsed expressions through."""
    return [
        expression if isinstance(expression, TagExpression) else TagExpression.parse(expression)
        for expression in (expressions or [])
    ]


def select(effective_tags: Iterable[str], expressions: Sequence[ExpressionLike]) -> bool:
    """
    Decide whether a node with the given tags is selected.

    Include expressions are OR-ed, exclude expressions always apply and win
    over any include. No expressions selects everything.
    """
    tags = frozenset(effective_tags)
    parsed = parse_expressions(expressions)

    if any(expression.matches(tags) for expression in parsed if expression.is_exclude):
        return False

    includes = [expression for expression in parsed if not expression.is_exclude]
    if not includes:
        return True

    return any(expression.matches(tags) for expression in includes)


def compile_filter(pattern: Optional[str]) -> Optional[Pattern]:
    """Compile the free-text filter; an invalid pattern is a configuration error."""
    if not pattern:
        return None
    try:
        return re.compile(pattern)
    except re.error as e:
        raise ConfigurationError(
            f"Invalid filter pattern {pattern!r}: {e}",
            setting="filter",
            violations=[str(e)],
        ) from e


class SelectionEngine:
    """
    Computes the subset of a suite tree that should run.

    Feature flags are plain tags (``flag:<name>``); every flag tag present in
    the tree whose name is not enabled contributes an implicit exclusion.
    """

    def __init__(
        self,
        expressions: Optional[Iterable[ExpressionLike]] = None,
        filter: Optional[str] = None,
        flags: Optional[Iterable[str]] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.expressions = parse_expressions(expressions)
        self.filter = filter
        self.filter_pattern = compile_filter(filter)
        self.enabled_flags: FrozenSet[str] = frozenset(flags or [])
        self.logger = logger or logging.getLogger(__name__)

    @property
    def includes(self) -> List[TagExpression]:
        return [e for e in self.expressions if e.polarity == Polarity.INCLUDE]

    @property
    def excludes(self) -> List[TagExpression]:
        return [e for e in self.expressions if e.polarity == Polarity.EXCLUDE]

    def gating_expressions(self, roots: Sequence[SuiteNode]) -> List[TagExpression]:
        """Exclusions for every disabled feature flag referenced in the tree."""
        disabled = []
        for root in roots:
            for node in list(root.walk_suites()) + list(root.walk_tests()):
                for tag in node.tags:
                    name = tag.flag_name
                    if name and name not in self.enabled_flags and tag not in disabled:
                        disabled.append(tag)

        return [TagExpression.parse(f"!{tag}") for tag in sorted(disabled)]

    def matches_filter(self, test: TestNode) -> bool:
        if self.filter_pattern is None:
            return True
        return self.filter_pattern.search(test.full_title) is not None

    def decide(self, test: TestNode, expressions: Sequence[TagExpression]) -> SelectionDecision:
        tags = test.effective_tags

        excluded_by = next((e for e in expressions if e.is_exclude and e.matches(tags)), None)
        if excluded_by is not None:
            return SelectionDecision(test, False, f"excluded by '{excluded_by.raw}'")

        includes = [e for e in expressions if not e.is_exclude]
        if includes and not any(e.matches(tags) for e in includes):
            return SelectionDecision(test, False, "no include expression matched")

        if not self.matches_filter(test):
            return SelectionDecision(test, False, f"filter '{self.filter}' did not match")

        return SelectionDecision(test, True, "selected")

    def plan(self, roots: Sequence[SuiteNode]) -> SelectionPlan:
        """Walk the trees in discovery order and decide every test."""
        expressions = self.expressions + self.gating_expressions(roots)
        plan = SelectionPlan()

        for root in roots:
            for test in root.walk_tests():
                decision = self.decide(test, expressions)
                plan.decisions.append(decision)
                if decision.included:
                    plan.selected.append(test)

        self.logger.debug(
            f"Selected {len(plan.selected)} of {plan.total} tests",
            extra={
                "metadata": {
                    "expressions": [e.raw for e in expressions],
                    "filter": self.filter,
                    **plan.summary(),
                }
            },
        )

        return plan
