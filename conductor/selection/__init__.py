"""Tag, role, feature-flag and filter based test selection."""

from .models import Polarity, TagExpression, SelectionDecision, SelectionPlan
from .engine import SelectionEngine, select, parse_expressions, compile_filter

__all__ = [
    "Polarity",
    "TagExpression",
    "SelectionDecision",
    "SelectionPlan",
    "SelectionEngine",
    "select",
    "parse_expressions",
    "compile_filter",
]
