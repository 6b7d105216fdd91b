"""Run statistics and reporters."""

from .models import CaseResult, RunReport
from .stats import StatsAggregator
from .reporters import (
    Reporter,
    XunitReporter,
    JsonReporter,
    SpecReporter,
    REPORTERS,
    register_reporter,
    get_reporter,
    parse_reporter_options,
)

__all__ = [
    "CaseResult",
    "RunReport",
    "StatsAggregator",
    "Reporter",
    "XunitReporter",
    "JsonReporter",
    "SpecReporter",
    "REPORTERS",
    "register_reporter",
    "get_reporter",
    "parse_reporter_options",
]
