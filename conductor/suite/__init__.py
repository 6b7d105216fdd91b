"""
Suite authoring and discovery for QA Conductor.

Suites, tests and hooks form the tree that selection filters and the
execution engine runs.
"""

from .models import (
    FLAG_PREFIX,
    Hook,
    HookKind,
    SuiteNode,
    Tag,
    TestNode,
    TestStatus,
    flag,
    normalize_tags,
)
from .discovery import FileDiscovery

__all__ = [
    "FLAG_PREFIX",
    "Hook",
    "HookKind",
    "SuiteNode",
    "Tag",
    "TestNode",
    "TestStatus",
    "flag",
    "normalize_tags",
    "FileDiscovery",
]
