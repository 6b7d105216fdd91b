"""
Data models for tag selection.

Expressions are parsed once into structured values; parsing never fails so a
typo in a tag expression degrades into a non-matching key.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Dict

from pydantic import BaseModel, ConfigDict, Field

from ..suite.models import TestNode


class Polarity(Enum):
    """Whether an expression selects or rejects matching nodes."""

    INCLUDE = "include"
    EXCLUDE = "exclude"


class TagExpression(BaseModel):
    """A parsed tag-selection token such as ``tag1``, ``#tag1`` or ``!role1``."""

    model_config = ConfigDict(frozen=True)

    raw: str = Field(..., description="Expression as configured")
    polarity: Polarity = Field(..., description="Include or exclude")
    key: str = Field(..., description="Tag name compared for exact equality")

    @classmethod
    def parse(cls, raw: str) -> "TagExpression":
        """Parse one expression: a leading ``!`` negates, then one ``#`` is dropped."""
        text = str(raw).strip()
        polarity = Polarity.INCLUDE
        if text.startswith("!"):
            polarity = Polarity.EXCLUDE
            text = text[1:]
        if text.startswith("#"):
            text = text[1:]
        return cls(raw=str(raw), polarity=polarity, key=text)

    @property
    def is_exclude(self) -> bool:
        return self.polarity == Polarity.EXCLUDE

    def matches(self, tags) -> bool:
        """Exact membership; an empty key never matches a valid tag."""
        return bool(self.key) and self.key in tags

    def __str__(self) -> str:
        return f"!{self.key}" if self.is_exclude else self.key


@dataclass
class SelectionDecision:
    """Whether a single test is included, and why."""

    test: TestNode
    included: bool
    reason: str


@dataclass
class SelectionPlan:
    """Ordered selected tests plus the decision taken for every discovered test."""

    selected: List[TestNode] = field(default_factory=list)
    decisions: List[SelectionDecision] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.decisions)

    def __contains__(self, test: TestNode) -> bool:
        return any(test is node for node in self.selected)

    def summary(self) -> Dict[str, int]:
        return {
            "discovered": self.total,
            "selected": len(self.selected),
            "excluded": self.total - len(self.selected),
        }
