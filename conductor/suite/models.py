"""
Suite and test node models.

Defines the tree that discovery produces and the execution engine walks:
suites own nested suites, tests and hooks; tags are attached at authoring time
and inherited by descendants through ``effective_tags``.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, Iterable, Iterator, List, Optional, Union


FLAG_PREFIX = "flag:"


class TestStatus(Enum):
    """Test execution status."""

    NOT_RUN = "not_run"
    RUNNING = "running"
    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"


class HookKind(Enum):
    """Hook lifecycle positions."""

    BEFORE_ALL = "before all"
    BEFORE_EACH = "before each"
    AFTER_EACH = "after each"
    AFTER_ALL = "after all"

    @property
    def is_each(self) -> bool:
        return self in (HookKind.BEFORE_EACH, HookKind.AFTER_EACH)


class Tag(str):
    """A non-empty tag name with any single leading ``#`` removed."""

    def __new__(cls, value: str) -> "Tag":
        if isinstance(value, Tag):
            return value
        if not isinstance(value, str):
            raise TypeError(f"Tag must be a string, got {type(value).__name__}")

        text = value.strip()
        if text.startswith("#"):
            text = text[1:]
        if not text:
            raise ValueError(f"Tag cannot be empty: {value!r}")

        return super().__new__(cls, text)

    @property
    def is_flag(self) -> bool:
        return self.startswith(FLAG_PREFIX) and len(self) > len(FLAG_PREFIX)

    @property
    def flag_name(self) -> Optional[str]:
        return self[len(FLAG_PREFIX):] if self.is_flag else None


def normalize_tags(tags: Union[None, str, Iterable[str]]) -> FrozenSet[Tag]:
    """Normalize a tag or collection of tags into a frozen set of Tag values."""
    if tags is None:
        return frozenset()
    if isinstance(tags, str):
        tags = [tags]
    return frozenset(Tag(tag) for tag in tags)


def flag(name: str) -> Tag:
    """Build the tag that gates a node on the feature flag ``name``."""
    return Tag(f"{FLAG_PREFIX}{name}")


Body = Callable[..., Any]


@dataclass(eq=False)
class Hook:
    """A setup/teardown routine owned by a suite."""

    kind: HookKind
    body: Body
    suite: "SuiteNode" = field(repr=False)
    name: Optional[str] = None

    @property
    def title(self) -> str:
        base = f'"{self.kind.value}" hook'
        return f"{base}: {self.name}" if self.name else base

    def title_for(self, test: Optional["TestNode"] = None) -> str:
        """Hook title as reported, including the test it ran for."""
        if test is None:
            return self.title
        return f'{self.title} for "{test.name}"'


@dataclass(eq=False)
class TestNode:
    """A leaf test case."""

    __test__ = False

    name: str
    body: Optional[Body] = None
    tags: FrozenSet[Tag] = field(default_factory=frozenset)
    skip: bool = False
    parent: Optional["SuiteNode"] = field(default=None, repr=False)

    # Run bookkeeping, reset at the start of every run
    status: TestStatus = TestStatus.NOT_RUN
    attempts: int = 0
    duration: float = 0.0
    error: Optional[BaseException] = field(default=None, repr=False)
    artifacts: List[Any] = field(default_factory=list, repr=False)

    def __post_init__(self):
        if not self.name or not self.name.strip():
            raise ValueError("Test name cannot be empty")
        self.tags = normalize_tags(self.tags)

    @property
    def titles(self) -> List[str]:
        suite_titles = self.parent.titles if self.parent else []
        return suite_titles + [self.name]

    @property
    def full_title(self) -> str:
        return " ".join(self.titles)

    @property
    def effective_tags(self) -> FrozenSet[Tag]:
        inherited = self.parent.effective_tags if self.parent else frozenset()
        return self.tags | inherited

    @property
    def is_pending(self) -> bool:
        """Declared skip on the test or any ancestor, or no body at all."""
        if self.body is None or self.skip:
            return True
        return self.parent.is_skipped if self.parent else False

    def reset(self) -> None:
        self.status = TestStatus.NOT_RUN
        self.attempts = 0
        self.duration = 0.0
        self.error = None
        self.artifacts = []


@dataclass(eq=False)
class SuiteNode:
    """A grouping of tests, nested suites and hooks.

    Example:
        >>> root = SuiteNode("checkout", tags=["smoke"])
        >>> @root.before_each
        ... async def login(ctx): ...
        >>> @root.test("pays with card", tags=["#payments"])
        ... async def pays(ctx): ...
    """

    title: str = ""
    tags: FrozenSet[Tag] = field(default_factory=frozenset)
    skip: bool = False
    parent: Optional["SuiteNode"] = field(default=None, repr=False)
    children: List[Union[TestNode, "SuiteNode"]] = field(default_factory=list, repr=False)
    hooks: Dict[HookKind, List[Hook]] = field(
        default_factory=lambda: {kind: [] for kind in HookKind}, repr=False
    )

    def __post_init__(self):
        self.tags = normalize_tags(self.tags)

    # Tree navigation

    @property
    def titles(self) -> List[str]:
        parent_titles = self.parent.titles if self.parent else []
        return parent_titles + ([self.title] if self.title else [])

    @property
    def full_title(self) -> str:
        return " ".join(self.titles)

    @property
    def effective_tags(self) -> FrozenSet[Tag]:
        inherited = self.parent.effective_tags if self.parent else frozenset()
        return self.tags | inherited

    @property
    def is_skipped(self) -> bool:
        if self.skip:
            return True
        return self.parent.is_skipped if self.parent else False

    @property
    def path(self) -> List["SuiteNode"]:
        """Suites from the root down to this one."""
        return (self.parent.path if self.parent else []) + [self]

    @property
    def tests(self) -> List[TestNode]:
        return [child for child in self.children if isinstance(child, TestNode)]

    @property
    def suites(self) -> List["SuiteNode"]:
        return [child for child in self.children if isinstance(child, SuiteNode)]

    def walk_tests(self) -> Iterator[TestNode]:
        """Yield every test depth-first in definition order."""
        for child in self.children:
            if isinstance(child, TestNode):
                yield child
            else:
                yield from child.walk_tests()

    def walk_suites(self) -> Iterator["SuiteNode"]:
        yield self
        for child in self.suites:
            yield from child.walk_suites()

    def hooks_of(self, kind: HookKind) -> List[Hook]:
        return list(self.hooks[kind])

    # Authoring

    def suite(
        self,
        title: str,
        tags: Union[None, str, Iterable[str]] = None,
        skip: bool = False,
    ) -> "SuiteNode":
        """Create a nested suite and return it."""
        child = SuiteNode(title=title, tags=tags, skip=skip, parent=self)
        self.children.append(child)
        return child

    def add_test(
        self,
        name: str,
        body: Optional[Body] = None,
        tags: Union[None, str, Iterable[str]] = None,
        skip: bool = False,
    ) -> TestNode:
        """Add a test; a test without a body is pending."""
        node = TestNode(name=name, body=body, tags=tags, skip=skip, parent=self)
        self.children.append(node)
        return node

    def test(
        self,
        name: str,
        tags: Union[None, str, Iterable[str]] = None,
        skip: bool = False,
    ) -> Callable[[Body], Body]:
        """Decorator registering the decorated function as a test body."""

        def decorator(fn: Body) -> Body:
            self.add_test(name, fn, tags=tags, skip=skip)
            return fn

        return decorator

    def add_hook(self, kind: HookKind, body: Body, name: Optional[str] = None) -> Hook:
        hook = Hook(kind=kind, body=body, suite=self, name=name)
        self.hooks[kind].append(hook)
        return hook

    def _hook_decorator(self, kind: HookKind, name_or_fn):
        if callable(name_or_fn):
            self.add_hook(kind, name_or_fn)
            return name_or_fn

        def decorator(fn: Body) -> Body:
            self.add_hook(kind, fn, name=name_or_fn)
            return fn

        return decorator

    def before_all(self, name_or_fn=None):
        return self._hook_decorator(HookKind.BEFORE_ALL, name_or_fn)

    def before_each(self, name_or_fn=None):
        return self._hook_decorator(HookKind.BEFORE_EACH, name_or_fn)

    def after_each(self, name_or_fn=None):
        return self._hook_decorator(HookKind.AFTER_EACH, name_or_fn)

    def after_all(self, name_or_fn=None):
        return self._hook_decorator(HookKind.AFTER_ALL, name_or_fn)
