"""Core data models for Test Medic."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path


class SelectorKind(Enum):
    """Ways of locating an element."""

    TESTID = "testid"
    ARIA_LABEL = "aria-label"
    TEXT = "text"
    CSS = "css"
    ROLE = "role"


class ElementType(Enum):
    """Interactive element categories found during discovery."""

    BUTTON = "button"
    INPUT = "input"
    SELECT = "select"
    LINK = "link"
    CHECKBOX = "checkbox"
    RADIO = "radio"


class FailureCategory(Enum):
    """Classification of failures for repair decisions."""

    SELECTOR = "selector"
    TIMING = "timing"
    ASSERTION = "assertion"
    NAVIGATION = "navigation"
    NETWORK = "network"
    UNKNOWN = "unknown"


class TestStatus(Enum):
    """Outcome of one test execution."""

    __test__ = False

    PASSED = "passed"
    FAILED = "failed"
    FLAKY = "flaky"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class SelectorStrategy:
    """A single way of locating a logical target."""

    kind: SelectorKind
    value: str

    @classmethod
    def css(cls, value: str) -> "SelectorStrategy":
        return cls(SelectorKind.CSS, value)

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.value}"


@dataclass
class DiscoveredElement:
    """An interactive element found while scanning a page."""

    selector: str
    type: ElementType
    text: str | None = None
    label: str | None = None
    test_id: str | None = None
    aria_label: str | None = None
    input_type: str | None = None


@dataclass
class GeneratedTest:
    """A synthesized test case as source text."""

    name: str
    code: str
    elements: list[DiscoveredElement] = field(default_factory=list)


@dataclass
class TestFailure:
    """Represents a single classified test failure."""

    __test__ = False

    test: str
    file: Path
    error: str
    failure_type: FailureCategory
    line: int | None = None


@dataclass
class RepairResult:
    """Result of attempting to repair a failure."""

    success: bool
    strategy: str
    changes: list[str] = field(default_factory=list)
    error: str | None = None


@dataclass
class TestResult:
    """One completed test execution, as reported by the runner."""

    __test__ = False

    test_name: str
    status: TestStatus
    duration: float  # milliseconds
    timestamp: datetime = field(default_factory=datetime.now)
    error: str | None = None
    retries: int | None = None


@dataclass
class TestMetrics:
    """Rolling metrics for one test name."""

    __test__ = False

    total_runs: int = 0
    pass_rate: float = 0.0
    average_duration: float = 0.0
    flaky_tests: list[str] = field(default_factory=list)
    failure_patterns: dict[str, int] = field(default_factory=dict)
    last_run: datetime = field(default_factory=datetime.now)


@dataclass
class MonitoringSummary:
    """Headline numbers of a monitoring report."""

    health_score: int
    total_tests: int
    passing_tests: int
    failing_tests: int
    flaky_tests: int
    average_run_time: float


@dataclass
class MonitoringReport:
    """Read-only snapshot of suite health."""

    summary: MonitoringSummary
    critical_issues: list[str]
    recommendations: list[str]
    test_history: list[TestResult]
    metrics: dict[str, TestMetrics]
    generated_at: datetime = field(default_factory=datetime.now)
