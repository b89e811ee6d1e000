"""Test Medic - self-healing UI test utilities, automated test repair and health monitoring."""

from .actions import ResilientActions, SelectorResolver, with_self_healing
from .errors import (
    ActionFailedError,
    ElementNotFoundError,
    PersistenceError,
    TestMedicError,
    TextMismatchError,
    WaitTimeoutError,
)
from .models import FailureCategory, SelectorKind, SelectorStrategy, TestResult, TestStatus

__version__ = "0.1.0"

__all__ = [
    "ResilientActions",
    "SelectorResolver",
    "with_self_healing",
    "TestMedicError",
    "ElementNotFoundError",
    "WaitTimeoutError",
    "ActionFailedError",
    "TextMismatchError",
    "PersistenceError",
    "FailureCategory",
    "SelectorKind",
    "SelectorStrategy",
    "TestResult",
    "TestStatus",
]
