"""Exception hierarchy for Test Medic."""

from collections.abc import Sequence

from .models import SelectorStrategy


class TestMedicError(Exception):
    """Base class for all Test Medic errors."""

    __test__ = False


def _describe(strategies: Sequence[SelectorStrategy]) -> str:
    return ", ".join(str(s) for s in strategies) or "<none>"


class ElementNotFoundError(TestMedicError):
    """No selector strategy resolved to a visible element."""

    def __init__(self, strategies: Sequence[SelectorStrategy], timeout_ms: float | None = None):
        self.strategies = list(strategies)
        self.timeout_ms = timeout_ms
        message = f"Element not found with any strategy: {_describe(self.strategies)}"
        if timeout_ms is not None:
            message += f" (budget {timeout_ms:.0f}ms)"
        super().__init__(message)


class WaitTimeoutError(TestMedicError):
    """A bounded wait expired before the expected state was reached."""

    def __init__(self, what: str, timeout_ms: float):
        self.what = what
        self.timeout_ms = timeout_ms
        super().__init__(f"Timeout {timeout_ms:.0f}ms exceeded waiting for {what}")


class ActionFailedError(TestMedicError):
    """A click or fill still failed after every retry."""

    def __init__(
        self,
        action: str,
        target: str,
        attempts: int,
        strategies: Sequence[SelectorStrategy],
        element_state: str | None = None,
        cause: BaseException | None = None,
    ):
        self.action = action
        self.target = target
        self.attempts = attempts
        self.strategies = list(strategies)
        self.element_state = element_state
        self.cause = cause

        message = (
            f"{action} on {target!r} failed after {attempts} attempt(s) "
            f"[strategies: {_describe(self.strategies)}]"
        )
        if element_state:
            message += f" [element state: {element_state}]"
        if cause is not None:
            message += f": {type(cause).__name__}: {cause}"
        super().__init__(message)


class TextMismatchError(TestMedicError, AssertionError):
    """No candidate element showed the expected text."""

    def __init__(self, expected: str, targets: Sequence[str], received: str | None = None):
        self.expected = expected
        self.targets = list(targets)
        self.received = received
        message = f"Expected text {expected!r} in any of {self.targets}"
        if received is not None:
            message += f"; received {received!r}"
        super().__init__(message)


class RepairNotApplicable(TestMedicError):
    """A repair strategy found nothing it could transform."""

    def __init__(self, strategy: str, reason: str):
        self.strategy = strategy
        self.reason = reason
        super().__init__(reason)


class PersistenceError(TestMedicError):
    """Reading or writing monitor state failed."""
