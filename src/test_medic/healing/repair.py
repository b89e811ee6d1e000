"""Repair engine - apply the category's strategy to a failing test file."""

from collections import defaultdict
from collections.abc import Callable

import structlog

from ..config import RepairConfig
from ..errors import RepairNotApplicable
from ..models import FailureCategory, RepairResult, TestFailure
from .source_edit import is_valid_python
from .strategies import (
    repair_assertion,
    repair_navigation,
    repair_network,
    repair_selector,
    repair_timing,
)

logger = structlog.get_logger(__name__)

Strategy = Callable[[TestFailure, str], tuple[str, list[str]]]

STRATEGIES: dict[FailureCategory, tuple[str, Strategy]] = {
    FailureCategory.SELECTOR: ("selector-fallback", repair_selector),
    FailureCategory.TIMING: ("timing-adjustment", repair_timing),
    FailureCategory.ASSERTION: ("assertion-relaxation", repair_assertion),
    FailureCategory.NAVIGATION: ("navigation-retry", repair_navigation),
    FailureCategory.NETWORK: ("network-resilience", repair_network),
}

_unhandled = set(FailureCategory) - set(STRATEGIES) - {FailureCategory.UNKNOWN}
if _unhandled:
    raise RuntimeError(f"No repair strategy for: {sorted(c.value for c in _unhandled)}")


class RepairEngine:
    """
    Rewrite failing test sources according to their failure category.

    ``repair`` is pure: source text in, result and new source out. ``repair_file``
    adds the file I/O and records the outcome in the per-test repair history.
    """

    def __init__(self, config: RepairConfig | None = None):
        self.config = config or RepairConfig()
        self._history: dict[str, list[RepairResult]] = defaultdict(list)

    def repair(self, failure: TestFailure, source: str) -> tuple[RepairResult, str]:
        """
        Attempt a repair of ``source`` for ``failure``.

        Returns:
            The result and the (possibly unchanged) source. On failure the
            original source is returned untouched.
        """
        if failure.failure_type not in STRATEGIES:
            return RepairResult(success=False, strategy="none", error="Unknown error type; no repair strategy"), source

        name, strategy = STRATEGIES[failure.failure_type]
        try:
            new_source, changes = strategy(failure, source)
        except RepairNotApplicable as e:
            logger.info("repair_not_applicable", test=failure.test, strategy=name, reason=e.reason)
            return RepairResult(success=False, strategy=name, error=e.reason), source

        if (
            self.config.validate_python
            and failure.file.suffix == ".py"
            and is_valid_python(source)
            and not is_valid_python(new_source)
        ):
            logger.warning("repair_rejected_invalid_python", test=failure.test, strategy=name)
            return RepairResult(success=False, strategy=name, error="Rewrite produced invalid Python"), source

        return RepairResult(success=True, strategy=name, changes=changes), new_source

    def repair_file(self, failure: TestFailure, write: bool = True) -> RepairResult:
        """
        Repair the failing test file in place.

        The file is only written when the repair succeeded and ``write`` is set.
        I/O errors propagate to the caller.
        """
        logger.info("repairing_failure", test=failure.test, file=str(failure.file), category=failure.failure_type.value)
        source = failure.file.read_text(encoding="utf-8")
        result, new_source = self.repair(failure, source)

        if result.success and write and new_source != source:
            failure.file.write_text(new_source, encoding="utf-8")
            logger.info("repair_applied", test=failure.test, strategy=result.strategy, changes=len(result.changes))

        self._history[failure.test].append(result)
        return result

    def history(self, test: str) -> list[RepairResult]:
        """Every repair attempted for ``test``, oldest first."""
        return list(self._history.get(test, []))

    @property
    def repair_history(self) -> dict[str, list[RepairResult]]:
        return {test: list(results) for test, results in self._history.items()}
