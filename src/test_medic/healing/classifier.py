"""Failure classifier - map raw error text onto the failure taxonomy."""

import re
from pathlib import Path

from ..models import FailureCategory, TestFailure

# Checked in this order; the first category with a matching keyword wins.
# An error mentioning both a timeout and a selector is therefore TIMING.
CATEGORY_KEYWORDS: list[tuple[FailureCategory, tuple[str, ...]]] = [
    (FailureCategory.TIMING, ("timeout", "timed out")),
    (
        FailureCategory.SELECTOR,
        (
            "selector",
            "locator",
            "no such element",
            "element not found",
            "unable to locate",
            "not visible",
            "strict mode violation",
        ),
    ),
    (FailureCategory.NAVIGATION, ("navigation", "navigating", "goto", "frame was detached", "err_aborted")),
    (
        FailureCategory.NETWORK,
        ("network", "net::", "fetch", "econnrefused", "econnreset", "socket hang up", "request failed"),
    ),
    (FailureCategory.ASSERTION, ("assert", "expected", "received", "to_have", "tohave", "to_contain", "tocontain")),
]


class FailureClassifier:
    """
    Categorise test failures from their error message.

    Pure keyword matching, case-insensitive, first match wins in the order of
    ``CATEGORY_KEYWORDS``. Never raises: anything unrecognised (including
    empty input) is ``FailureCategory.UNKNOWN``.
    """

    def classify(self, raw_error: str | None) -> FailureCategory:
        text = (raw_error or "").lower()
        for category, keywords in CATEGORY_KEYWORDS:
            if any(keyword in text for keyword in keywords):
                return category
        return FailureCategory.UNKNOWN

    def to_failure(self, test: str, file: Path | str, error: str, line: int | None = None) -> TestFailure:
        """Build the classified failure record handed to the repair engine."""
        file = Path(file)
        return TestFailure(
            test=test,
            file=file,
            error=error,
            failure_type=self.classify(error),
            line=line if line is not None else extract_line(error, file),
        )


def extract_line(error: str, file: Path) -> int | None:
    """Find the line number of ``file`` referenced in a traceback, if any."""
    pattern = rf"{re.escape(file.name)}[\"']?(?:, line |:)(\d+)"
    matches = re.findall(pattern, error or "")
    # Innermost frame in the test file is the last one reported
    return int(matches[-1]) if matches else None
