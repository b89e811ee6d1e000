"""Read test outcomes from JUnit XML reports."""

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

import structlog
from bs4 import BeautifulSoup, Tag

from ..healing.classifier import FailureClassifier
from ..models import TestFailure, TestResult, TestStatus

logger = structlog.get_logger(__name__)


@dataclass
class JUnitCase:
    """One ``<testcase>`` element and the result it describes."""

    name: str
    classname: str
    file: Path | None
    line: int | None
    result: TestResult

    @property
    def test_id(self) -> str:
        return self.result.test_name


def _float(value: str | None) -> float:
    try:
        return float(value) if value else 0.0
    except ValueError:
        return 0.0


def _timestamp(value: str | None) -> datetime:
    if value:
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            pass
    return datetime.now()


def _error_text(element: Tag) -> str:
    message = element.get("message") or ""
    body = element.get_text().strip()
    if message and body and message not in body:
        return f"{message}\n{body}"
    return body or message


def resolve_file(classname: str, file_attr: str | None, root: Path) -> Path | None:
    """
    Find the source file of a test case.

    Uses the ``file`` attribute when the report has one, otherwise the
    longest dotted prefix of ``classname`` that exists as a module under
    ``root``.
    """
    if file_attr:
        return root / file_attr
    parts = classname.split(".")
    for end in range(len(parts), 0, -1):
        candidate = root.joinpath(*parts[:end]).with_suffix(".py")
        if candidate.exists():
            return candidate
    return None


def node_id(classname: str, name: str, file: Path | None, root: Path) -> str:
    """Pytest-style node id (``path/to/test_x.py::Class::test``) where the file is known."""
    if file is None:
        return f"{classname}::{name}" if classname else name
    try:
        relative = file.relative_to(root)
    except ValueError:
        relative = file
    module = ".".join(relative.with_suffix("").parts)
    rest = classname[len(module) + 1:] if classname.startswith(module + ".") else ""
    return "::".join([relative.as_posix(), *filter(None, rest.split(".")), name])


def parse_junit(xml: str, root: Path | None = None) -> list[JUnitCase]:
    """Parse a JUnit XML document into test cases."""
    root = root or Path.cwd()
    soup = BeautifulSoup(xml, "xml")
    cases = []

    for testcase in soup.find_all("testcase"):
        suite = testcase.find_parent("testsuite")
        timestamp = _timestamp(suite.get("timestamp") if suite else None)
        name = testcase.get("name", "")
        classname = testcase.get("classname", "")

        failure = testcase.find("failure") or testcase.find("error")
        reruns = testcase.find_all(["rerunFailure", "rerunError", "flakyFailure", "flakyError"])
        error = None
        if failure is not None:
            status = TestStatus.FAILED
            error = _error_text(failure)
        elif testcase.find("skipped") is not None:
            status = TestStatus.SKIPPED
        elif reruns:
            status = TestStatus.FLAKY
            error = _error_text(reruns[-1])
        else:
            status = TestStatus.PASSED

        line = testcase.get("line")
        file = resolve_file(classname, testcase.get("file"), root)
        cases.append(
            JUnitCase(
                name=name,
                classname=classname,
                file=file,
                line=int(line) if line and line.isdigit() else None,
                result=TestResult(
                    test_name=node_id(classname, name, file, root),
                    status=status,
                    duration=_float(testcase.get("time")) * 1000,
                    timestamp=timestamp,
                    error=error,
                    retries=len(reruns) or None,
                ),
            )
        )

    logger.debug("junit_parsed", cases=len(cases))
    return cases


def read_junit(path: Path, root: Path | None = None) -> list[JUnitCase]:
    """Read and parse a JUnit XML report file."""
    return parse_junit(path.read_text(encoding="utf-8"), root)


def failures_from_cases(cases: list[JUnitCase], classifier: FailureClassifier | None = None) -> list[TestFailure]:
    """Classified failures for every failed case whose source file is known."""
    classifier = classifier or FailureClassifier()
    failures = []
    for case in cases:
        if case.result.status is not TestStatus.FAILED:
            continue
        if case.file is None:
            logger.warning("failure_without_source", test=case.test_id)
            continue
        failures.append(classifier.to_failure(case.test_id, case.file, case.result.error or "", case.line))
    return failures
