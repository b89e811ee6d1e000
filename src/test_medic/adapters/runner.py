"""Test runner that wraps the user's test command."""

import os
import shlex
import subprocess
import tempfile
from pathlib import Path

import structlog

from ..capture.junit import JUnitCase, read_junit
from ..config import Config
from ..models import TestFailure

logger = structlog.get_logger(__name__)


class TestRunner:
    """Run tests using the configured test command and read its JUnit report."""

    __test__ = False

    def __init__(self, config: Config, cwd: Path | None = None):
        self.config = config
        self.test_command = config.test_command
        self.cwd = cwd or Path.cwd()

    def _run(self, cmd: str) -> subprocess.CompletedProcess:
        logger.info("running_tests", command=cmd)
        return subprocess.run(
            cmd,
            shell=True,
            capture_output=True,
            cwd=self.cwd,
            text=True,
            env={**os.environ, "PYTHONPATH": f"{self.cwd}{os.pathsep}{os.environ.get('PYTHONPATH', '')}"},
        )

    def run_tests(self, target: Path | None = None) -> tuple[bool, str, list[JUnitCase]]:
        """
        Run the suite (or ``target``) once.

        Returns:
            Tuple of (success, combined output, parsed test cases)
        """
        with tempfile.TemporaryDirectory() as tmp:
            report = Path(tmp) / "junit.xml"
            cmd = f"{self.test_command} --junitxml={shlex.quote(str(report))}"
            if target:
                cmd = f"{cmd} {shlex.quote(str(target))}"

            result = self._run(cmd)
            cases = read_junit(report, self.cwd) if report.exists() else []

        output = result.stdout + "\n" + result.stderr
        if result.returncode != 0 and not cases:
            logger.warning("test_command_produced_no_report", returncode=result.returncode, output=output[-1000:])
        return result.returncode == 0, output, cases

    def run_single_test(self, failure: TestFailure) -> bool:
        """Re-run one repaired test by node id; True if it passed."""
        result = self._run(f"{self.test_command} {shlex.quote(failure.test)}")
        passed = result.returncode == 0
        logger.info("test_rerun", test=failure.test, passed=passed)
        return passed
