"""Pytest plugin that records every test outcome in a TestMonitor.

Enable with ``pytest -p test_medic.plugins.monitor --medic-report-dir test-reports``.
"""

from pathlib import Path

import pytest
import structlog

from ..models import TestResult, TestStatus
from ..monitoring import JsonFileStorage, TestMonitor

logger = structlog.get_logger(__name__)


def pytest_addoption(parser):
    group = parser.getgroup("test-medic")
    group.addoption(
        "--medic-report-dir",
        action="store",
        default=None,
        help="Record test outcomes and write the health dashboard to this directory",
    )


def pytest_configure(config):
    report_dir = config.getoption("medic_report_dir", default=None)
    if report_dir:
        monitor = TestMonitor(JsonFileStorage(Path(report_dir)))
        logger.info("monitor_plugin_enabled", report_dir=report_dir)
        config.pluginmanager.register(MonitorPlugin(monitor), "test-medic-monitor")


class MonitorPlugin:
    """Turns pytest reports into monitor results."""

    def __init__(self, monitor: TestMonitor):
        self.monitor = monitor

    @staticmethod
    def to_result(report) -> TestResult | None:
        """Map a pytest report to a result; None for phases that are not recorded."""
        if report.when == "call":
            status = {
                "passed": TestStatus.PASSED,
                "failed": TestStatus.FAILED,
                "skipped": TestStatus.SKIPPED,
            }.get(report.outcome)
            if status is None:
                return None
        elif report.when == "setup" and not report.passed:
            # The call phase never runs after a failed or skipped setup
            status = TestStatus.FAILED if report.failed else TestStatus.SKIPPED
        else:
            return None

        return TestResult(
            test_name=report.nodeid,
            status=status,
            duration=report.duration * 1000,
            error=report.longreprtext if status is TestStatus.FAILED else None,
        )

    def pytest_runtest_logreport(self, report):
        if (result := self.to_result(report)) is not None:
            self.monitor.record_result(result)

    def pytest_sessionfinish(self, session):
        self.monitor.generate_report()

    def pytest_terminal_summary(self, terminalreporter):
        report = self.monitor.generate_report(write_dashboard=False)
        terminalreporter.write_line(
            f"test-medic: health score {report.summary.health_score}% "
            f"({report.summary.total_tests} tracked, {report.summary.flaky_tests} flaky)"
        )


@pytest.hookimpl(trylast=True)
def pytest_unconfigure(config):
    plugin = config.pluginmanager.get_plugin("test-medic-monitor")
    if plugin is not None:
        config.pluginmanager.unregister(plugin)
