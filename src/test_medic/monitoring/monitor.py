"""Test health monitor - rolling metrics, flakiness and the health report."""

import copy
import threading
from collections import Counter
from datetime import datetime

import structlog

from ..config import MonitorConfig
from ..healing.classifier import FailureClassifier
from ..models import (
    FailureCategory,
    MonitoringReport,
    MonitoringSummary,
    TestMetrics,
    TestResult,
    TestStatus,
)
from .dashboard import render_dashboard
from .storage import MonitorStorage

logger = structlog.get_logger(__name__)

RECOMMENDATIONS = {
    FailureCategory.TIMING.value: "Consider increasing timeout values or adding explicit waits",
    FailureCategory.SELECTOR.value: "Add data-testid attributes and use self-healing selectors",
    FailureCategory.NETWORK.value: "Implement network error handling and retry logic",
    FailureCategory.NAVIGATION.value: "Add navigation guards and wait for page ready states",
}


def is_flaky(metrics: TestMetrics) -> bool:
    return bool(metrics.flaky_tests)


def has_flipped(statuses: list[TestStatus]) -> bool:
    """True when any two adjacent statuses differ."""
    return any(a is not b for a, b in zip(statuses, statuses[1:]))


def health_score(metrics: dict[str, TestMetrics], config: MonitorConfig | None = None) -> int:
    """
    Aggregate suite health from 0 to 100.

    Starts at 100 and deducts a fixed penalty per failing, flaky and slow test.
    """
    config = config or MonitorConfig()
    values = list(metrics.values())
    failing = sum(1 for m in values if m.pass_rate < config.failing_threshold)
    flaky = sum(1 for m in values if is_flaky(m))
    slow = sum(1 for m in values if m.average_duration > config.slow_threshold_ms)

    score = 100 - failing * config.failing_penalty - flaky * config.flaky_penalty - slow * config.slow_penalty
    return max(0, min(100, score))


class TestMonitor:
    """
    Record test executions and report on suite health.

    Owns the result history and per-test metrics for its lifetime; the
    storage port is only used to load them once and to persist them after
    every recorded result.
    """

    __test__ = False

    def __init__(
        self,
        storage: MonitorStorage,
        config: MonitorConfig | None = None,
        classifier: FailureClassifier | None = None,
    ):
        self.storage = storage
        self.config = config or MonitorConfig()
        self.classifier = classifier or FailureClassifier()
        self._lock = threading.Lock()
        self._history: list[TestResult] = storage.load_history()
        self._metrics: dict[str, TestMetrics] = storage.load_metrics()

    @property
    def history(self) -> list[TestResult]:
        return list(self._history)

    @property
    def metrics(self) -> dict[str, TestMetrics]:
        return copy.deepcopy(self._metrics)

    def record_result(self, result: TestResult) -> TestMetrics:
        """
        Record one test execution and persist the updated state.

        The new state is built on copies and only replaces the monitor's own
        once both saves succeed, so a failed save leaves memory as it was.

        Raises:
            PersistenceError: If history or metrics could not be saved
        """
        with self._lock:
            history = [*self._history, result][-self.config.history_limit:]
            metrics = self._next_metrics(result, history)
            all_metrics = {**self._metrics, result.test_name: metrics}

            self.storage.save_history(history)
            self.storage.save_metrics(all_metrics)

            self._history = history
            self._metrics = all_metrics

        logger.debug(
            "test_result_recorded",
            test=result.test_name,
            status=result.status.value,
            pass_rate=round(metrics.pass_rate, 1),
            flaky=is_flaky(metrics),
        )
        return metrics

    def _next_metrics(self, result: TestResult, history: list[TestResult]) -> TestMetrics:
        metrics = copy.deepcopy(self._metrics.get(result.test_name)) or TestMetrics()
        runs = [r for r in history if r.test_name == result.test_name]

        metrics.total_runs += 1
        metrics.last_run = result.timestamp
        metrics.pass_rate = 100.0 * sum(1 for r in runs if r.status is TestStatus.PASSED) / len(runs)
        metrics.average_duration = sum(r.duration for r in runs) / len(runs)

        # Once flagged a test stays flaky
        recent = [r.status for r in runs[-self.config.flaky_window:]]
        if has_flipped(recent) and result.test_name not in metrics.flaky_tests:
            metrics.flaky_tests.append(result.test_name)
            logger.info("flaky_test_detected", test=result.test_name, recent=[s.value for s in recent])

        if result.status is TestStatus.FAILED and result.error:
            category = self.classifier.classify(result.error).value
            metrics.failure_patterns[category] = metrics.failure_patterns.get(category, 0) + 1

        return metrics

    def generate_report(self, write_dashboard: bool = True) -> MonitoringReport:
        """
        Build a health report from the current metrics.

        Never raises and never changes monitor state; a dashboard that cannot
        be rendered or written is logged and skipped.
        """
        with self._lock:
            metrics = copy.deepcopy(self._metrics)
            history = self._history[-self.config.report_history:]

        config = self.config
        summary = MonitoringSummary(
            health_score=health_score(metrics, config),
            total_tests=len(metrics),
            passing_tests=sum(1 for m in metrics.values() if m.pass_rate >= config.passing_threshold),
            failing_tests=sum(1 for m in metrics.values() if m.pass_rate < config.failing_threshold),
            flaky_tests=sum(1 for m in metrics.values() if is_flaky(m)),
            average_run_time=(sum(m.average_duration for m in metrics.values()) / len(metrics)) if metrics else 0.0,
        )
        report = MonitoringReport(
            summary=summary,
            critical_issues=self._critical_issues(metrics),
            recommendations=self._recommendations(metrics),
            test_history=history,
            metrics=metrics,
            generated_at=datetime.now(),
        )

        if write_dashboard:
            try:
                self.storage.write_dashboard(render_dashboard(report))
            except Exception as e:
                logger.warning("dashboard_write_failed", error=str(e))

        logger.info("monitoring_report_generated", health_score=summary.health_score, tests=summary.total_tests)
        return report

    def _critical_issues(self, metrics: dict[str, TestMetrics]) -> list[str]:
        config = self.config
        issues = []

        for name, m in metrics.items():
            if m.pass_rate == 0 and m.total_runs >= config.never_passed_min_runs:
                issues.append(f'Test "{name}" has never passed ({m.total_runs} attempts)')

        for name, m in metrics.items():
            if m.average_duration > config.very_slow_threshold_ms:
                issues.append(f'Test "{name}" is extremely slow (avg: {m.average_duration / 1000:.1f}s)')

        flaky = sum(1 for m in metrics.values() if is_flaky(m))
        if flaky > config.flaky_alert_count:
            issues.append(f"High test flakiness detected: {flaky} flaky tests")

        return issues

    def _recommendations(self, metrics: dict[str, TestMetrics]) -> list[str]:
        config = self.config
        patterns: Counter[str] = Counter()
        for m in metrics.values():
            patterns.update(m.failure_patterns)

        recommendations = [
            RECOMMENDATIONS[category]
            for category, count in patterns.items()
            if count > config.recommendation_threshold and category in RECOMMENDATIONS
        ]

        slow = [name for name, m in metrics.items() if m.average_duration > config.slow_threshold_ms]
        if slow:
            recommendations.append(f"Optimize slow tests: {', '.join(slow[:3])}")

        if any(is_flaky(m) for m in metrics.values()):
            recommendations.append("Use self-healing utilities to reduce test flakiness")

        return recommendations
