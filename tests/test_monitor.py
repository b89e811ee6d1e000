"""Tests for the test health monitor."""

import copy
from datetime import datetime, timedelta

import pytest

from test_medic.config import MonitorConfig
from test_medic.errors import PersistenceError
from test_medic.models import TestMetrics, TestResult, TestStatus
from test_medic.monitoring import InMemoryStorage, TestMonitor, health_score
from test_medic.monitoring.monitor import has_flipped

START = datetime(2026, 1, 5, 9, 0, 0)

P, F = TestStatus.PASSED, TestStatus.FAILED


def _result(name, status, duration=1200.0, error=None, offset=0):
    return TestResult(
        test_name=name,
        status=status,
        duration=duration,
        timestamp=START + timedelta(seconds=offset),
        error=error,
    )


@pytest.fixture
def storage():
    return InMemoryStorage()


@pytest.fixture
def monitor(storage):
    return TestMonitor(storage)


def _record(monitor, name, statuses, **kwargs):
    metrics = None
    for i, status in enumerate(statuses):
        metrics = monitor.record_result(_result(name, status, offset=i, **kwargs))
    return metrics


def test_alternating_results_are_flaky(monitor):
    metrics = _record(monitor, "login", [P, F, P, F, P])

    assert metrics.flaky_tests == ["login"]
    assert metrics.total_runs == 5
    assert metrics.pass_rate == pytest.approx(60.0)


def test_consistent_results_are_not_flaky(monitor):
    assert _record(monitor, "passing", [P] * 5).flaky_tests == []
    assert _record(monitor, "failing", [F] * 5).flaky_tests == []


def test_flaky_flag_is_sticky(monitor):
    _record(monitor, "search", [P, F])

    metrics = _record(monitor, "search", [P] * 10)

    assert metrics.flaky_tests == ["search"]


def test_total_runs_never_decreases(monitor):
    seen = []
    for i in range(20):
        seen.append(monitor.record_result(_result("checkout", P if i % 3 else F, offset=i)).total_runs)

    assert seen == list(range(1, 21))


def test_pass_rate_and_average_duration(monitor):
    monitor.record_result(_result("cart", P, duration=1000))
    metrics = monitor.record_result(_result("cart", F, duration=3000, error="boom", offset=1))

    assert metrics.pass_rate == pytest.approx(50.0)
    assert metrics.average_duration == pytest.approx(2000.0)
    assert metrics.last_run == START + timedelta(seconds=1)


def test_history_is_bounded_and_evicts_oldest_first(storage):
    monitor = TestMonitor(storage)

    for i in range(1005):
        monitor.record_result(_result(f"t{i % 7}", P, offset=i))

    assert len(monitor.history) == 1000
    assert monitor.history[0].timestamp == START + timedelta(seconds=5)
    assert len(storage.history) == 1000
    assert sum(m.total_runs for m in monitor.metrics.values()) == 1005


def test_failure_patterns_count_failed_results_by_category(monitor):
    monitor.record_result(_result("pay", F, error="TimeoutError: Timeout 30000ms exceeded"))
    monitor.record_result(_result("pay", F, error="locator('#pay') resolved to 0 elements", offset=1))
    monitor.record_result(_result("pay", F, error="Timeout waiting for navigation", offset=2))
    monitor.record_result(_result("pay", F, offset=3))
    metrics = monitor.record_result(_result("pay", TestStatus.SKIPPED, error="skipped: no payment sandbox", offset=4))

    assert metrics.failure_patterns == {"timing": 2, "selector": 1}


def test_record_persists_history_and_metrics(monitor, storage):
    monitor.record_result(_result("login", P))

    assert [r.test_name for r in storage.history] == ["login"]
    assert storage.metrics["login"].total_runs == 1


def test_state_is_loaded_from_storage():
    previous = TestMetrics(total_runs=7, pass_rate=100.0, average_duration=900.0)
    storage = InMemoryStorage(history=[_result("login", P)], metrics={"login": previous})

    monitor = TestMonitor(storage)
    metrics = monitor.record_result(_result("login", P, offset=1))

    assert metrics.total_runs == 8
    assert len(monitor.history) == 2


def test_save_failure_propagates():
    class BrokenStorage(InMemoryStorage):
        def save_history(self, history):
            raise PersistenceError("disk full")

    with pytest.raises(PersistenceError):
        TestMonitor(BrokenStorage()).record_result(_result("login", P))


def test_failed_save_leaves_monitor_state_unchanged():
    class MetricsWriteFails(InMemoryStorage):
        fail = False

        def save_metrics(self, metrics):
            if self.fail:
                raise PersistenceError("disk full")
            super().save_metrics(metrics)

    storage = MetricsWriteFails()
    monitor = TestMonitor(storage)
    monitor.record_result(_result("login", P))
    storage.fail = True

    with pytest.raises(PersistenceError):
        monitor.record_result(_result("login", F, error="boom", offset=1))

    assert [r.status for r in monitor.history] == [P]
    assert monitor.metrics["login"].total_runs == 1
    assert monitor.metrics["login"].pass_rate == pytest.approx(100.0)
    assert monitor.metrics["login"].failure_patterns == {}
    assert storage.metrics["login"].total_runs == 1

    storage.fail = False
    metrics = monitor.record_result(_result("login", P, offset=2))

    assert metrics.total_runs == 2
    assert [r.status for r in storage.history] == [P, P]


def test_metrics_are_returned_as_copies(monitor):
    monitor.record_result(_result("login", P))

    snapshot = monitor.metrics
    snapshot["login"].total_runs = 99
    snapshot["login"].flaky_tests.append("login")
    snapshot["ghost"] = TestMetrics()

    assert monitor.metrics["login"].total_runs == 1
    assert monitor.metrics["login"].flaky_tests == []
    assert "ghost" not in monitor.metrics


def _metrics(count, failing=0, flaky=0, slow=0):
    metrics = {}
    for i in range(count):
        m = TestMetrics(total_runs=10, pass_rate=100.0, average_duration=1000.0)
        if i < failing:
            m.pass_rate = 20.0
        elif i < failing + flaky:
            m.pass_rate = 80.0
            m.flaky_tests = [f"test_{i}"]
        elif i < failing + flaky + slow:
            m.average_duration = 45000.0
        metrics[f"test_{i}"] = m
    return metrics


def test_health_score_for_two_failing_and_one_flaky():
    assert health_score(_metrics(10, failing=2, flaky=1)) == 87


def test_health_score_penalises_slow_tests():
    assert health_score(_metrics(4, slow=2)) == 96


def test_health_score_is_floored_at_zero():
    assert health_score(_metrics(30, failing=25)) == 0


def test_adding_a_failing_test_lowers_health():
    metrics = _metrics(10, failing=2, flaky=1)
    before = health_score(metrics)

    metrics["test_new"] = TestMetrics(total_runs=3, pass_rate=0.0, average_duration=500.0)

    assert health_score(metrics) < before


def test_report_summary_matches_scenario(storage):
    storage.metrics = _metrics(10, failing=2, flaky=1)
    monitor = TestMonitor(storage)

    report = monitor.generate_report()

    assert report.summary.health_score == 87
    assert report.summary.total_tests == 10
    assert report.summary.passing_tests == 7
    assert report.summary.failing_tests == 2
    assert report.summary.flaky_tests == 1
    assert report.recommendations == ["Use self-healing utilities to reduce test flakiness"]


def test_report_does_not_change_metrics(storage):
    storage.metrics = _metrics(5, failing=1, flaky=1)
    monitor = TestMonitor(storage)
    before = copy.deepcopy(monitor.metrics)

    monitor.generate_report()
    monitor.generate_report()

    assert monitor.metrics == before


def test_critical_issues(storage):
    metrics = _metrics(8, flaky=6)
    metrics["never"] = TestMetrics(total_runs=4, pass_rate=0.0, average_duration=800.0)
    metrics["new"] = TestMetrics(total_runs=3, pass_rate=0.0, average_duration=800.0)
    metrics["glacial"] = TestMetrics(total_runs=2, pass_rate=100.0, average_duration=75000.0)
    storage.metrics = metrics

    report = TestMonitor(storage).generate_report()

    assert report.critical_issues == [
        'Test "never" has never passed (4 attempts)',
        'Test "glacial" is extremely slow (avg: 75.0s)',
        "High test flakiness detected: 6 flaky tests",
    ]


def test_recommendations_follow_failure_histogram(storage):
    storage.metrics = {
        "a": TestMetrics(total_runs=9, pass_rate=40.0, failure_patterns={"timing": 4, "selector": 6}),
        "b": TestMetrics(total_runs=9, pass_rate=40.0, failure_patterns={"timing": 3, "assertion": 9}),
        "slow_1": TestMetrics(total_runs=1, pass_rate=100.0, average_duration=31000.0),
        "slow_2": TestMetrics(total_runs=1, pass_rate=100.0, average_duration=32000.0),
        "slow_3": TestMetrics(total_runs=1, pass_rate=100.0, average_duration=33000.0),
        "slow_4": TestMetrics(total_runs=1, pass_rate=100.0, average_duration=34000.0),
    }

    report = TestMonitor(storage).generate_report()

    assert report.recommendations == [
        "Consider increasing timeout values or adding explicit waits",
        "Add data-testid attributes and use self-healing selectors",
        "Optimize slow tests: slow_1, slow_2, slow_3",
    ]


def test_report_on_empty_monitor(monitor, storage):
    report = monitor.generate_report()

    assert report.summary.health_score == 100
    assert report.summary.total_tests == 0
    assert report.summary.average_run_time == 0.0
    assert report.critical_issues == []
    assert "Test Monitoring Dashboard" in storage.dashboard


def test_report_history_window(storage):
    monitor = TestMonitor(storage, MonitorConfig(report_history=3))
    for i in range(5):
        monitor.record_result(_result("t", P, offset=i))

    report = monitor.generate_report(write_dashboard=False)

    assert [r.timestamp for r in report.test_history] == [START + timedelta(seconds=i) for i in (2, 3, 4)]
    assert storage.dashboard is None


def test_dashboard_failure_does_not_break_report(storage):
    class NoDashboard(InMemoryStorage):
        def write_dashboard(self, html):
            raise PersistenceError("read-only file system")

    monitor = TestMonitor(NoDashboard(metrics=_metrics(3)))

    report = monitor.generate_report()

    assert report.summary.total_tests == 3


def test_has_flipped():
    assert has_flipped([P, P, F])
    assert not has_flipped([F, F])
    assert not has_flipped([])
