"""Tests for the test command runner."""

import re
import subprocess
from pathlib import Path

from test_medic.adapters.runner import TestRunner
from test_medic.config import Config
from test_medic.models import FailureCategory, TestFailure, TestStatus

REPORT = """<?xml version="1.0" encoding="utf-8"?>
<testsuite name="pytest" timestamp="2026-02-10T08:15:00">
  <testcase classname="test_login" name="test_ok" time="0.2" />
  <testcase classname="test_login" name="test_broken" time="0.4"><failure message="boom">boom</failure></testcase>
</testsuite>
"""


def _completed(cmd, returncode, stdout=""):
    return subprocess.CompletedProcess(cmd, returncode, stdout=stdout, stderr="")


def test_run_tests_reads_junit_report(tmp_path, monkeypatch):
    (tmp_path / "test_login.py").write_text("def test_ok():\n    pass\n")
    runner = TestRunner(Config(test_command="pytest -q"), cwd=tmp_path)
    commands = []

    def fake_run(cmd):
        commands.append(cmd)
        Path(re.search(r"--junitxml=(\S+)", cmd).group(1)).write_text(REPORT)
        return _completed(cmd, 1, stdout="1 failed, 1 passed")

    monkeypatch.setattr(runner, "_run", fake_run)

    success, output, cases = runner.run_tests(Path("test_login.py"))

    assert not success
    assert "1 failed, 1 passed" in output
    assert commands[0].startswith("pytest -q --junitxml=")
    assert commands[0].endswith(" test_login.py")
    assert [(c.test_id, c.result.status) for c in cases] == [
        ("test_login.py::test_ok", TestStatus.PASSED),
        ("test_login.py::test_broken", TestStatus.FAILED),
    ]


def test_run_tests_without_report(tmp_path, monkeypatch):
    runner = TestRunner(Config(), cwd=tmp_path)
    monkeypatch.setattr(runner, "_run", lambda cmd: _completed(cmd, 4, stdout="usage error"))

    success, output, cases = runner.run_tests()

    assert not success
    assert cases == []


def test_run_single_test_uses_node_id(tmp_path, monkeypatch):
    runner = TestRunner(Config(test_command="pytest"), cwd=tmp_path)
    commands = []
    monkeypatch.setattr(runner, "_run", lambda cmd: commands.append(cmd) or _completed(cmd, 0))
    failure = TestFailure(
        test="tests/e2e/test_login.py::test_ok",
        file=Path("tests/e2e/test_login.py"),
        error="timeout",
        failure_type=FailureCategory.TIMING,
    )

    assert runner.run_single_test(failure)
    assert commands == ["pytest tests/e2e/test_login.py::test_ok"]
