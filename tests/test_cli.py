"""Tests for the command-line interface."""

import json

import pytest
from click.testing import CliRunner

from test_medic.adapters.runner import TestRunner
from test_medic.capture import parse_junit
from test_medic.cli import main

from conftest import LOGIN_HTML

JUNIT = """<?xml version="1.0" encoding="utf-8"?>
<testsuite name="pytest" timestamp="2026-02-10T08:15:00">
  <testcase classname="tests.test_checkout_flow" name="test_cart_total" time="1.5">
    <failure message="AssertionError: expected '$42.00' but received '$40.00'" />
  </testcase>
  <testcase classname="tests.test_checkout_flow" name="test_order_search" time="0.8" />
</testsuite>
"""


@pytest.fixture
def project(tmp_path, monkeypatch, fixture_source):
    (tmp_path / "tests").mkdir()
    (tmp_path / "tests" / "test_checkout_flow.py").write_text(fixture_source("checkout_flow.py"))
    (tmp_path / "junit.xml").write_text(JUNIT)
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def cli():
    return CliRunner()


def test_discover_from_snapshot(cli, project):
    (project / "login.html").write_text(LOGIN_HTML)

    result = cli.invoke(main, ["discover", "/login", "--page-name", "Login", "--html", "login.html", "-o", "generated"])

    assert result.exit_code == 0, result.output
    assert "Generated 5 tests" in result.output
    generated = (project / "generated" / "test_login_generated.py").read_text()
    assert "healing_page.navigate('/login')" in generated
    assert '[data-testid="submit"]' in generated


def test_heal_is_a_dry_run_by_default(cli, project, fixture_source):
    result = cli.invoke(main, ["heal", "--junit", "junit.xml"])

    assert result.exit_code == 0, result.output
    assert "Repaired: 1/1" in result.output
    assert "Run with --apply" in result.output
    assert (project / "tests" / "test_checkout_flow.py").read_text() == fixture_source("checkout_flow.py")


def test_heal_apply_rewrites_source(cli, project):
    result = cli.invoke(main, ["heal", "--junit", "junit.xml", "--apply"])

    assert result.exit_code == 0, result.output
    assert "to_contain_text" in (project / "tests" / "test_checkout_flow.py").read_text()


def test_heal_auto_heal_mode_from_config(cli, project):
    (project / "test_medic.yaml").write_text("test_medic:\n  repair:\n    mode: auto-heal\n")

    result = cli.invoke(main, ["heal", "--junit", "junit.xml"])

    assert result.exit_code == 0, result.output
    assert "mode: apply" in result.output
    assert "to_contain_text" in (project / "tests" / "test_checkout_flow.py").read_text()


def test_heal_with_nothing_failing(cli, project):
    (project / "green.xml").write_text('<testsuite><testcase classname="t" name="test_ok" time="0.1"/></testsuite>')

    result = cli.invoke(main, ["heal", "--junit", "green.xml"])

    assert result.exit_code == 0
    assert "Nothing to heal" in result.output


def test_record_then_report_json(cli, project):
    recorded = cli.invoke(main, ["record", "--junit", "junit.xml"])
    reported = cli.invoke(main, ["report", "--format", "json"])

    assert recorded.exit_code == 0, recorded.output
    assert "Recorded 2 results" in recorded.output
    assert reported.exit_code == 0, reported.output
    document = json.loads(reported.stdout)
    assert document["summary"]["total_tests"] == 2
    assert document["summary"]["failing_tests"] == 1
    assert document["summary"]["health_score"] == 95
    assert (project / "test-reports" / "test-history.json").exists()
    assert (project / "test-reports" / "dashboard.html").exists()


def test_report_table_on_empty_history(cli, project):
    result = cli.invoke(main, ["report"])

    assert result.exit_code == 0, result.output
    assert "Test Health" in result.output
    assert "100%" in result.output


def test_watch_records_each_run(cli, project, monkeypatch):
    cases = parse_junit(JUNIT, project)
    monkeypatch.setattr(TestRunner, "run_tests", lambda self, target=None: (False, "", cases))

    result = cli.invoke(main, ["watch", "--iterations", "2", "--interval", "0"])

    assert result.exit_code == 0, result.output
    assert "Run 1: 2 results" in result.output
    assert "Run 2: 2 results" in result.output
    history = json.loads((project / "test-reports" / "test-history.json").read_text())
    assert len(history) == 4
