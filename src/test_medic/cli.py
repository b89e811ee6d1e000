"""CLI entry point for Test Medic."""

import asyncio
import logging
import sys
import time
from pathlib import Path
from urllib.parse import urljoin, urlparse

import click
import structlog
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from .adapters.runner import TestRunner
from .analyzer.html_parser import SnapshotPage
from .capture.junit import JUnitCase, failures_from_cases, read_junit
from .config import Config, load_config
from .discovery import ElementDiscoveryEngine, TestSynthesizer, write_tests
from .errors import TestMedicError
from .graph.workflow import run_healing
from .healing import FailureClassifier, RepairEngine
from .models import DiscoveredElement, MonitoringReport, TestStatus
from .monitoring import JsonFileStorage, TestMonitor
from .monitoring.monitor import is_flaky

console = Console()


def _configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=level)
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )


@click.group()
@click.version_option(package_name="test-medic")
@click.option("--config", "-c", "config_path", type=click.Path(exists=True, path_type=Path), help="Config file path")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging")
@click.pass_context
def main(ctx: click.Context, config_path: Path | None, verbose: bool) -> None:
    """Test Medic - self-healing UI tests, automated repair and test health monitoring."""
    ctx.ensure_object(dict)
    _configure_logging(verbose)
    ctx.obj["config"] = load_config(config_path)


@main.command()
@click.argument("url")
@click.option("--page-name", "-n", required=True, help="Human name of the page, used in test names")
@click.option("--output", "-o", type=click.Path(path_type=Path), help="Directory for the generated test module")
@click.option(
    "--html",
    "html_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Discover from a saved HTML snapshot instead of a live browser",
)
@click.pass_context
def discover(ctx: click.Context, url: str, page_name: str, output: Path | None, html_file: Path | None) -> None:
    """Discover interactive elements on a page and generate tests for them."""
    config: Config = ctx.obj["config"]
    url = urljoin(config.discovery.base_url.rstrip("/") + "/", url)

    console.print(f"\n[bold blue]Discovering elements:[/] {url}\n")
    with console.status("[yellow]Scanning page...[/]"):
        if html_file:
            elements = asyncio.run(_discover_snapshot(html_file, url, config))
        else:
            elements = asyncio.run(_discover_live(url, config))

    if not elements:
        console.print("[yellow]No interactive elements found.[/]\n")
    else:
        _show_elements(elements)

    synthesizer = TestSynthesizer(config.discovery.screenshot_dir)
    tests = synthesizer.synthesize(page_name, elements, path=urlparse(url).path or "/")
    path = write_tests(page_name, tests, output or config.discovery.output_dir)
    console.print(f"\n[green]Generated {len(tests)} tests:[/] {path}\n")


async def _discover_snapshot(html_file: Path, url: str, config: Config) -> list[DiscoveredElement]:
    page = SnapshotPage(html_file.read_text(encoding="utf-8"), url=url)
    return await ElementDiscoveryEngine(config.actions.test_id_attribute).discover(page)


async def _discover_live(url: str, config: Config) -> list[DiscoveredElement]:
    from playwright.async_api import Error as PlaywrightError
    from playwright.async_api import async_playwright

    try:
        async with async_playwright() as p:
            browser = await p.chromium.launch(headless=config.discovery.headless)
            try:
                page = await browser.new_page()
                await page.goto(url, wait_until="networkidle")
                return await ElementDiscoveryEngine(config.actions.test_id_attribute).discover(page)
            finally:
                await browser.close()
    except PlaywrightError as e:
        raise click.ClickException(f"Could not load {url}: {e}") from e


def _show_elements(elements: list[DiscoveredElement]) -> None:
    table = Table(title=f"Discovered {len(elements)} elements")
    table.add_column("Type", style="yellow")
    table.add_column("Selector", style="cyan", max_width=50)
    table.add_column("Text / Label", style="dim", max_width=40)
    for element in elements:
        table.add_row(element.type.value, escape(element.selector), escape(element.text or element.label or "-"))
    console.print(table)


def _load_cases(config: Config, junit_path: Path | None, suite: str | None) -> list[JUnitCase]:
    if junit_path:
        return read_junit(junit_path)
    runner = TestRunner(config)
    with console.status("[yellow]Running tests...[/]"):
        _, _, cases = runner.run_tests(Path(suite) if suite else None)
    return cases


@main.command()
@click.option("--junit", "junit_path", type=click.Path(exists=True, path_type=Path), help="JUnit XML report to read")
@click.option("--suite", "-s", help="Run the test command on this path instead of reading a report")
@click.option("--apply", "apply_fixes", is_flag=True, help="Write repaired sources back to disk")
@click.option("--verify", is_flag=True, help="Re-run each repaired test after applying")
@click.pass_context
def heal(ctx: click.Context, junit_path: Path | None, suite: str | None, apply_fixes: bool, verify: bool) -> None:
    """Classify failing tests and repair their sources."""
    config: Config = ctx.obj["config"]
    apply_fixes = apply_fixes or config.repair.mode == "auto-heal"

    mode = "apply" if apply_fixes else "dry-run"
    console.print(f"\n[bold blue]Healing failing tests[/] [dim](mode: {mode})[/]\n")

    cases = _load_cases(config, junit_path, suite)
    classifier = FailureClassifier()
    failures = failures_from_cases(cases, classifier)
    if not failures:
        console.print("[bold green]No failing tests. Nothing to heal.[/]\n")
        return

    engine = RepairEngine(config.repair)
    verifier = TestRunner(config).run_single_test if verify else None
    try:
        state = run_healing(failures, engine, apply=apply_fixes, classifier=classifier, verify=verifier)
    except (OSError, TestMedicError) as e:
        raise click.ClickException(str(e)) from e

    table = Table(title="Repair Results")
    table.add_column("Test", style="cyan", max_width=50)
    table.add_column("Category", style="yellow")
    table.add_column("Strategy", style="magenta")
    table.add_column("Result")

    repaired = 0
    for failure, result in state["outcomes"]:
        if result.success:
            repaired += 1
            outcome = f"[green]{len(result.changes)} change(s)[/]"
        else:
            outcome = f"[dim]{escape(result.error or 'no changes')}[/]"
        table.add_row(escape(failure.test), failure.failure_type.value, result.strategy, outcome)
    for failure in state["needs_review"]:
        table.add_row(escape(failure.test), failure.failure_type.value, "-", "[red]needs manual review[/]")
    console.print(table)

    for failure, result in state["outcomes"]:
        if result.changes:
            console.print(f"\n[cyan]{escape(str(failure.file))}[/]")
            for change in result.changes:
                console.print(f"  [green]+[/] {escape(change)}")

    console.print(f"\n[bold]Repaired:[/] {repaired}/{len(failures)}")
    if state["verified"]:
        console.print(f"[bold]Verified passing:[/] {len(state['verified'])}")
    if not apply_fixes and repaired:
        console.print("[dim]Run with --apply to write these changes[/]")
    console.print()


@main.command()
@click.option("--junit", "junit_path", required=True, type=click.Path(exists=True, path_type=Path))
@click.pass_context
def record(ctx: click.Context, junit_path: Path) -> None:
    """Record every test case of a JUnit report in the health monitor."""
    config: Config = ctx.obj["config"]
    monitor = TestMonitor(JsonFileStorage(config.monitor.report_dir), config.monitor)

    cases = read_junit(junit_path)
    try:
        for case in cases:
            monitor.record_result(case.result)
    except TestMedicError as e:
        raise click.ClickException(str(e)) from e

    counts = {status: sum(1 for c in cases if c.result.status is status) for status in TestStatus}
    summary = ", ".join(f"{n} {status.value}" for status, n in counts.items() if n)
    console.print(f"[green]Recorded {len(cases)} results[/] ({summary or 'none'})")


@main.command()
@click.option("--format", "-f", "output_format", type=click.Choice(["table", "json"]), default="table")
@click.pass_context
def report(ctx: click.Context, output_format: str) -> None:
    """Generate the test health report and dashboard."""
    config: Config = ctx.obj["config"]
    storage = JsonFileStorage(config.monitor.report_dir)
    result = TestMonitor(storage, config.monitor).generate_report()

    if output_format == "json":
        from pydantic import TypeAdapter

        click.echo(TypeAdapter(MonitoringReport).dump_json(result, indent=2).decode())
        return

    _show_report(result)
    console.print(f"[dim]Dashboard: {storage.dashboard_path}[/]\n")


@main.command()
@click.option("--suite", "-s", help="Path passed to the test command")
@click.option("--interval", type=float, default=5.0, show_default=True, help="Minutes between runs")
@click.option("--iterations", type=int, default=0, help="Stop after this many runs (0 runs forever)")
@click.pass_context
def watch(ctx: click.Context, suite: str | None, interval: float, iterations: int) -> None:
    """Run the suite on an interval, recording results and refreshing the dashboard."""
    config: Config = ctx.obj["config"]
    monitor = TestMonitor(JsonFileStorage(config.monitor.report_dir), config.monitor)
    runner = TestRunner(config)

    console.print(f"[bold blue]Starting test monitoring[/] [dim](interval: {interval:g} minutes)[/]")
    run = 0
    while True:
        run += 1
        _, _, cases = runner.run_tests(Path(suite) if suite else None)
        try:
            for case in cases:
                monitor.record_result(case.result)
        except TestMedicError as e:
            raise click.ClickException(str(e)) from e

        result = monitor.generate_report()
        console.print(f"Run {run}: {len(cases)} results, health score {result.summary.health_score}%")

        if iterations and run >= iterations:
            break
        time.sleep(interval * 60)


def _show_report(result: MonitoringReport) -> None:
    summary = result.summary
    color = "green" if summary.health_score >= 80 else "yellow" if summary.health_score >= 60 else "red"
    console.print(
        Panel(
            f"[bold {color}]{summary.health_score}%[/]\n\n"
            f"Tests: {summary.total_tests}  "
            f"Passing: [green]{summary.passing_tests}[/]  "
            f"Failing: [red]{summary.failing_tests}[/]  "
            f"Flaky: [yellow]{summary.flaky_tests}[/]\n"
            f"Average run time: {summary.average_run_time / 1000:.1f}s",
            title="Test Health",
        )
    )

    if result.metrics:
        table = Table(title="Per-test Metrics")
        table.add_column("Test", style="cyan", max_width=60)
        table.add_column("Runs", justify="right")
        table.add_column("Pass rate", justify="right")
        table.add_column("Avg duration", justify="right")
        table.add_column("Flaky")
        for name, metrics in sorted(result.metrics.items()):
            table.add_row(
                escape(name),
                str(metrics.total_runs),
                f"{metrics.pass_rate:.0f}%",
                f"{metrics.average_duration / 1000:.1f}s",
                "[yellow]yes[/]" if is_flaky(metrics) else "",
            )
        console.print(table)

    if result.critical_issues:
        console.print("\n[bold red]Critical issues:[/]")
        for issue in result.critical_issues:
            console.print(f"  • {escape(issue)}")

    if result.recommendations:
        console.print("\n[bold]Recommendations:[/]")
        for recommendation in result.recommendations:
            console.print(f"  • {escape(recommendation)}")
    console.print()


if __name__ == "__main__":
    main()
