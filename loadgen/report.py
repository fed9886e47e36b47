"""Console report for a finished run."""

from __future__ import annotations

from collections.abc import Mapping

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from loadgen.engine.runner import RunResult, Verdict
from loadgen.metrics.aggregator import AggregateSnapshot, ScenarioStats
from loadgen.metrics.thresholds import Threshold, ThresholdResult
from loadgen.plan.durations import format_duration

LATENCY_COLUMNS: tuple[tuple[str, float | None], ...] = (
    ("avg", None),
    ("p50", 50),
    ("p90", 90),
    ("p95", 95),
    ("p99", 99),
)


def _ms(value: float | None) -> str:
    return "-" if value is None else f"{value:.1f}"


def _pct(value: float | None) -> str:
    return "-" if value is None else f"{value * 100:.2f}%"


def _scenario_row(stats: ScenarioStats) -> list[str]:
    latencies = [
        _ms(stats.avg if p is None else stats.percentile(p)) for _, p in LATENCY_COLUMNS
    ]
    return [
        str(stats.requests),
        str(stats.successes),
        str(stats.failures),
        str(stats.aborts),
        _pct(stats.failure_rate),
        str(stats.iterations),
        *latencies,
        _ms(stats.max),
    ]


def build_scenario_table(snapshot: AggregateSnapshot) -> Table:
    table = Table(title=f"Requests ({format_duration(snapshot.elapsed_seconds)})")
    table.add_column("Scenario", style="cyan")
    for column in ("Requests", "OK", "Failed", "Aborted", "Fail rate", "Iterations"):
        table.add_column(column, justify="right")
    for label, _ in LATENCY_COLUMNS:
        table.add_column(f"{label} (ms)", justify="right")
    table.add_column("max (ms)", justify="right")

    for name, stats in snapshot.scenarios.items():
        table.add_row(name, *_scenario_row(stats))
    if len(snapshot.scenarios) > 1:
        table.add_row("[bold]total[/bold]", *_scenario_row(snapshot.total))
    return table


def build_checks_table(snapshot: AggregateSnapshot) -> Table | None:
    rows = [
        (scenario, label, check)
        for scenario, stats in snapshot.scenarios.items()
        for label, check in stats.checks.items()
    ]
    if not rows:
        return None

    table = Table(title="Checks")
    table.add_column("Scenario", style="cyan")
    table.add_column("Check")
    table.add_column("Passed", justify="right")
    table.add_column("Failed", justify="right")
    table.add_column("Pass rate", justify="right")
    for scenario, label, check in rows:
        style = "green" if check.fails == 0 else "red"
        table.add_row(
            scenario,
            label,
            str(check.passes),
            str(check.fails),
            f"[{style}]{_pct(check.pass_rate)}[/{style}]",
        )
    return table


def _observed(result: ThresholdResult) -> str:
    if result.observed is None:
        return "no data"
    if result.threshold.metric in ("http_req_failed", "checks"):
        return _pct(result.observed)
    return f"{result.observed:.4g}"


def build_thresholds_table(results: Mapping[Threshold, ThresholdResult]) -> Table | None:
    if not results:
        return None

    table = Table(title="Thresholds")
    table.add_column("Metric", style="cyan")
    table.add_column("Expression")
    table.add_column("Observed", justify="right")
    table.add_column("Result")
    for threshold, result in results.items():
        table.add_row(
            threshold.key,
            threshold.expression,
            _observed(result),
            "[green]PASS[/green]" if result.passed else "[red]FAIL[/red]",
        )
    return table


def print_report(result: RunResult, console: Console) -> None:
    """Print per-scenario counts, latencies, checks, thresholds and the verdict."""
    console.print(build_scenario_table(result.snapshot))
    for table in (
        build_checks_table(result.snapshot),
        build_thresholds_table(result.threshold_results),
    ):
        if table is not None:
            console.print()
            console.print(table)

    console.print()
    for error in result.errors:
        console.print(f"[red]{type(error).__name__}: {escape(error.message)}[/red]")
    if result.interrupted:
        console.print("[yellow]Run interrupted before all scenarios finished[/yellow]")
    if result.verdict is Verdict.PASS:
        console.print("[bold green]Verdict: PASS[/bold green]")
    else:
        console.print(f"[bold red]Verdict: FAIL[/bold red] (exit code {int(result.exit_code)})")
