#!/usr/bin/env python3
"""Load generator CLI.

Usage:
    loadgen run                                   # Packaged order plan
    loadgen run plan.yaml -s regular_orders       # One scenario from a plan
    loadgen run --base-url http://host:8089/api/orders --duration-scale 0.1
    loadgen validate plan.yaml                    # Check a plan without traffic
    loadgen workloads                             # List workloads usable in exec
"""

from __future__ import annotations

import signal
import sys
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import click
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from loadgen.core.exceptions import ConfigError
from loadgen.engine.runner import ExitCode, Runner
from loadgen.harness_logging import setup_logging
from loadgen.http.executor import RequestExecutor
from loadgen.metrics import prometheus_exporter
from loadgen.metrics.aggregator import MetricsAggregator
from loadgen.metrics.thresholds import validate_thresholds
from loadgen.plan import build_registry, build_thresholds, default_plan, format_duration, load_plan
from loadgen.plan.models import PlanModel
from loadgen.report import print_report
from loadgen.settings import Settings, get_settings
from loadgen.workloads import WORKLOAD_REGISTRY

console = Console()


def _load_settings() -> Settings:
    try:
        return get_settings()
    except ValidationError as e:
        console.print(f"[red]Invalid settings: {escape(str(e))}[/red]")
        sys.exit(ExitCode.CONFIG_ERROR)


def _configure_logging(settings: Settings) -> None:
    setup_logging(
        level=settings.log_level,
        json_output=settings.log_format == "json",
        environment=settings.environment,
    )


def _read_plan(plan_file: Path | None) -> PlanModel:
    return load_plan(plan_file) if plan_file is not None else default_plan()


@contextmanager
def _cancel_on_signals(runner: Runner) -> Iterator[None]:
    """SIGINT/SIGTERM cancel the run; a second signal forces it."""
    if threading.current_thread() is not threading.main_thread():
        yield
        return

    def shutdown_handler(signum: int, frame: object) -> None:
        sig_name = signal.Signals(signum).name
        if runner.cancelled:
            console.print(f"\n[red]Received {sig_name} again, aborting in-flight requests[/red]")
            runner.cancel(force=True)
        else:
            console.print(f"\n[yellow]Received {sig_name}, draining (repeat to abort)[/yellow]")
            runner.cancel()

    previous = {sig: signal.getsignal(sig) for sig in (signal.SIGINT, signal.SIGTERM)}
    for sig in previous:
        signal.signal(sig, shutdown_handler)
    try:
        yield
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)


@click.group()
def cli() -> None:
    """HTTP load generator with k6-style scenarios and thresholds."""
    pass


@cli.command()
@click.argument(
    "plan_file",
    required=False,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option("--base-url", default=None, help="Target URL; overrides plan and settings.")
@click.option(
    "--scenario",
    "-s",
    "scenarios",
    multiple=True,
    help="Scenario(s) to run. Omit to run every scenario in the plan. Repeatable.",
)
@click.option(
    "--grace-period",
    type=click.FloatRange(min=0),
    default=None,
    help="Seconds in-flight requests may take after a scenario ends.",
)
@click.option(
    "--duration-scale",
    type=click.FloatRange(min=0, min_open=True),
    default=None,
    help="Multiply every scenario duration (e.g. 0.1 for a smoke run).",
)
def run(
    plan_file: Path | None,
    base_url: str | None,
    scenarios: tuple[str, ...],
    grace_period: float | None,
    duration_scale: float | None,
) -> None:
    """Run a test plan (the packaged order plan when PLAN_FILE is omitted).

    \b
    Exit codes:
      0  every threshold passed
      1  a threshold failed
      2  configuration error
      3  startup error
      4  interrupted, thresholds passed
    """
    settings = _load_settings()
    _configure_logging(settings)

    try:
        plan = _read_plan(plan_file)
        registry = build_registry(
            plan,
            only=scenarios or None,
            duration_scale=duration_scale or settings.run.duration_scale,
        )
        thresholds = build_thresholds(plan, registry.names())
        target = base_url or plan.base_url or settings.http.base_url
        if not target.startswith(("http://", "https://")):
            raise ConfigError(f"Base URL must start with http:// or https://, got {target!r}")

        aggregator = MetricsAggregator()
        executor = RequestExecutor.from_settings(
            aggregator, settings.http, base_url=target, headers=plan.headers
        )
        runner = Runner(
            registry,
            thresholds,
            aggregator,
            executor,
            grace_period=grace_period if grace_period is not None else settings.run.grace_period_seconds,
            tick=settings.run.tick_seconds,
        )
    except ConfigError as e:
        console.print(f"[red]Configuration error: {escape(e.message)}[/red]")
        sys.exit(ExitCode.CONFIG_ERROR)

    if settings.metrics.enabled:
        try:
            prometheus_exporter.start_metrics_server(settings.metrics.port)
        except OSError as e:
            console.print(f"[red]Startup error: metrics port {settings.metrics.port}: {escape(str(e))}[/red]")
            sys.exit(ExitCode.STARTUP_ERROR)
        aggregator.add_listener(prometheus_exporter.observe_sample)

    console.print(f"[bold]Target: {executor.base_url}[/bold]")
    console.print(f"Scenarios: {', '.join(registry.names())}\n")

    try:
        with _cancel_on_signals(runner):
            result = runner.run()
    except ConfigError as e:
        console.print(f"[red]Configuration error: {escape(e.message)}[/red]")
        sys.exit(ExitCode.CONFIG_ERROR)

    print_report(result, console)
    sys.exit(int(result.exit_code))


@cli.command()
@click.argument("plan_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def validate(plan_file: Path) -> None:
    """Validate a plan file without sending traffic."""
    try:
        plan = load_plan(plan_file)
        registry = build_registry(plan)
        registry.validate()
        thresholds = build_thresholds(plan)
        validate_thresholds(thresholds, registry.names())
    except ConfigError as e:
        console.print(f"[red]Invalid plan: {escape(e.message)}[/red]")
        sys.exit(ExitCode.CONFIG_ERROR)

    table = Table(title=f"Plan {plan_file.name}")
    table.add_column("Scenario", style="cyan")
    table.add_column("Executor")
    table.add_column("VUs", justify="right")
    table.add_column("Duration", justify="right")
    table.add_column("Start", justify="right")
    table.add_column("Pacing", justify="right")
    for scenario in registry:
        table.add_row(
            scenario.name,
            scenario.executor_kind.value,
            str(scenario.concurrency),
            format_duration(scenario.duration),
            format_duration(scenario.start_time),
            format_duration(scenario.pacing),
        )
    console.print(table)
    console.print(f"[green]{len(registry)} scenarios, {len(thresholds)} thresholds: OK[/green]")


@cli.command()
def workloads() -> None:
    """List workloads that scenarios can reference through exec."""
    table = Table(title="Workloads")
    table.add_column("Name", style="cyan")
    for name in sorted(WORKLOAD_REGISTRY):
        table.add_row(name)
    console.print(table)


if __name__ == "__main__":
    cli()
