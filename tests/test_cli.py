"""Tests for the command-line interface."""

import logging

import httpx
import pytest
from click.testing import CliRunner

from loadgen.cli import cli
from loadgen.engine.runner import ExitCode
from loadgen.http.executor import RequestExecutor

SMOKE_PLAN = """
base_url: http://orders.test/api/orders
scenarios:
  regular_orders:
    executor: constant-vus
    vus: 2
    duration: 200ms
    pacing: 50ms
  high_value_orders:
    executor: constant-vus
    vus: 1
    duration: 200ms
    pacing: 50ms
thresholds:
  http_req_failed: rate<0.01
  http_req_duration: p(95)<500
"""


@pytest.fixture(autouse=True)
def restore_root_logger():
    """run reconfigures the root logger onto CliRunner's captured stdout."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def plan_file(tmp_path):
    path = tmp_path / "smoke.yaml"
    path.write_text(SMOKE_PLAN)
    return path


@pytest.fixture
def target(monkeypatch):
    """Route every VU client to an in-process handler and record the URLs hit."""
    state = {"status": 201, "urls": []}

    def handler(request):
        state["urls"].append(str(request.url))
        return httpx.Response(state["status"])

    def create_client(self):
        return httpx.Client(transport=httpx.MockTransport(handler))

    monkeypatch.setattr(RequestExecutor, "create_client", create_client)
    monkeypatch.setenv("LOADGEN_RUN_TICK_SECONDS", "0.01")
    monkeypatch.setenv("LOADGEN_RUN_GRACE_PERIOD_SECONDS", "1")
    return state


@pytest.mark.unit
class TestWorkloadsCommand:
    def test_lists_workloads(self, runner):
        result = runner.invoke(cli, ["workloads"])

        assert result.exit_code == 0
        assert "regular_orders" in result.output
        assert "high_value_orders" in result.output


@pytest.mark.unit
class TestValidateCommand:
    def test_valid_plan(self, runner, plan_file):
        result = runner.invoke(cli, ["validate", str(plan_file)])

        assert result.exit_code == 0
        assert "2 scenarios, 2 thresholds: OK" in result.output

    def test_invalid_plan(self, runner, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("scenarios:\n  a:\n    executor: constant-vus\n    vus: 0\n    duration: 1s\n")

        result = runner.invoke(cli, ["validate", str(path)])

        assert result.exit_code == ExitCode.CONFIG_ERROR
        assert "Invalid plan" in result.output

    def test_threshold_on_unknown_scenario(self, runner, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text(
            SMOKE_PLAN + "  http_req_duration{scenario:ghost}: p(95)<500\n"
        )

        result = runner.invoke(cli, ["validate", str(path)])

        assert result.exit_code == ExitCode.CONFIG_ERROR
        assert "ghost" in result.output


@pytest.mark.unit
@pytest.mark.slow
class TestRunCommand:
    def test_passing_run(self, runner, plan_file, target):
        result = runner.invoke(cli, ["run", str(plan_file)])

        assert result.exit_code == ExitCode.PASSED, result.output
        assert "Verdict: PASS" in result.output
        assert target["urls"]
        assert set(target["urls"]) == {"http://orders.test/api/orders"}

    def test_failing_threshold_exit_code(self, runner, plan_file, target):
        target["status"] = 500

        result = runner.invoke(cli, ["run", str(plan_file)])

        assert result.exit_code == ExitCode.THRESHOLD_FAILED
        assert "Verdict: FAIL" in result.output

    def test_base_url_option_overrides_plan(self, runner, plan_file, target):
        result = runner.invoke(
            cli, ["run", str(plan_file), "--base-url", "http://staging.test/api/orders", "-s", "regular_orders"]
        )

        assert result.exit_code == ExitCode.PASSED, result.output
        assert set(target["urls"]) == {"http://staging.test/api/orders"}

    def test_unknown_scenario_is_config_error(self, runner, plan_file, target):
        result = runner.invoke(cli, ["run", str(plan_file), "-s", "ghost"])

        assert result.exit_code == ExitCode.CONFIG_ERROR
        assert not target["urls"]

    def test_invalid_base_url(self, runner, plan_file, target):
        result = runner.invoke(cli, ["run", str(plan_file), "--base-url", "orders.test"])

        assert result.exit_code == ExitCode.CONFIG_ERROR
        assert not target["urls"]

    def test_invalid_settings(self, runner, plan_file, target, monkeypatch):
        monkeypatch.setenv("LOADGEN_LOG_LEVEL", "VERBOSE")

        result = runner.invoke(cli, ["run", str(plan_file)])

        assert result.exit_code == ExitCode.CONFIG_ERROR
