"""Tests for plan loading and conversion into scenarios."""

import json

import pytest

from loadgen.core.exceptions import ConfigError
from loadgen.engine.scenario import ExecutorKind
from loadgen.plan import (
    build_registry,
    build_thresholds,
    default_plan,
    load_plan,
    parse_plan,
)
from loadgen.workloads import high_value_orders, regular_orders

PLAN_YAML = """
base_url: http://orders.test/api/orders/
headers:
  Content-Type: application/json
scenarios:
  regular_orders:
    executor: constant-vus
    vus: 10
    duration: 1m
    pacing: 1s
  premium:
    executor: ramping-vus
    exec: high_value_orders
    startVUs: 1
    startTime: 30s
    gracefulStop: 5s
    stages:
      - duration: 30s
        target: 5
      - duration: 10s
        target: 0
thresholds:
  http_req_failed: rate<0.01
  http_req_duration{scenario:premium}:
    - p(95)<500
"""


def _plan_dict(**overrides):
    data = {
        "scenarios": {
            "regular_orders": {"executor": "constant-vus", "vus": 2, "duration": "10s"},
        }
    }
    data.update(overrides)
    return data


@pytest.fixture
def plan_file(tmp_path):
    path = tmp_path / "plan.yaml"
    path.write_text(PLAN_YAML)
    return path


@pytest.mark.unit
class TestLoadPlan:
    """Tests for reading plan files."""

    def test_yaml_plan(self, plan_file):
        plan = load_plan(plan_file)

        assert plan.base_url == "http://orders.test/api/orders"
        assert plan.headers == {"Content-Type": "application/json"}
        assert set(plan.scenarios) == {"regular_orders", "premium"}
        regular = plan.scenarios["regular_orders"]
        assert (regular.vus, regular.duration, regular.pacing) == (10, 60.0, 1.0)
        premium = plan.scenarios["premium"]
        assert premium.start_vus == 1
        assert premium.start_time == 30.0
        assert premium.graceful_stop == 5.0
        assert premium.exec_ == "high_value_orders"
        assert plan.thresholds["http_req_failed"] == ["rate<0.01"]

    def test_json_plan(self, tmp_path):
        path = tmp_path / "plan.json"
        path.write_text(json.dumps(_plan_dict()))

        assert load_plan(path).scenarios["regular_orders"].vus == 2

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="Could not read"):
            load_plan(tmp_path / "missing.yaml")

    def test_malformed_yaml(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("scenarios: [unclosed")

        with pytest.raises(ConfigError, match="Could not parse"):
            load_plan(path)

    def test_packaged_default_plan(self):
        plan = default_plan()

        assert set(plan.scenarios) == {"regular_orders", "high_value_orders"}
        assert plan.scenarios["regular_orders"].vus == 10
        assert plan.scenarios["high_value_orders"].vus == 5
        assert plan.scenarios["regular_orders"].duration == 60.0
        assert plan.thresholds == {
            "http_req_failed": ["rate<0.01"],
            "http_req_duration": ["p(95)<500"],
        }


@pytest.mark.unit
@pytest.mark.critical
class TestPlanValidation:
    """Invalid plans surface as ConfigError."""

    @pytest.mark.parametrize(
        "data",
        [
            {},
            {"scenarios": {}},
            _plan_dict(scenarios={"a": {"executor": "constant-vus", "vus": 0, "duration": "1s"}}),
            _plan_dict(scenarios={"a": {"executor": "constant-vus", "vus": 1}}),
            _plan_dict(scenarios={"a": {"executor": "shared-iterations", "vus": 1, "duration": "1s"}}),
            _plan_dict(scenarios={"a": {"executor": "ramping-vus", "stages": []}}),
            _plan_dict(scenarios={"a": {"executor": "constant-vus", "vus": 1, "duration": "soon"}}),
            _plan_dict(base_url="orders.test"),
            _plan_dict(unknown_key=True),
        ],
    )
    def test_invalid_plans(self, data):
        with pytest.raises(ConfigError):
            parse_plan(data)

    def test_non_mapping(self):
        with pytest.raises(ConfigError, match="must be a mapping"):
            parse_plan(["scenarios"])

    def test_error_details_carry_validation_errors(self):
        with pytest.raises(ConfigError) as exc_info:
            parse_plan(_plan_dict(scenarios={"a": {"executor": "constant-vus", "vus": 0, "duration": "1s"}}))

        assert exc_info.value.details["errors"]


@pytest.mark.unit
class TestBuildRegistry:
    """Tests for turning plans into scenarios."""

    def test_scenarios_built(self, plan_file):
        registry = build_registry(load_plan(plan_file))

        assert registry.names() == ("regular_orders", "premium")
        regular = registry.get("regular_orders")
        assert regular.workload is regular_orders
        assert regular.executor_kind is ExecutorKind.CONSTANT_VUS
        premium = registry.get("premium")
        assert premium.workload is high_value_orders
        assert premium.concurrency == 5
        assert premium.duration == 40.0
        assert premium.start_time == 30.0

    def test_only_selected(self, plan_file):
        registry = build_registry(load_plan(plan_file), only=["premium"])
        assert registry.names() == ("premium",)

    def test_unknown_selection(self, plan_file):
        with pytest.raises(ConfigError, match="ghost"):
            build_registry(load_plan(plan_file), only=["ghost"])

    def test_duration_scale(self, plan_file):
        registry = build_registry(load_plan(plan_file), duration_scale=0.1)

        assert registry.get("regular_orders").duration == pytest.approx(6.0)
        assert registry.get("regular_orders").pacing == 1.0

    def test_unknown_workload(self):
        plan = parse_plan(_plan_dict(scenarios={"browse": {"executor": "constant-vus", "vus": 1, "duration": "1s"}}))

        with pytest.raises(ConfigError, match="Unknown workload"):
            build_registry(plan)


@pytest.mark.unit
class TestBuildThresholds:
    """Tests for plan thresholds."""

    def test_all_thresholds(self, plan_file):
        thresholds = build_thresholds(load_plan(plan_file))
        assert [str(t) for t in thresholds] == [
            "http_req_failed: rate<0.01",
            "http_req_duration{scenario:premium}: p(95)<500",
        ]

    def test_deselected_scenario_thresholds_dropped(self, plan_file):
        thresholds = build_thresholds(load_plan(plan_file), ["regular_orders"])
        assert [t.metric for t in thresholds] == ["http_req_failed"]

    def test_invalid_expression(self):
        plan = parse_plan(_plan_dict(thresholds={"http_req_failed": ["rate<<1"]}))
        with pytest.raises(ConfigError):
            build_thresholds(plan)
