"""Load test plans from YAML/JSON and turn them into scenarios and thresholds."""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from importlib import resources
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from loadgen.core.exceptions import ConfigError
from loadgen.engine.registry import ScenarioRegistry
from loadgen.engine.scenario import ConstantVUs, ExecutorConfig, RampingVUs, Scenario, Stage
from loadgen.metrics.thresholds import Threshold, parse_thresholds
from loadgen.workloads import get_workload

from .models import ConstantVUsModel, PlanModel, ScenarioModel

logger = logging.getLogger(__name__)

DEFAULT_PLAN = "orders.yaml"


def parse_plan(data: Any, source: str = "<plan>") -> PlanModel:
    if not isinstance(data, dict):
        raise ConfigError(f"Plan {source} must be a mapping, got {type(data).__name__}")
    try:
        return PlanModel.model_validate(data)
    except ValidationError as e:
        raise ConfigError(
            f"Invalid plan {source}: {e.error_count()} validation error(s)\n{e}",
            {"source": source, "errors": e.errors(include_url=False)},
        ) from e


def _read(text: str, source: str, as_json: bool) -> Any:
    try:
        if as_json:
            return json.loads(text)
        return yaml.safe_load(text)
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise ConfigError(f"Could not parse plan {source}: {e}", {"source": source}) from e


def load_plan(path: str | Path) -> PlanModel:
    """Read and validate a plan file (``.json`` or YAML)."""
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Could not read plan {path}: {e}", {"source": str(path)}) from e
    data = _read(text, str(path), as_json=path.suffix.lower() == ".json")
    logger.debug("Loaded plan from %s", path)
    return parse_plan(data, str(path))


def default_plan() -> PlanModel:
    """The packaged plan: regular and high-value order scenarios."""
    text = resources.files("loadgen").joinpath("plans", DEFAULT_PLAN).read_text(encoding="utf-8")
    return parse_plan(_read(text, DEFAULT_PLAN, as_json=False), DEFAULT_PLAN)


def _executor_config(model: ScenarioModel) -> ExecutorConfig:
    if isinstance(model, ConstantVUsModel):
        return ConstantVUs(vus=model.vus, duration=model.duration)
    return RampingVUs(
        stages=tuple(Stage(duration=s.duration, target=s.target) for s in model.stages),
        start_vus=model.start_vus,
    )


def build_scenario(name: str, model: ScenarioModel) -> Scenario:
    """Resolve the workload named by ``exec`` (default: the scenario name)."""
    return Scenario(
        name=name,
        executor=_executor_config(model),
        workload=get_workload(model.exec_ or name),
        pacing=model.pacing,
        start_time=model.start_time,
        graceful_stop=model.graceful_stop,
        tags=dict(model.tags),
    )


def build_registry(
    plan: PlanModel,
    *,
    only: Sequence[str] | None = None,
    duration_scale: float = 1.0,
) -> ScenarioRegistry:
    """Build a registry from the plan, optionally restricted to ``only``."""
    if only:
        unknown = sorted(set(only) - set(plan.scenarios))
        if unknown:
            raise ConfigError(
                f"Unknown scenario(s) selected: {', '.join(unknown)}",
                {"scenarios": unknown},
            )

    registry = ScenarioRegistry()
    for name, model in plan.scenarios.items():
        if only and name not in only:
            continue
        scenario = build_scenario(name, model)
        if duration_scale != 1.0:
            scenario = scenario.scaled(duration_scale)
        registry.register(scenario)
    return registry


def build_thresholds(plan: PlanModel, scenario_names: Sequence[str] | None = None) -> list[Threshold]:
    """Parse plan thresholds; those filtered on a deselected scenario are dropped."""
    thresholds = parse_thresholds(plan.thresholds)
    if scenario_names is None:
        return thresholds

    selected = set(scenario_names)
    kept = []
    for threshold in thresholds:
        if threshold.scenario is not None and threshold.scenario in plan.scenarios and threshold.scenario not in selected:
            logger.info("Skipping threshold %s: scenario not selected", threshold)
            continue
        kept.append(threshold)
    return kept
