"""Scenario model, virtual-user pools and the run state machine."""

from .clock import Clock, MonotonicClock, RunClock, ScenarioWindow
from .pool import VirtualUserPool
from .registry import ScenarioRegistry
from .runner import ExitCode, Runner, RunResult, RunState, Verdict
from .scenario import ConstantVUs, ExecutorConfig, ExecutorKind, RampingVUs, Scenario, Stage
from .virtual_user import VirtualUser

__all__ = [
    "Clock",
    "ConstantVUs",
    "ExecutorConfig",
    "ExecutorKind",
    "ExitCode",
    "MonotonicClock",
    "RampingVUs",
    "RunClock",
    "RunResult",
    "RunState",
    "Runner",
    "Scenario",
    "ScenarioRegistry",
    "ScenarioWindow",
    "Stage",
    "Verdict",
    "VirtualUser",
    "VirtualUserPool",
]
