"""Test plan files: parsing, validation and conversion to scenarios."""

from .durations import format_duration, parse_duration
from .loader import (
    DEFAULT_PLAN,
    build_registry,
    build_scenario,
    build_thresholds,
    default_plan,
    load_plan,
    parse_plan,
)
from .models import ConstantVUsModel, PlanModel, RampingVUsModel, StageModel

__all__ = [
    "DEFAULT_PLAN",
    "ConstantVUsModel",
    "PlanModel",
    "RampingVUsModel",
    "StageModel",
    "build_registry",
    "build_scenario",
    "build_thresholds",
    "default_plan",
    "format_duration",
    "load_plan",
    "parse_duration",
    "parse_plan",
]
