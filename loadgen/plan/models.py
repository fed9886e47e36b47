"""Pydantic models for k6-shaped test plan files."""

from typing import Annotated, Literal

from pydantic import AliasChoices, BaseModel, BeforeValidator, ConfigDict, Field, field_validator

from .durations import parse_duration

Duration = Annotated[float, BeforeValidator(parse_duration), Field(ge=0.0)]


class StageModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    duration: Duration
    target: int = Field(ge=0)


class _ScenarioModel(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    exec_: str | None = Field(default=None, alias="exec")
    pacing: Duration = 1.0
    start_time: Duration = Field(
        default=0.0, validation_alias=AliasChoices("start_time", "startTime")
    )
    graceful_stop: Duration | None = Field(
        default=None, validation_alias=AliasChoices("graceful_stop", "gracefulStop")
    )
    tags: dict[str, str] = Field(default_factory=dict)


class ConstantVUsModel(_ScenarioModel):
    executor: Literal["constant-vus"]
    vus: int = Field(gt=0)
    duration: Duration


class RampingVUsModel(_ScenarioModel):
    executor: Literal["ramping-vus"]
    start_vus: int = Field(default=0, ge=0, validation_alias=AliasChoices("start_vus", "startVUs"))
    stages: list[StageModel] = Field(min_length=1)


ScenarioModel = Annotated[ConstantVUsModel | RampingVUsModel, Field(discriminator="executor")]


class PlanModel(BaseModel):
    """A whole test plan: target, scenarios and thresholds."""

    model_config = ConfigDict(extra="forbid")

    base_url: str | None = None
    headers: dict[str, str] = Field(default_factory=dict)
    scenarios: dict[str, ScenarioModel] = Field(min_length=1)
    thresholds: dict[str, list[str]] = Field(default_factory=dict)

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str | None) -> str | None:
        if v is None:
            return v
        if not v.startswith(("http://", "https://")):
            raise ValueError("base_url must start with http:// or https://")
        return v.rstrip("/")

    @field_validator("thresholds", mode="before")
    @classmethod
    def wrap_single_expression(cls, v: object) -> object:
        if isinstance(v, dict):
            return {key: [exprs] if isinstance(exprs, str) else exprs for key, exprs in v.items()}
        return v
