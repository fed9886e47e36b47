"""Declarative request and check types that workloads are built from."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import httpx

if TYPE_CHECKING:
    from loadgen.engine.virtual_user import VirtualUser


@dataclass(frozen=True)
class Check:
    """A labelled, non-fatal assertion evaluated against a response."""

    label: str
    predicate: Callable[[httpx.Response], bool]


@dataclass(frozen=True)
class RequestSpec:
    """One HTTP request a workload wants sent.

    ``url`` may be absolute or relative to the plan base URL; an empty
    string targets the base URL itself.
    """

    method: str
    url: str = ""
    json: Any = None
    headers: Mapping[str, str] = field(default_factory=dict)
    name: str | None = None
    checks: tuple[Check, ...] = ()

    @property
    def display_name(self) -> str:
        return self.name or f"{self.method.upper()} {self.url or '/'}"


Workload = Callable[["VirtualUser"], Iterable[RequestSpec]]


def status_between(low: int, high: int, label: str) -> Check:
    """Check that passes when ``low <= status < high``."""
    return Check(label=label, predicate=lambda r: low <= r.status_code < high)


def status_2xx(label: str = "status is 2xx") -> Check:
    return status_between(200, 300, label)


def json_has_keys(*keys: str, label: str | None = None) -> Check:
    """Check that the response body is a JSON object containing every key."""

    def predicate(response: httpx.Response) -> bool:
        body = response.json()
        return isinstance(body, dict) and all(key in body for key in keys)

    return Check(label=label or f"body has {', '.join(keys)}", predicate=predicate)
