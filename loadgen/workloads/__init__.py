"""Named workloads that test plans refer to through ``exec``."""

from loadgen.core.exceptions import ConfigError

from .base import Check, RequestSpec, Workload, json_has_keys, status_2xx, status_between
from .orders import high_value_orders, regular_orders

WORKLOAD_REGISTRY: dict[str, Workload] = {
    "regular_orders": regular_orders,
    "high_value_orders": high_value_orders,
}


def get_workload(name: str) -> Workload:
    """Look up a workload by name."""
    try:
        return WORKLOAD_REGISTRY[name]
    except KeyError:
        known = ", ".join(sorted(WORKLOAD_REGISTRY))
        raise ConfigError(
            f"Unknown workload {name!r} (known: {known})", {"workload": name}
        ) from None


__all__ = [
    "WORKLOAD_REGISTRY",
    "Check",
    "RequestSpec",
    "Workload",
    "get_workload",
    "high_value_orders",
    "json_has_keys",
    "regular_orders",
    "status_2xx",
    "status_between",
]
