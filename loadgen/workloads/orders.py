"""Order-ingestion workloads: regular and high-value orders.

Both post a single order to the base URL and check for a 2xx answer. The
amounts sit on either side of the service's 100.00 high-value cut-off; the
harness does not verify how the service classifies them.
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import TYPE_CHECKING

from .base import RequestSpec, Workload, status_2xx

if TYPE_CHECKING:
    from loadgen.engine.virtual_user import VirtualUser

HIGH_VALUE_CUTOFF = 100.00


def order_payload(
    vu: VirtualUser, product_id: str, quantity: int, total_amount: float
) -> dict[str, object]:
    return {
        "customerId": f"customer-{vu.id}",
        "productId": product_id,
        "quantity": quantity,
        "totalAmount": total_amount,
    }


def order_workload(
    *,
    product_id: str,
    quantity: int,
    total_amount: float,
    check_label: str,
    request_name: str = "POST /api/orders",
) -> Workload:
    """Build a workload that places one order per iteration."""

    def workload(vu: VirtualUser) -> Iterator[RequestSpec]:
        yield RequestSpec(
            method="POST",
            json=order_payload(vu, product_id, quantity, total_amount),
            name=request_name,
            checks=(status_2xx(check_label),),
        )

    return workload


regular_orders = order_workload(
    product_id="product-regular",
    quantity=1,
    total_amount=80.00,
    check_label="regular order status is 2xx",
)

high_value_orders = order_workload(
    product_id="product-premium",
    quantity=2,
    total_amount=150.00,
    check_label="high value order status is 2xx",
)
