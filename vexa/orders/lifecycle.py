from typing import Dict, FrozenSet
from vexa.common.custom_exceptions import InvalidStateError
from vexa.schema.full_schema import OrderStatus

# Forward-only lifecycle. CANCELLED is reachable while nothing has happened yet,
# REFUNDED from anywhere the customer may have paid; both are terminal.
ALLOWED_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PROCESSING, OrderStatus.CANCELLED, OrderStatus.REFUNDED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.SHIPPED, OrderStatus.REFUNDED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED, OrderStatus.REFUNDED}),
    OrderStatus.DELIVERED: frozenset({OrderStatus.REFUNDED}),
    OrderStatus.CANCELLED: frozenset(),
    OrderStatus.REFUNDED: frozenset(),
}


def can_transition(current, target) -> bool:
    return OrderStatus(target) in ALLOWED_TRANSITIONS[OrderStatus(current)]


def ensure_transition(current, target) -> None:
    if not can_transition(current, target):
        raise InvalidStateError(
            f"Cannot move order from {OrderStatus(current).value} to {OrderStatus(target).value}",
            {"from": OrderStatus(current).value, "to": OrderStatus(target).value},
        )
