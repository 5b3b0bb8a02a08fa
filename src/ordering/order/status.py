"""Order status machine.

    Pending → Processing → Shipped → Delivered
    Pending → Cancelled

Delivered and Cancelled are terminal. Only a Pending order may be cancelled.
"""

from enum import Enum

from protean.exceptions import ValidationError

CANCEL_REJECTED_MESSAGE = (
    "You cannot cancel this order again since it has already been processed. Please contact admin"
)


class OrderStatus(Enum):
    PENDING = "Pending"
    PROCESSING = "Processing"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"


_VALID_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: set(),
    OrderStatus.CANCELLED: set(),
}

# Every status needs a row, so adding one forces the graph to be revisited.
_unmapped = set(OrderStatus) - set(_VALID_TRANSITIONS)
if _unmapped:
    raise RuntimeError(f"Order statuses missing from the transition graph: {sorted(s.value for s in _unmapped)}")

_BY_NAME = {status.value.lower(): status for status in OrderStatus}


def parse_status(value) -> OrderStatus:
    """Resolve a caller-supplied status string to an ``OrderStatus``."""
    if isinstance(value, OrderStatus):
        return value
    status = _BY_NAME.get(str(value).strip().lower()) if value is not None else None
    if status is None:
        raise ValidationError({"status": [f"invalid status specified: {value}"]})
    return status


def allowed_transitions(current: OrderStatus) -> frozenset[OrderStatus]:
    return frozenset(_VALID_TRANSITIONS[current])


def is_terminal(status: OrderStatus) -> bool:
    return not _VALID_TRANSITIONS[status]


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    return target in _VALID_TRANSITIONS[current]


def assert_can_transition(current: OrderStatus, target: OrderStatus) -> None:
    """Raise ``ValidationError`` unless ``current`` may move to ``target``."""
    if target == OrderStatus.CANCELLED and current != OrderStatus.CANCELLED:
        assert_can_cancel(current)
        return
    if not can_transition(current, target):
        raise ValidationError({"status": [f"Cannot transition from {current.value} to {target.value}"]})


def can_cancel(current: OrderStatus) -> bool:
    return current == OrderStatus.PENDING


def assert_can_cancel(current: OrderStatus) -> None:
    if not can_cancel(current):
        raise ValidationError({"status": [CANCEL_REJECTED_MESSAGE]})
