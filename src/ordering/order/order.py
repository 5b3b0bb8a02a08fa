"""Order aggregate: an order header and the line items it exclusively owns.

Items snapshot the product's name and unit price at the time of ordering, so
later catalog edits never alter historical orders. The total is computed once
when the order is placed. After placement only ``status`` and ``updated_at``
change; items are never edited or removed.
"""

from datetime import UTC, datetime

from protean import Index
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, Integer, String

from ordering.domain import ordering
from ordering.order.status import (
    OrderStatus,
    assert_can_cancel,
    assert_can_transition,
    parse_status,
)


@ordering.entity(part_of="Order", indexes=[Index("order_id", "product_id", unique=True)])
class OrderItem:
    product_id = Identifier(required=True)
    product_name = String(required=True, max_length=255)
    unit_price = Float(required=True, min_value=0.0)
    quantity = Integer(required=True, min_value=1)
    line_number = Integer(min_value=1)
    created_at = DateTime()

    @property
    def subtotal(self):
        return self.unit_price * self.quantity


@ordering.aggregate
class Order:
    user_id = Identifier(required=True)
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    total_amount = Float(default=0.0, min_value=0.0)
    items = HasMany(OrderItem)
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def place(cls, user_id, lines):
        """Build a Pending order from ``(product_id, product_name, unit_price, quantity)`` lines.

        Lines keep their input order. The total is fixed here from the snapshot
        prices and never recomputed from the live catalog.
        """
        lines = list(lines)
        if not lines:
            raise ValidationError({"items": ["An order must contain at least one item"]})

        now = datetime.now(UTC)
        items = [
            OrderItem(
                product_id=product_id,
                product_name=product_name,
                unit_price=unit_price,
                quantity=quantity,
                line_number=position,
                created_at=now,
            )
            for position, (product_id, product_name, unit_price, quantity) in enumerate(lines, start=1)
        ]

        return cls(
            user_id=user_id,
            status=OrderStatus.PENDING.value,
            total_amount=sum(item.subtotal for item in items),
            items=items,
            created_at=now,
            updated_at=now,
        )

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def current_status(self) -> OrderStatus:
        return OrderStatus(self.status)

    @property
    def ordered_items(self):
        """Items in the order they were requested."""
        return sorted(self.items, key=lambda item: item.line_number or 0)

    # -------------------------------------------------------------------
    # Status changes
    # -------------------------------------------------------------------
    def change_status(self, new_status):
        """Move to ``new_status`` if the status machine allows it from the current one."""
        target = parse_status(new_status)
        assert_can_transition(self.current_status, target)
        self.record_status(target)

    def cancel(self):
        assert_can_cancel(self.current_status)
        self.record_status(OrderStatus.CANCELLED)

    def record_status(self, status: OrderStatus):
        """Write ``status`` without consulting the status machine; callers validate first."""
        self.status = status.value
        self.updated_at = datetime.now(UTC)
