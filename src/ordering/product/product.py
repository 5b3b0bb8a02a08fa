"""Product: the catalog record orders are placed against.

Orders read a product's name and price as a snapshot and withdraw from its
stock. Only active, non-deleted products can be ordered; the catalog itself
(editing names, prices and descriptions) is managed outside this context.
"""

from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, Integer, String, Text

from ordering.domain import ordering
from ordering.errors import InsufficientStockError


class ProductStatus(Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    OUT_OF_STOCK = "out_of_stock"


@ordering.aggregate
class Product:
    name = String(required=True, max_length=255)
    description = Text()
    price = Float(required=True, min_value=0.0)
    quantity = Integer(default=0, min_value=0)
    status = String(choices=ProductStatus, default=ProductStatus.ACTIVE.value)
    deleted_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def create(cls, name, price, quantity=0, description=None, status=ProductStatus.ACTIVE.value):
        now = datetime.now(UTC)
        return cls(
            name=name,
            description=description,
            price=price,
            quantity=quantity,
            status=status,
            created_at=now,
            updated_at=now,
        )

    @property
    def is_orderable(self) -> bool:
        return self.status == ProductStatus.ACTIVE.value and self.deleted_at is None

    def ensure_available(self, quantity):
        """Raise ``InsufficientStockError`` when ``quantity`` exceeds stock on hand."""
        if quantity > self.quantity:
            raise InsufficientStockError(self.name, quantity, self.quantity)

    def withdraw_stock(self, quantity):
        """Conditionally decrement stock: fails instead of going negative."""
        if quantity < 1:
            raise ValidationError({"quantity": ["Quantity to withdraw must be at least 1"]})
        self.ensure_available(quantity)
        if not self.is_orderable:
            raise ValidationError({"product_id": [f"Product '{self.name}' is not available for ordering"]})

        self.quantity -= quantity
        self.updated_at = datetime.now(UTC)

    def restock(self, quantity):
        if quantity < 1:
            raise ValidationError({"quantity": ["Quantity to restock must be at least 1"]})
        self.quantity += quantity
        if self.status == ProductStatus.OUT_OF_STOCK.value:
            self.status = ProductStatus.ACTIVE.value
        self.updated_at = datetime.now(UTC)

    def mark_out_of_stock(self):
        self.status = ProductStatus.OUT_OF_STOCK.value
        self.updated_at = datetime.now(UTC)

    def deactivate(self):
        self.status = ProductStatus.INACTIVE.value
        self.updated_at = datetime.now(UTC)

    def soft_delete(self):
        now = datetime.now(UTC)
        self.deleted_at = now
        self.updated_at = now
