"""In-memory Order Store for tests and local experiments.

Keeps order headers and item rows in separate tables, the way a relational
store would, and answers reads by joining them. Writes are staged and only
published once every row has been accepted, so a rejected item leaves no
orphan header behind.
"""

import threading
from datetime import UTC, datetime

import structlog
from protean.exceptions import ObjectNotFoundError

from ordering.context import ensure_context
from ordering.errors import ConflictingDataError
from ordering.order.order import Order, OrderItem
from ordering.order.status import OrderStatus, parse_status
from ordering.order.store import OrderStore

logger = structlog.get_logger(__name__)


class InMemoryOrderStore(OrderStore):
    """Dict-backed store. Pass a ``FakeCatalogGateway`` to withdraw stock on create."""

    def __init__(self, catalog=None) -> None:
        self.catalog = catalog
        self.headers: dict[str, dict] = {}
        self.item_rows: list[dict] = []
        self.fail_item_insert: bool = False
        self._lock = threading.RLock()

    # -------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------
    def create_order(self, order: Order, ctx=None) -> Order:
        ctx = ensure_context(ctx)
        ctx.check()

        with self._lock:
            header = {
                "id": str(order.id),
                "user_id": str(order.user_id),
                "status": order.status,
                "total_amount": order.total_amount,
                "created_at": order.created_at,
                "updated_at": order.updated_at,
            }
            if header["id"] in self.headers:
                raise ConflictingDataError(f"order {header['id']} already exists")

            staged_items = self._stage_items(order)
            if self.catalog is not None:
                self._withdraw_stock(staged_items)

            ctx.check()
            self.headers[header["id"]] = header
            self.item_rows.extend(staged_items)

        logger.debug("order.created", order_id=header["id"], items=len(staged_items))
        return order

    def _stage_items(self, order: Order) -> list[dict]:
        if self.fail_item_insert:
            raise ConflictingDataError("simulated constraint violation on item insert")

        taken = {(row["order_id"], row["product_id"]) for row in self.item_rows}
        staged = []
        for item in order.ordered_items:
            key = (str(order.id), str(item.product_id))
            if key in taken:
                raise ConflictingDataError(
                    f"duplicate item for product {item.product_id} in order {order.id}",
                    extra_info={"order_id": str(order.id), "product_id": str(item.product_id)},
                )
            taken.add(key)
            staged.append(
                {
                    "id": str(item.id),
                    "order_id": str(order.id),
                    "product_id": str(item.product_id),
                    "product_name": item.product_name,
                    "unit_price": item.unit_price,
                    "quantity": item.quantity,
                    "line_number": item.line_number,
                    "created_at": item.created_at,
                }
            )
        return staged

    def _withdraw_stock(self, staged_items: list[dict]) -> None:
        products = []
        for row in staged_items:
            product = self.catalog.products.get(row["product_id"])
            if product is None or not product.is_orderable:
                raise ConflictingDataError(f"product {row['product_id']} is no longer available")
            product.ensure_available(row["quantity"])
            products.append((product, row["quantity"]))

        # All checks passed; now apply
        for product, quantity in products:
            product.withdraw_stock(quantity)

    def update_order(self, order_id, status, ctx=None, expected_status: OrderStatus | None = None) -> Order:
        ctx = ensure_context(ctx)
        ctx.check()
        status = parse_status(status)

        with self._lock:
            header = self.headers.get(str(order_id))
            if header is None:
                raise ObjectNotFoundError(f"order with id {order_id} not found")
            if expected_status is not None and header["status"] != expected_status.value:
                raise ConflictingDataError(f"order status changed to {header['status']} concurrently")
            header["status"] = status.value
            header["updated_at"] = datetime.now(UTC)
            return self._build(header, self._items_for(header["id"]))

    # -------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------
    def get_order(self, order_id, ctx=None) -> Order:
        ensure_context(ctx).check()
        with self._lock:
            header = self.headers.get(str(order_id))
            if header is None:
                raise ObjectNotFoundError(f"order with id {order_id} not found")
            return self._build(header, self._items_for(header["id"]))

    def list_orders(self, user_id, ctx=None) -> list[Order]:
        ensure_context(ctx).check()
        with self._lock:
            rows = self._joined_rows(str(user_id))

        # One row per item: fold rows into one order per header, keeping the
        # position where each header was first seen.
        grouped: dict[str, tuple[dict, list[dict]]] = {}
        for header, item in rows:
            _, items = grouped.setdefault(header["id"], (header, []))
            if item is not None:
                items.append(item)

        return [self._build(header, items) for header, items in grouped.values()]

    def ping(self, ctx=None) -> bool:
        ensure_context(ctx).check()
        return True

    def _joined_rows(self, user_id: str) -> list[tuple[dict, dict | None]]:
        headers = sorted(
            (header for header in self.headers.values() if header["user_id"] == user_id),
            key=lambda header: header["created_at"],
            reverse=True,
        )
        rows = []
        for header in headers:
            items = self._items_for(header["id"])
            if not items:
                rows.append((header, None))
            rows.extend((header, item) for item in items)
        return rows

    def _items_for(self, order_id: str) -> list[dict]:
        return [row for row in self.item_rows if row["order_id"] == order_id]

    @staticmethod
    def _build(header: dict, item_rows: list[dict]) -> Order:
        return Order(
            id=header["id"],
            user_id=header["user_id"],
            status=header["status"],
            total_amount=header["total_amount"],
            created_at=header["created_at"],
            updated_at=header["updated_at"],
            items=[
                OrderItem(
                    id=row["id"],
                    product_id=row["product_id"],
                    product_name=row["product_name"],
                    unit_price=row["unit_price"],
                    quantity=row["quantity"],
                    line_number=row["line_number"],
                    created_at=row["created_at"],
                )
                for row in item_rows
            ],
        )
