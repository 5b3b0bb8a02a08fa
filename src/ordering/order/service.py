"""Order Service: places orders and drives their status lifecycle.

Every operation takes an optional ``RequestContext``. Client errors
(validation, not-found, conflicts, cancellation) reach the caller untouched.
Anything else is logged with the request's correlation id and replaced by an
``InternalError`` that carries no internal detail.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import UUID

import structlog
from protean.exceptions import ObjectNotFoundError, ValidationError

from ordering.context import RequestContext, ensure_context
from ordering.errors import InsufficientStockError, InternalError, StockConflictError, first_message, is_client_error
from ordering.gateway import get_catalog_gateway, get_user_gateway
from ordering.order.order import Order
from ordering.order.store import OrderStore, RepositoryOrderStore

logger = structlog.get_logger(__name__)

NO_PRODUCTS_FOUND_MESSAGE = "none of the products specified was found"


@dataclass(frozen=True)
class RequestedItem:
    """One ``(product_id, quantity)`` pair of a placement request."""

    product_id: str
    quantity: int

    def __post_init__(self):
        if isinstance(self.quantity, bool) or not isinstance(self.quantity, int) or self.quantity < 1:
            raise ValidationError({"quantity": [f"Quantity for product {self.product_id} must be at least 1"]})

    @classmethod
    def coerce(cls, value) -> "RequestedItem":
        if isinstance(value, RequestedItem):
            return value
        if isinstance(value, Mapping):
            return cls(product_id=value.get("product_id"), quantity=value.get("quantity"))
        try:
            product_id, quantity = value
        except (TypeError, ValueError) as exc:
            raise ValidationError({"items": [f"Malformed order item: {value!r}"]}) from exc
        return cls(product_id=product_id, quantity=quantity)


@dataclass(frozen=True)
class Ping:
    status: str
    checked_at: datetime


def canonical_product_id(value) -> str | None:
    """Canonical string form of a product id, or None when it does not parse."""
    try:
        return str(value if isinstance(value, UUID) else UUID(str(value)))
    except (TypeError, ValueError, AttributeError):
        return None


class OrderService:
    def __init__(self, users=None, catalog=None, store: OrderStore | None = None) -> None:
        self.users = users or get_user_gateway()
        self.catalog = catalog or get_catalog_gateway()
        self.store = store or RepositoryOrderStore()

    # -------------------------------------------------------------------
    # Placement
    # -------------------------------------------------------------------
    def place_order(self, user_id, requested_items, ctx: RequestContext | None = None) -> Order:
        ctx = ensure_context(ctx).bind(user_id=str(user_id))
        return self._run(ctx, "order.place_failed", self._place_order, user_id, requested_items, ctx)

    def _place_order(self, user_id, requested_items, ctx: RequestContext) -> Order:
        self._ensure_user_exists(user_id, ctx)

        quantities = self._requested_quantities(requested_items, ctx)
        if not quantities:
            raise ValidationError({"items": [NO_PRODUCTS_FOUND_MESSAGE]})

        products = self._fetch_products(list(quantities), ctx)
        by_id = {str(product.id): product for product in products}

        lines = []
        for product_id, quantity in quantities.items():
            product = by_id.get(product_id)
            if product is None:
                continue
            product.ensure_available(quantity)
            lines.append((product_id, product.name, product.price, quantity))

        if not lines:
            raise ValidationError({"items": [NO_PRODUCTS_FOUND_MESSAGE]})

        order = Order.place(user_id=str(user_id), lines=lines)
        try:
            order = self.store.create_order(order, ctx)
        except StockConflictError:
            # Another order took the stock first; report what a sequential
            # request would have seen, if the shortfall is real.
            self._revalidate_stock(order, ctx)
            raise

        ctx.log.info("order.placed", order_id=str(order.id), total_amount=order.total_amount)
        return order

    def _ensure_user_exists(self, user_id, ctx: RequestContext) -> None:
        try:
            self.users.get_user_by_id(user_id, ctx)
        except ObjectNotFoundError as exc:
            raise ObjectNotFoundError(f"error fetching user: {exc}") from exc
        except Exception as exc:
            if is_client_error(exc):
                raise
            ctx.log.error("order.user_lookup_failed", error=str(exc), exc_info=True)
            raise InternalError() from exc

    def _requested_quantities(self, requested_items, ctx: RequestContext) -> dict[str, int]:
        """Map canonical product id to quantity. Unparsable ids are dropped; the last duplicate wins."""
        quantities: dict[str, int] = {}
        for raw in requested_items or []:
            item = RequestedItem.coerce(raw)
            product_id = canonical_product_id(item.product_id)
            if product_id is None:
                ctx.log.warning("order.product_id_dropped", product_id=str(item.product_id))
                continue
            quantities[product_id] = item.quantity
        return quantities

    def _fetch_products(self, product_ids, ctx: RequestContext) -> list:
        try:
            return list(self.catalog.get_products_by_ids(product_ids, ctx))
        except Exception as exc:
            if is_client_error(exc):
                raise
            ctx.log.error("order.catalog_lookup_failed", error=str(exc), exc_info=True)
            raise InternalError() from exc

    def _revalidate_stock(self, order: Order, ctx: RequestContext) -> None:
        products = {
            str(product.id): product
            for product in self._fetch_products([str(item.product_id) for item in order.items], ctx)
        }
        for item in order.ordered_items:
            product = products.get(str(item.product_id))
            if product is None:
                raise InsufficientStockError(item.product_name, item.quantity, 0)
            product.ensure_available(item.quantity)

    # -------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------
    def get_order(self, order_id, ctx: RequestContext | None = None) -> Order:
        ctx = ensure_context(ctx).bind(order_id=str(order_id))
        return self._run(ctx, "order.get_failed", self.store.get_order, order_id, ctx)

    def list_user_orders(self, user_id, ctx: RequestContext | None = None) -> list[Order]:
        ctx = ensure_context(ctx).bind(user_id=str(user_id))
        return self._run(ctx, "order.list_failed", self.store.list_orders, user_id, ctx)

    # -------------------------------------------------------------------
    # Status changes
    # -------------------------------------------------------------------
    def update_order_status(self, order_id, status, ctx: RequestContext | None = None) -> Order:
        ctx = ensure_context(ctx).bind(order_id=str(order_id))
        return self._run(ctx, "order.update_failed", self._update_order_status, order_id, status, ctx)

    def _update_order_status(self, order_id, status, ctx: RequestContext) -> Order:
        order = self.store.get_order(order_id, ctx)
        current = order.current_status
        order.change_status(status)
        return self.store.update_order(order_id, order.current_status, ctx, expected_status=current)

    def cancel_order(self, order_id, ctx: RequestContext | None = None) -> Order:
        ctx = ensure_context(ctx).bind(order_id=str(order_id))
        return self._run(ctx, "order.cancel_failed", self._cancel_order, order_id, ctx)

    def _cancel_order(self, order_id, ctx: RequestContext) -> Order:
        order = self.store.get_order(order_id, ctx)
        current = order.current_status
        order.cancel()
        return self.store.update_order(order_id, order.current_status, ctx, expected_status=current)

    # -------------------------------------------------------------------
    # Health
    # -------------------------------------------------------------------
    def ping(self, ctx: RequestContext | None = None) -> Ping:
        ctx = ensure_context(ctx)
        self._run(ctx, "order.ping_failed", self.store.ping, ctx)
        return Ping(status="ok", checked_at=datetime.now(UTC))

    # -------------------------------------------------------------------
    # Error classification
    # -------------------------------------------------------------------
    @staticmethod
    def _run(ctx: RequestContext, event: str, operation, *args):
        try:
            return operation(*args)
        except InternalError:
            raise
        except Exception as exc:
            if is_client_error(exc):
                message = first_message(exc) if isinstance(exc, ValidationError) else str(exc)
                ctx.log.info(event, error=message, error_type=type(exc).__name__)
                raise
            ctx.log.error(event, error=str(exc), error_type=type(exc).__name__, exc_info=True)
            raise InternalError() from exc
