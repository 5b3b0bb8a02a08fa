"""Order Store: transactional persistence for the Order aggregate.

``OrderStore`` is the port the service depends on. ``RepositoryOrderStore``
persists through protean repositories, so the same code runs on the memory
provider in development and tests and on PostgreSQL in production.

Order creation is one unit of work: stock is re-read and withdrawn for every
ordered product, then the header and its items are written. The unit of work
commits once on success and rolls back on every other exit, including a
cancelled request. Stock withdrawal is guarded by the product's version, so
two orders racing for the same stock cannot both commit.
"""

from abc import ABC, abstractmethod

import structlog
from protean import UnitOfWork
from protean.exceptions import (
    DatabaseError,
    ExpectedVersionError,
    ObjectNotFoundError,
    TransactionError,
    ValidationError,
)
from protean.utils.globals import current_domain
from sqlalchemy.exc import IntegrityError

from ordering.context import ensure_context
from ordering.domain import ordering
from ordering.errors import ConflictingDataError, StockConflictError
from ordering.order.order import Order
from ordering.order.status import OrderStatus, parse_status
from ordering.product.product import Product

logger = structlog.get_logger(__name__)

_DUPLICATE_MARKER = "is already present"


class OrderStore(ABC):
    """Persistence port for orders."""

    @abstractmethod
    def create_order(self, order: Order, ctx=None) -> Order:
        """Persist the header and all items atomically, withdrawing stock in the same transaction."""
        ...

    @abstractmethod
    def get_order(self, order_id, ctx=None) -> Order:
        """Return the order with its items, or raise ``ObjectNotFoundError``."""
        ...

    @abstractmethod
    def list_orders(self, user_id, ctx=None) -> list[Order]:
        """Return the user's orders, most recent first, each with its items."""
        ...

    @abstractmethod
    def update_order(self, order_id, status, ctx=None, expected_status: OrderStatus | None = None) -> Order:
        """Write a new status and refresh ``updated_at``.

        When ``expected_status`` is given, the write is refused with
        ``ConflictingDataError`` if the stored status has moved on since the
        caller validated the transition.
        """
        ...

    @abstractmethod
    def ping(self, ctx=None) -> bool:
        """Cheap round-trip to the backing store."""
        ...


def is_constraint_violation(exc: BaseException) -> bool:
    """True when ``exc`` (or anything it wraps) is a unique/foreign-key rejection."""
    seen = set()
    pending = [exc]
    while pending:
        current = pending.pop()
        if current is None or id(current) in seen:
            continue
        seen.add(id(current))

        if isinstance(current, IntegrityError):
            return True
        if isinstance(current, ValidationError) and _DUPLICATE_MARKER in str(current.messages):
            return True
        extra_info = getattr(current, "extra_info", None)
        if isinstance(extra_info, dict) and extra_info.get("original_exception") == "IntegrityError":
            return True

        pending.extend(
            [
                current.__cause__,
                current.__context__,
                getattr(current, "original_exception", None),
            ]
        )
    return False


def _in_line_order(order: Order) -> Order:
    """Load the items and sort them by line number; row order is not guaranteed by the store."""
    order.items.sort(key=lambda item: item.line_number or 0)
    return order


@ordering.repository(part_of=Order)
class OrderRepository:
    def for_user(self, user_id) -> list[Order]:
        """All orders owned by ``user_id``, newest first."""
        return self._dao.query.filter(user_id=str(user_id)).order_by("-created_at").limit(None).all().items


class RepositoryOrderStore(OrderStore):
    def create_order(self, order: Order, ctx=None) -> Order:
        ctx = ensure_context(ctx)
        ctx.check()

        try:
            with UnitOfWork():
                self._withdraw_stock(order, ctx)
                current_domain.repository_for(Order).add(order)
                # Last chance to abandon before commit
                ctx.check()
        except ExpectedVersionError as exc:
            ctx.log.info("order.stock_conflict", order_id=str(order.id))
            raise StockConflictError(
                "stock changed while the order was being placed",
                extra_info={"order_id": str(order.id)},
            ) from exc
        except (ValidationError, TransactionError, DatabaseError, IntegrityError) as exc:
            if is_constraint_violation(exc):
                ctx.log.info("order.constraint_violation", order_id=str(order.id), error=str(exc))
                raise ConflictingDataError(
                    "order conflicts with existing data",
                    extra_info={"order_id": str(order.id)},
                ) from exc
            raise

        logger.info("order.created", order_id=str(order.id), user_id=str(order.user_id), items=len(order.items))
        return order

    def _withdraw_stock(self, order: Order, ctx) -> None:
        product_repo = current_domain.repository_for(Product)
        for item in order.ordered_items:
            ctx.check()
            try:
                product = product_repo.get(item.product_id)
            except ObjectNotFoundError as exc:
                raise ConflictingDataError(
                    f"product {item.product_id} no longer exists",
                    extra_info={"product_id": str(item.product_id)},
                ) from exc
            product.withdraw_stock(item.quantity)
            product_repo.add(product)

    def get_order(self, order_id, ctx=None) -> Order:
        ensure_context(ctx).check()
        return _in_line_order(current_domain.repository_for(Order).get(str(order_id)))

    def list_orders(self, user_id, ctx=None) -> list[Order]:
        ensure_context(ctx).check()
        return [_in_line_order(order) for order in current_domain.repository_for(Order).for_user(user_id)]

    def update_order(self, order_id, status, ctx=None, expected_status: OrderStatus | None = None) -> Order:
        ctx = ensure_context(ctx)
        ctx.check()
        status = parse_status(status)

        try:
            with UnitOfWork():
                repo = current_domain.repository_for(Order)
                order = repo.get(str(order_id))
                if expected_status is not None and order.current_status != expected_status:
                    raise ConflictingDataError(
                        f"order status changed to {order.status} concurrently",
                        extra_info={"order_id": str(order_id)},
                    )
                order.record_status(status)
                repo.add(order)
                ctx.check()
        except ExpectedVersionError as exc:
            raise ConflictingDataError(
                "order was modified concurrently",
                extra_info={"order_id": str(order_id)},
            ) from exc

        logger.info("order.status_updated", order_id=str(order_id), status=status.value)
        return order

    def ping(self, ctx=None) -> bool:
        ensure_context(ctx).check()
        current_domain.repository_for(Order)._dao.query.limit(1).all(with_total=False)
        return True
