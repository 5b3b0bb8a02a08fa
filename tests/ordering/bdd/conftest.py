"""Shared BDD fixtures and step definitions for the Ordering domain."""

import pytest
from ordering.errors import ConflictingDataError, InternalError
from ordering.order.service import OrderService, RequestedItem
from ordering.product.product import Product
from protean import current_domain
from protean.exceptions import ObjectNotFoundError, ValidationError
from pytest_bdd import given, parsers, then

_ERROR_KINDS = {
    "validation": ValidationError,
    "not found": ObjectNotFoundError,
    "conflict": ConflictingDataError,
    "internal": InternalError,
}


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------
@pytest.fixture()
def service(users):
    return OrderService(users=users)


@pytest.fixture()
def products():
    """Catalog products by name, as set up by Given steps."""
    return {}


@pytest.fixture()
def error():
    """Container for the error raised by the last When step."""
    return {"exc": None}


@pytest.fixture()
def attempt(error):
    """Run an operation, capturing a raised error instead of failing the step."""

    def _attempt(operation, *args):
        try:
            return operation(*args)
        except Exception as exc:
            error["exc"] = exc
            return None

    return _attempt


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('a product "{name}" priced at {price:f} with {quantity:d} in stock'))
def _(products, saved_product, name, price, quantity):
    products[name] = saved_product(name=name, price=price, quantity=quantity)


@given(parsers.cfparse('the user has placed an order for {quantity:d} "{name}"'), target_fixture="order")
def _(service, user_id, products, name, quantity):
    return service.place_order(user_id, [RequestedItem(str(products[name].id), quantity)])


@given(parsers.cfparse('the order has moved to "{status}"'), target_fixture="order")
def _(service, order, status):
    return service.update_order_status(order.id, status)


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the order status is "{status}"'))
def _(service, order, status):
    assert service.get_order(order.id).status == status


@then(parsers.cfparse('the stored order status is still "{status}"'))
def _(service, order, status):
    assert service.get_order(order.id).status == status


@then(parsers.cfparse('the request fails with a {kind} error'))
def _(error, kind):
    assert error["exc"] is not None, f"Expected a {kind} error but none was raised"
    assert isinstance(error["exc"], _ERROR_KINDS[kind]), repr(error["exc"])


@then(parsers.cfparse('the error message contains "{text}"'))
def _(error, text):
    exc = error["exc"]
    message = str(exc.messages) if isinstance(exc, ValidationError) else str(exc)
    assert text in message


@then(parsers.cfparse('"{name}" has {quantity:d} in stock'))
def _(products, name, quantity):
    assert current_domain.repository_for(Product).get(products[name].id).quantity == quantity
