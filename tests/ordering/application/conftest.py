import pytest
from ordering.gateway.fake_adapter import FakeCatalogGateway
from ordering.order.fake_store import InMemoryOrderStore
from ordering.order.service import OrderService


@pytest.fixture()
def catalog():
    return FakeCatalogGateway()


@pytest.fixture()
def store(catalog):
    return InMemoryOrderStore(catalog=catalog)


@pytest.fixture()
def service(users, catalog, store):
    return OrderService(users=users, catalog=catalog, store=store)


@pytest.fixture()
def stocked(catalog, make_product):
    """Add a product to the fake catalog."""

    def _add(name="Widget", price=10.0, quantity=10, **kwargs):
        return catalog.add(make_product(name=name, price=price, quantity=quantity, **kwargs))

    return _add
