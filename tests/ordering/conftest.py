import pytest
from protean.integrations.pytest import DomainFixture


@pytest.fixture(scope="session")
def ordering_bed():
    from ordering.domain import ordering

    bed = DomainFixture(ordering)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(ordering_bed):
    with ordering_bed.domain_context():
        yield


@pytest.fixture(autouse=True)
def _gateways():
    from ordering.gateway import reset_gateways

    reset_gateways()
    yield
    reset_gateways()


@pytest.fixture()
def user_id():
    return "4d1f3a7e-8a0c-4b8e-9d55-0a8a4c5f2b11"


@pytest.fixture()
def users(user_id):
    from ordering.gateway.fake_adapter import FakeUserGateway

    return FakeUserGateway(users=[user_id])


@pytest.fixture()
def make_product():
    """Build an unsaved catalog product."""
    from ordering.product.product import Product

    def _make(name="Widget", price=10.0, quantity=10, **kwargs):
        return Product.create(name=name, price=price, quantity=quantity, **kwargs)

    return _make


@pytest.fixture()
def saved_product(make_product):
    """Build a product and persist it through the repository."""
    from protean.utils.globals import current_domain

    from ordering.product.product import Product

    def _save(name="Widget", price=10.0, quantity=10, **kwargs):
        product = make_product(name=name, price=price, quantity=quantity, **kwargs)
        current_domain.repository_for(Product).add(product)
        return product

    return _save
