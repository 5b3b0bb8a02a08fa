"""Configurable fake gateways for development and testing.

Both fakes keep their records in memory and can be switched into a failing
mode to simulate an unavailable backend. Every call is recorded so tests can
assert on what order placement asked for.
"""

from protean.exceptions import ObjectNotFoundError

from ordering.context import ensure_context
from ordering.gateway.port import CatalogGateway, User, UserGateway


class GatewayUnavailableError(Exception):
    """Raised by a fake gateway configured to fail."""


class FakeUserGateway(UserGateway):
    """In-memory user directory."""

    def __init__(self, users=None) -> None:
        self.users: dict[str, User] = {}
        self.should_fail: bool = False
        self.failure_reason: str = "user directory unavailable"
        self.calls: list[dict] = []
        for user in users or []:
            self.register(user)

    def register(self, user: User | str, name: str | None = None, email: str | None = None) -> User:
        if not isinstance(user, User):
            user = User(id=str(user), name=name, email=email)
        self.users[str(user.id)] = user
        return user

    def configure(self, should_fail: bool, failure_reason: str = "user directory unavailable") -> None:
        """Configure gateway behavior at runtime."""
        self.should_fail = should_fail
        self.failure_reason = failure_reason

    def get_user_by_id(self, user_id, ctx=None) -> User:
        ensure_context(ctx).check()
        self.calls.append({"method": "get_user_by_id", "user_id": str(user_id)})

        if self.should_fail:
            raise GatewayUnavailableError(self.failure_reason)

        user = self.users.get(str(user_id))
        if user is None:
            raise ObjectNotFoundError(f"user with id {user_id} not found")
        return user


class FakeCatalogGateway(CatalogGateway):
    """In-memory catalog holding ``Product`` aggregates keyed by id."""

    def __init__(self, products=None) -> None:
        self.products: dict = {}
        self.should_fail: bool = False
        self.failure_reason: str = "catalog unavailable"
        self.calls: list[dict] = []
        for product in products or []:
            self.add(product)

    def add(self, product):
        self.products[str(product.id)] = product
        return product

    def configure(self, should_fail: bool, failure_reason: str = "catalog unavailable") -> None:
        """Configure gateway behavior at runtime."""
        self.should_fail = should_fail
        self.failure_reason = failure_reason

    def get_products_by_ids(self, product_ids, ctx=None) -> list:
        ensure_context(ctx).check()
        product_ids = [str(product_id) for product_id in product_ids]
        self.calls.append({"method": "get_products_by_ids", "product_ids": product_ids})

        if self.should_fail:
            raise GatewayUnavailableError(self.failure_reason)

        found = []
        for product_id in product_ids:
            product = self.products.get(product_id)
            if product is not None and product.is_orderable:
                found.append(product)
        return found
