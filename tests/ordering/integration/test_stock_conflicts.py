"""Stock withdrawn by another order between reading a product and committing.

These tests hand the store a product snapshot taken before a competing order
committed, so the version check on the product row is what rejects the write.
"""

from contextlib import contextmanager
from unittest import mock

import pytest
from ordering.errors import ConflictingDataError, InsufficientStockError, StockConflictError
from ordering.gateway.repository_adapter import RepositoryCatalogGateway
from ordering.order.order import Order
from ordering.order.service import OrderService, RequestedItem
from ordering.order.store import RepositoryOrderStore
from ordering.product.product import Product
from protean import current_domain
from protean.exceptions import ObjectNotFoundError


@pytest.fixture()
def store():
    return RepositoryOrderStore()


def _product_repo():
    return current_domain.repository_for(Product)


def _snapshot(product):
    return _product_repo().get(product.id)


@contextmanager
def stale_product_reads(*snapshots):
    """Serve ``snapshots`` from the product repository in place of the stored rows."""
    by_id = {str(snapshot.id): snapshot for snapshot in snapshots}
    repo_cls = type(_product_repo())
    original_get = repo_cls.get

    def get(self, identifier):
        snapshot = by_id.get(str(identifier))
        return snapshot if snapshot is not None else original_get(self, identifier)

    with mock.patch.object(repo_cls, "get", get):
        yield


class FirstLookupStale(RepositoryCatalogGateway):
    """Answers the first lookup from a snapshot and every later one from the repository."""

    def __init__(self, snapshot):
        self.snapshot = snapshot
        self.lookups = 0

    def get_products_by_ids(self, product_ids, ctx=None):
        self.lookups += 1
        if self.lookups == 1:
            return [self.snapshot]
        return super().get_products_by_ids(product_ids, ctx)


def _order_for(user_id, product, quantity):
    return Order.place(user_id=user_id, lines=[(str(product.id), product.name, product.price, quantity)])


class TestStoreLevel:
    def test_stale_product_version_is_a_stock_conflict(self, store, user_id, saved_product):
        lamp = saved_product(name="Lamp", quantity=10)
        stale = _snapshot(lamp)
        store.create_order(_order_for(user_id, lamp, 2))

        loser = _order_for(user_id, lamp, 2)
        with stale_product_reads(stale):
            with pytest.raises(StockConflictError) as exc:
                store.create_order(loser)

        assert isinstance(exc.value, ConflictingDataError)
        assert exc.value.extra_info == {"order_id": str(loser.id)}

    def test_conflict_rolls_back_the_order(self, store, user_id, saved_product):
        lamp = saved_product(name="Lamp", quantity=10)
        stale = _snapshot(lamp)
        winner = store.create_order(_order_for(user_id, lamp, 2))

        loser = _order_for(user_id, lamp, 2)
        with stale_product_reads(stale):
            with pytest.raises(StockConflictError):
                store.create_order(loser)

        assert _snapshot(lamp).quantity == 8
        with pytest.raises(ObjectNotFoundError):
            store.get_order(loser.id)
        assert [o.id for o in store.list_orders(user_id)] == [winner.id]


class TestServiceLevel:
    def test_conflict_with_stock_now_short_reports_insufficient_stock(self, users, user_id, store, saved_product):
        lamp = saved_product(name="Lamp", quantity=3)
        catalog_view = _snapshot(lamp)
        store_view = _snapshot(lamp)
        store.create_order(_order_for(user_id, lamp, 2))

        service = OrderService(users=users, catalog=FirstLookupStale(catalog_view), store=store)
        with stale_product_reads(store_view):
            with pytest.raises(InsufficientStockError) as exc:
                service.place_order(user_id, [RequestedItem(str(lamp.id), 2)])

        assert exc.value.product_name == "Lamp"
        assert (exc.value.requested, exc.value.in_stock) == (2, 1)
        assert service.catalog.lookups == 2
        assert _snapshot(lamp).quantity == 1

    def test_conflict_with_stock_still_sufficient_is_a_conflict(self, users, user_id, store, saved_product):
        lamp = saved_product(name="Lamp", quantity=10)
        stale = _snapshot(lamp)
        store.create_order(_order_for(user_id, lamp, 2))

        service = OrderService(users=users, store=store)
        with stale_product_reads(stale):
            with pytest.raises(ConflictingDataError) as exc:
                service.place_order(user_id, [RequestedItem(str(lamp.id), 2)])

        assert isinstance(exc.value, StockConflictError)
        assert _snapshot(lamp).quantity == 8
        assert len(service.list_user_orders(user_id)) == 1

    def test_conflict_with_product_withdrawn_reports_insufficient_stock(self, users, user_id, store, saved_product):
        lamp = saved_product(name="Lamp", quantity=10)
        catalog_view = _snapshot(lamp)
        store_view = _snapshot(lamp)
        store.create_order(_order_for(user_id, lamp, 2))
        retired = _snapshot(lamp)
        retired.deactivate()
        _product_repo().add(retired)

        service = OrderService(users=users, catalog=FirstLookupStale(catalog_view), store=store)
        with stale_product_reads(store_view):
            with pytest.raises(InsufficientStockError) as exc:
                service.place_order(user_id, [RequestedItem(str(lamp.id), 2)])

        assert exc.value.in_stock == 0
