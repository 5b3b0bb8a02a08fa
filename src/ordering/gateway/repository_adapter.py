"""Catalog gateway backed by the ``Product`` repository of the active domain."""

from protean.utils.globals import current_domain

from ordering.context import ensure_context
from ordering.gateway.port import CatalogGateway
from ordering.product.product import Product, ProductStatus


class RepositoryCatalogGateway(CatalogGateway):
    def get_products_by_ids(self, product_ids, ctx=None) -> list:
        ensure_context(ctx).check()
        product_ids = [str(product_id) for product_id in product_ids]
        if not product_ids:
            return []

        repo = current_domain.repository_for(Product)
        return (
            repo._dao.query.filter(
                id__in=product_ids,
                status=ProductStatus.ACTIVE.value,
                deleted_at__isnull=True,
            )
            .limit(None)
            .all()
            .items
        )
