"""Gateway factory.

Provides get/set/reset for the user and catalog gateways:
- FakeUserGateway until a real user directory is wired in
- RepositoryCatalogGateway, reading products from the domain's repository
"""

from ordering.gateway.fake_adapter import FakeUserGateway
from ordering.gateway.port import CatalogGateway, UserGateway
from ordering.gateway.repository_adapter import RepositoryCatalogGateway

_current_user_gateway: UserGateway | None = None
_current_catalog_gateway: CatalogGateway | None = None


def get_user_gateway() -> UserGateway:
    """Return the current user gateway. Defaults to FakeUserGateway."""
    global _current_user_gateway
    if _current_user_gateway is None:
        _current_user_gateway = FakeUserGateway()
    return _current_user_gateway


def set_user_gateway(gateway: UserGateway) -> None:
    """Override the active user gateway (useful for tests)."""
    global _current_user_gateway
    _current_user_gateway = gateway


def get_catalog_gateway() -> CatalogGateway:
    """Return the current catalog gateway. Defaults to RepositoryCatalogGateway."""
    global _current_catalog_gateway
    if _current_catalog_gateway is None:
        _current_catalog_gateway = RepositoryCatalogGateway()
    return _current_catalog_gateway


def set_catalog_gateway(gateway: CatalogGateway) -> None:
    """Override the active catalog gateway (useful for tests)."""
    global _current_catalog_gateway
    _current_catalog_gateway = gateway


def reset_gateways() -> None:
    """Reset to default gateways."""
    global _current_user_gateway, _current_catalog_gateway
    _current_user_gateway = None
    _current_catalog_gateway = None
