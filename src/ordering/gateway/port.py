"""Gateway ports (abstract interfaces) for the collaborators order placement consults.

The user directory and the product catalog live outside this context. Order
placement only reads from them, so each port is a single lookup.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class User:
    """The slice of a user record order placement needs."""

    id: str
    name: str | None = None
    email: str | None = None


class UserGateway(ABC):
    """Abstract user directory interface."""

    @abstractmethod
    def get_user_by_id(self, user_id, ctx=None) -> User:
        """Return the user, or raise ``ObjectNotFoundError`` when there is none."""
        ...


class CatalogGateway(ABC):
    """Abstract product catalog interface."""

    @abstractmethod
    def get_products_by_ids(self, product_ids, ctx=None) -> list:
        """Return the active, non-deleted products among ``product_ids``.

        Ids that do not resolve, or that name inactive or deleted products,
        are omitted without error.
        """
        ...
