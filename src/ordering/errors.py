"""Error taxonomy for the ordering context.

Client-facing conditions reuse protean's exceptions so callers can map them
the same way as everywhere else in the codebase:

- NotFound   -> ``ObjectNotFoundError``
- BadRequest -> ``ValidationError`` (including ``InsufficientStockError``)
- Conflict   -> ``ConflictingDataError`` (including ``StockConflictError``)
- Internal   -> ``InternalError``, whose message never carries the cause
"""

from enum import Enum

from protean.exceptions import (
    InvalidStateError,
    ObjectNotFoundError,
    ProteanException,
    ValidationError,
)

INTERNAL_ERROR_MESSAGE = "internal server error"


class ErrorKind(Enum):
    NOT_FOUND = "NotFound"
    BAD_REQUEST = "BadRequest"
    CONFLICT = "Conflict"
    CANCELLED = "Cancelled"
    INTERNAL = "Internal"


class InsufficientStockError(ValidationError):
    """Requested quantity exceeds the stock available for a product."""

    def __init__(self, product_name, requested, in_stock):
        self.product_name = product_name
        self.requested = requested
        self.in_stock = in_stock
        super().__init__(
            {
                "quantity": [
                    f"The quantity specified for '{product_name}' is more than the quantity "
                    f"in stock: {requested} (specified) for {in_stock} (in stock)"
                ]
            }
        )


class ConflictingDataError(InvalidStateError):
    """A storage constraint rejected the write (duplicate key, foreign key)."""

    def __init__(self, message="conflicting data", **kwargs):
        super().__init__(message, **kwargs)


class StockConflictError(ConflictingDataError):
    """A product's stock changed underneath an order being placed."""


class InternalError(ProteanException):
    """An unexpected failure. Carries a generic message only; the cause is chained."""

    def __init__(self, message=INTERNAL_ERROR_MESSAGE, **kwargs):
        super().__init__(message, **kwargs)


class RequestCancelledError(ProteanException):
    """The caller cancelled the request or its deadline passed."""


def classify(exc: BaseException) -> ErrorKind:
    """Map an exception onto the ordering error taxonomy."""
    if isinstance(exc, ObjectNotFoundError):
        return ErrorKind.NOT_FOUND
    if isinstance(exc, ValidationError):
        return ErrorKind.BAD_REQUEST
    if isinstance(exc, ConflictingDataError):
        return ErrorKind.CONFLICT
    if isinstance(exc, RequestCancelledError):
        return ErrorKind.CANCELLED
    return ErrorKind.INTERNAL


def is_client_error(exc: BaseException) -> bool:
    """True for errors returned to the caller verbatim."""
    return classify(exc) is not ErrorKind.INTERNAL


def first_message(exc: ValidationError) -> str:
    """Flatten a ValidationError's messages into its first human-readable line."""
    messages = exc.messages
    if isinstance(messages, dict):
        for value in messages.values():
            if isinstance(value, list | tuple) and value:
                return str(value[0])
            if value:
                return str(value)
        return ""
    if isinstance(messages, list | tuple):
        return str(messages[0]) if messages else ""
    return str(messages)
