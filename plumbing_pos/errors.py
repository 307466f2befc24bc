# plumbing_pos/errors.py
from __future__ import annotations


# Domain-level error the presentation layer can surface directly (e.g., toast/snackbar)
class DomainError(Exception):
    pass


class ValidationError(DomainError):
    """Malformed input: empty cart, non-positive quantity, missing required field."""


class NotFoundError(DomainError):
    """A referenced customer, product, sale, item, account or record does not exist."""


class InsufficientStockError(DomainError):
    """Requested quantity exceeds what is currently available for a product."""

    def __init__(self, product_id: int, product_name: str | None, requested: int, available: int):
        self.product_id = product_id
        self.product_name = product_name
        self.requested = requested
        self.available = available
        label = product_name or f"#{product_id}"
        super().__init__(
            f"Insufficient stock for product {label} (id={product_id}): "
            f"requested {requested}, available {available}."
        )


class RetentionWindowError(DomainError):
    """Audit record is missing or younger than the retention floor."""


class StorageError(DomainError):
    """Underlying database failure; partial effects were already rolled back."""


class AuthorizationError(DomainError):
    """No authenticated session, or the session's role may not perform the action."""


__all__ = [
    "DomainError",
    "ValidationError",
    "NotFoundError",
    "InsufficientStockError",
    "RetentionWindowError",
    "StorageError",
    "AuthorizationError",
]
