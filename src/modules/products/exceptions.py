"""Inventory domain exceptions."""

from __future__ import annotations

from modules.core.exceptions import ConflictError, DomainError, NotFoundError


class ProductNotFound(NotFoundError):
    """The product (or variant) does not exist or has been soft-deleted."""

    code = 5001
    default_message = "Product not found."


class ProductOffShelf(DomainError):
    """The product is not on sale, or the variant is deactivated."""

    code = 5002
    default_message = "Product is off the shelf."


class InsufficientStock(ConflictError):
    """Not enough stock to satisfy the reservation."""

    code = 5003
    default_message = "Insufficient stock."
