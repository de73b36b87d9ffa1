"""Order domain exceptions.

Customer and inventory errors raised during order creation live in their
own modules (``modules.customers.exceptions``,
``modules.products.exceptions``) and propagate unchanged.
"""

from __future__ import annotations

from modules.core.exceptions import ConflictError, DomainError, NotFoundError


class OrderNotFound(NotFoundError):
    """The order does not exist or does not belong to the caller."""

    code = 5101
    default_message = "Order not found."


class InvalidOrderStatus(ConflictError):
    """The order's current status does not allow the requested transition."""

    code = 5102
    default_message = "Order status does not allow this operation."


class CartEmpty(DomainError):
    """Checkout from cart with no selected lines."""

    code = 5103
    default_message = "No cart items selected."
