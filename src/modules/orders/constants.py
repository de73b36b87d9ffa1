"""Order domain constants.

Status choices, the transition table of the order state machine and the
order-number prefixes per transaction type.
"""

from django.db import models


class OrderStatus(models.TextChoices):
    PENDING = "pending", "Awaiting payment"
    PAID = "paid", "Awaiting shipment"
    PENDING_SHIP = "pending_ship", "Preparing shipment"
    SHIPPED = "shipped", "Shipped"
    COMPLETED = "completed", "Completed"
    CANCELLED = "cancelled", "Cancelled"
    REFUNDING = "refunding", "Refund in progress"
    REFUNDED = "refunded", "Refunded"


class TransactionType(models.TextChoices):
    RETAIL = "retail", "Retail"
    RENTAL = "rental", "Rental"
    BOOKING = "booking", "Booking"
    MEMBER_PACKAGE = "member_package", "Member package"


VALID_TRANSITIONS: dict[str, set[str]] = {
    OrderStatus.PENDING: {OrderStatus.PAID, OrderStatus.CANCELLED},
    OrderStatus.PAID: {OrderStatus.PENDING_SHIP, OrderStatus.SHIPPED, OrderStatus.REFUNDING},
    OrderStatus.PENDING_SHIP: {OrderStatus.SHIPPED, OrderStatus.REFUNDING},
    OrderStatus.SHIPPED: {OrderStatus.COMPLETED, OrderStatus.REFUNDING},
    OrderStatus.REFUNDING: {
        OrderStatus.REFUNDED,
        OrderStatus.PAID,
        OrderStatus.PENDING_SHIP,
        OrderStatus.SHIPPED,
    },
    OrderStatus.COMPLETED: set(),
    OrderStatus.CANCELLED: set(),
    OrderStatus.REFUNDED: set(),
}

TERMINAL_STATES: set[str] = {
    OrderStatus.COMPLETED,
    OrderStatus.CANCELLED,
    OrderStatus.REFUNDED,
}

REFUNDABLE_STATES: set[str] = {
    OrderStatus.PAID,
    OrderStatus.PENDING_SHIP,
    OrderStatus.SHIPPED,
}

ORDER_NUMBER_PREFIXES: dict[str, str] = {
    TransactionType.RETAIL: "M",
    TransactionType.RENTAL: "L",
    TransactionType.BOOKING: "H",
    TransactionType.MEMBER_PACKAGE: "V",
}
