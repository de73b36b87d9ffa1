"""Order, OrderItem and OrderStatusHistory models.

- ``order_number`` is a human-readable reference generated on first save
  (``<prefix><YYYYmmddHHMMSS><6 digits>``, prefix by transaction type).
- ``actual_amount = original_amount - discount_amount`` is computed by the
  repository on insert; ``actual_amount >= 0`` and
  ``discount_amount <= original_amount`` are check constraints.
- Status transitions are validated by the service layer through
  ``can_transition_to``; every transition writes an ``OrderStatusHistory``
  row and an outbox event.
- ``OrderItem`` is an immutable snapshot of what was bought and for how
  much; later catalogue changes never alter it.
- Orders are never deleted.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any

import structlog
from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models

from modules.core.models import BaseModel
from modules.core.references import generate_unique_reference
from modules.orders.constants import (
    ORDER_NUMBER_PREFIXES,
    TERMINAL_STATES,
    VALID_TRANSITIONS,
    OrderStatus,
    TransactionType,
)
from shared.domain.events import DomainEventMixin

logger = structlog.get_logger(__name__)


class Order(DomainEventMixin, BaseModel):
    """Order aggregate root.

    ``idempotency_key`` is nullable: only orders created through the public
    API with an ``Idempotency-Key`` header carry one.  Keys are unique per
    customer, never globally.
    """

    order_number = models.CharField(max_length=32, unique=True, editable=False)
    customer = models.ForeignKey(
        "customers.Customer",
        on_delete=models.PROTECT,
        related_name="orders",
    )
    transaction_type = models.CharField(
        max_length=20,
        choices=TransactionType.choices,
        default=TransactionType.RETAIL,
    )
    status = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
        default=OrderStatus.PENDING,
    )
    original_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    discount_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    actual_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    user_coupon = models.ForeignKey(
        "marketing.UserCoupon",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    campaign = models.ForeignKey(
        "marketing.Campaign",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="orders",
    )
    address_snapshot = models.JSONField(null=True, blank=True)
    remark = models.CharField(max_length=500, blank=True, default="")
    cancel_reason = models.CharField(max_length=255, blank=True, default="")
    express_company = models.CharField(max_length=50, blank=True, default="")
    express_no = models.CharField(max_length=64, blank=True, default="")
    paid_at = models.DateTimeField(null=True, blank=True)
    shipped_at = models.DateTimeField(null=True, blank=True)
    received_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    idempotency_key = models.CharField(max_length=255, null=True, blank=True)

    class Meta:
        db_table = "orders"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["customer", "status"], name="orders_customer_status_idx"),
            models.Index(fields=["-created_at"], name="orders_created_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(actual_amount__gte=0),
                name="orders_actual_amount_non_negative",
            ),
            models.CheckConstraint(
                condition=models.Q(discount_amount__lte=models.F("original_amount")),
                name="orders_discount_within_original",
            ),
            models.UniqueConstraint(
                fields=["customer", "idempotency_key"],
                name="orders_idempotency_key_per_customer",
            ),
        ]

    # ------------------------------------------------------------------
    # State machine helpers
    # ------------------------------------------------------------------

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATES

    @property
    def status_name(self) -> str:
        return OrderStatus(self.status).label

    def can_transition_to(self, new_status: str) -> bool:
        return new_status in VALID_TRANSITIONS.get(self.status, set())

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save(self, *args: Any, **kwargs: Any) -> None:
        if not self.order_number:
            prefix = ORDER_NUMBER_PREFIXES.get(self.transaction_type, "M")
            self.order_number = generate_unique_reference(Order, "order_number", prefix)
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.order_number} ({self.status})"


class OrderItem(BaseModel):
    """Immutable line item snapshot.

    ``subtotal`` is always ``quantity * unit_price``, computed on insert.
    """

    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.PROTECT,
        related_name="items",
    )
    product = models.ForeignKey(
        "products.Product",
        on_delete=models.PROTECT,
        related_name="order_items",
    )
    sku = models.ForeignKey(
        "products.Sku",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="order_items",
    )
    product_name = models.CharField(max_length=255)
    product_image = models.CharField(max_length=500, blank=True, default="")
    sku_info = models.CharField(max_length=255, blank=True, default="")
    unit_price = models.DecimalField(max_digits=12, decimal_places=2)
    quantity = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    subtotal = models.DecimalField(max_digits=12, decimal_places=2, editable=False)

    class Meta:
        db_table = "order_items"
        ordering = ["product_id", "sku_id"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(quantity__gte=1),
                name="order_items_quantity_positive",
            ),
        ]

    def save(self, *args: Any, **kwargs: Any) -> None:
        if not self._state.adding:
            raise ValueError("Order items are immutable once created.")
        self.subtotal = self.unit_price * self.quantity
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.product_name} x{self.quantity} ({self.subtotal})"


class OrderStatusHistory(BaseModel):
    """Append-only audit trail of order status transitions.

    ``user`` is ``None`` when the change was made by the system (payment
    callback, expiry job, refund completion).
    """

    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.PROTECT,
        related_name="status_history",
    )
    old_status = models.CharField(  # noqa: DJ01
        max_length=20,
        choices=OrderStatus.choices,
        null=True,
        blank=True,
    )
    new_status = models.CharField(max_length=20, choices=OrderStatus.choices)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
    )
    notes = models.TextField(blank=True, default="")

    class Meta:
        db_table = "order_status_history"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["order", "-created_at"], name="osh_order_created_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.order} : {self.old_status} -> {self.new_status}"
