"""Payment and Refund ledger models.

- A ``Payment`` is created ``pending`` and leaves that state exactly once
  (``success``, ``failed`` or ``closed``), always through a locked or
  conditional update.  ``refunded`` is recorded afterwards when refunds
  cover the full amount.
- ``amount`` is copied from ``Order.actual_amount`` at creation; the
  gateway callback must report exactly this amount (in minor units).
- A ``Refund`` remembers the order status it interrupted
  (``previous_order_status``) so that a withdrawn or failed refund can put
  the order back where it was.
- At most one open (pending/approved/processing) refund exists per order,
  enforced by a partial unique constraint on top of the service check.
- Neither model is ever deleted.
"""

from __future__ import annotations

from typing import Any

from django.db import models

from modules.core.models import BaseModel
from modules.core.references import generate_unique_reference
from modules.payments.constants import (
    OPEN_REFUND_STATES,
    PAYMENT_NUMBER_PREFIX,
    REFUND_NUMBER_PREFIX,
    OperatorType,
    PaymentChannel,
    PaymentMethod,
    PaymentStatus,
    RefundStatus,
)


class Payment(BaseModel):
    payment_no = models.CharField(max_length=32, unique=True, editable=False)
    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.PROTECT,
        related_name="payments",
    )
    order_no = models.CharField(max_length=32)
    transaction_type = models.CharField(max_length=20)
    customer = models.ForeignKey(
        "customers.Customer",
        on_delete=models.PROTECT,
        related_name="payments",
    )
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    payment_method = models.CharField(max_length=20, choices=PaymentMethod.choices)
    payment_channel = models.CharField(
        max_length=20,
        choices=PaymentChannel.choices,
        blank=True,
        default="",
    )
    status = models.CharField(
        max_length=20,
        choices=PaymentStatus.choices,
        default=PaymentStatus.PENDING,
    )
    transaction_id = models.CharField(max_length=64, blank=True, default="")
    error_message = models.CharField(max_length=255, blank=True, default="")
    expired_at = models.DateTimeField()
    paid_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "payments"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status", "expired_at"], name="payments_expiry_idx"),
            models.Index(fields=["order", "status"], name="payments_order_status_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gt=0),
                name="payments_amount_positive",
            ),
        ]

    @property
    def status_name(self) -> str:
        return PaymentStatus(self.status).label

    @property
    def is_pending(self) -> bool:
        return self.status == PaymentStatus.PENDING

    def save(self, *args: Any, **kwargs: Any) -> None:
        if not self.payment_no:
            self.payment_no = generate_unique_reference(
                Payment, "payment_no", PAYMENT_NUMBER_PREFIX
            )
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.payment_no} ({self.status})"


class Refund(BaseModel):
    refund_no = models.CharField(max_length=32, unique=True, editable=False)
    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.PROTECT,
        related_name="refunds",
    )
    payment = models.ForeignKey(
        "payments.Payment",
        on_delete=models.PROTECT,
        related_name="refunds",
    )
    customer = models.ForeignKey(
        "customers.Customer",
        on_delete=models.PROTECT,
        related_name="refunds",
    )
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    reason = models.CharField(max_length=500)
    status = models.CharField(
        max_length=20,
        choices=RefundStatus.choices,
        default=RefundStatus.PENDING,
    )
    previous_order_status = models.CharField(max_length=20, blank=True, default="")
    operator_id = models.CharField(max_length=64, blank=True, default="")
    operator_type = models.CharField(
        max_length=20,
        choices=OperatorType.choices,
        blank=True,
        default="",
    )
    transaction_id = models.CharField(max_length=64, blank=True, default="")
    reject_reason = models.CharField(max_length=500, blank=True, default="")
    failure_reason = models.CharField(max_length=500, blank=True, default="")
    approved_at = models.DateTimeField(null=True, blank=True)
    rejected_at = models.DateTimeField(null=True, blank=True)
    refunded_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "refunds"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["customer", "-created_at"], name="refunds_customer_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gt=0),
                name="refunds_amount_positive",
            ),
            models.UniqueConstraint(
                fields=["order"],
                condition=models.Q(status__in=sorted(OPEN_REFUND_STATES)),
                name="refunds_one_open_per_order",
            ),
        ]

    @property
    def status_name(self) -> str:
        return RefundStatus(self.status).label

    def save(self, *args: Any, **kwargs: Any) -> None:
        if not self.refund_no:
            self.refund_no = generate_unique_reference(Refund, "refund_no", REFUND_NUMBER_PREFIX)
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.refund_no} ({self.status})"
