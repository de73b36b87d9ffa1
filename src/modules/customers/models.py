"""Customer, Address and loyalty points ledger models.

- A ``Customer`` is the owner reference of orders, payments, refunds,
  coupons and cart lines.  It optionally links to a Django auth user, which
  is how API requests are resolved to an owner.
- ``points`` is the loyalty balance; it never goes negative (DB constraint
  plus conditional updates in ``LoyaltyLedger``).
- ``PointsTransaction`` is the append-only points ledger.  The unique
  constraint on (customer, kind, order_no) makes repeated credits or debits
  for the same order impossible.
- Phone numbers are masked in ``__str__`` and logs.
"""

from __future__ import annotations

import structlog
from django.conf import settings
from django.db import models

from modules.core.models import BaseModel, SoftDeleteModel

logger = structlog.get_logger(__name__)


class Customer(SoftDeleteModel):
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="customer",
    )
    name = models.CharField(max_length=255)
    email = models.EmailField(max_length=254, unique=True)
    phone = models.CharField(max_length=20, blank=True, default="")
    is_active = models.BooleanField(default=True)
    points = models.PositiveIntegerField(default=0)

    class Meta:
        db_table = "customers"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["is_active"], name="customers_active_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(points__gte=0),
                name="customers_points_non_negative",
            ),
        ]

    @property
    def masked_phone(self) -> str:
        if len(self.phone) < 7:
            return self.phone
        return f"{self.phone[:3]}****{self.phone[-4:]}"

    def __str__(self) -> str:
        return f"{self.name} ({self.masked_phone or self.email})"


class Address(SoftDeleteModel):
    """Shipping address; copied into ``Order.address_snapshot`` at checkout."""

    customer = models.ForeignKey(
        "customers.Customer",
        on_delete=models.CASCADE,
        related_name="addresses",
    )
    receiver_name = models.CharField(max_length=100)
    receiver_phone = models.CharField(max_length=20)
    province = models.CharField(max_length=50)
    city = models.CharField(max_length=50)
    district = models.CharField(max_length=50, blank=True, default="")
    detail = models.CharField(max_length=255)
    is_default = models.BooleanField(default=False)

    class Meta:
        db_table = "customer_addresses"
        ordering = ["-is_default", "-created_at"]

    def to_snapshot(self) -> dict:
        return {
            "receiver_name": self.receiver_name,
            "receiver_phone": self.receiver_phone,
            "province": self.province,
            "city": self.city,
            "district": self.district,
            "detail": self.detail,
        }

    def __str__(self) -> str:
        return f"{self.receiver_name}, {self.city} {self.detail}"


class PointsKind(models.TextChoices):
    CONSUME = "consume", "Earned by purchase"
    REFUND = "refund", "Revoked by refund"


class PointsTransaction(BaseModel):
    """One movement of a customer's points balance (signed)."""

    customer = models.ForeignKey(
        "customers.Customer",
        on_delete=models.PROTECT,
        related_name="points_transactions",
    )
    kind = models.CharField(max_length=20, choices=PointsKind.choices)
    points = models.IntegerField()
    order_no = models.CharField(max_length=32)
    description = models.CharField(max_length=255, blank=True, default="")

    class Meta:
        db_table = "points_transactions"
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["customer", "kind", "order_no"],
                name="points_tx_unique_per_order",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.customer_id} {self.kind} {self.points:+d} ({self.order_no})"
