"""Coupon, UserCoupon and Campaign models.

- ``Coupon`` is the template; ``UserCoupon`` is a customer's single-use
  instance of it.  ``UserCoupon.status`` moves ``unused -> used`` through a
  conditional update only, so one coupon can never back two orders.
- For percentage coupons ``value`` is a rate in (0, 1]: ``0.1`` means 10 %.
- ``Campaign.rules`` holds spend thresholds:
  ``[{"min_amount": "200", "discount": "20"}, ...]``.
"""

from __future__ import annotations

from decimal import Decimal
from typing import List, Tuple

from django.db import models
from django.utils import timezone

from modules.core.models import BaseModel
from modules.marketing.constants import (
    CampaignStatus,
    CampaignType,
    CouponScope,
    CouponStatus,
    CouponType,
    UserCouponStatus,
)


class Coupon(BaseModel):
    name = models.CharField(max_length=100)
    coupon_type = models.CharField(max_length=20, choices=CouponType.choices)
    value = models.DecimalField(max_digits=12, decimal_places=2)
    min_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    max_discount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    applicable_scope = models.CharField(
        max_length=20,
        choices=CouponScope.choices,
        default=CouponScope.ALL,
    )
    start_time = models.DateTimeField()
    end_time = models.DateTimeField()
    status = models.CharField(
        max_length=20,
        choices=CouponStatus.choices,
        default=CouponStatus.ACTIVE,
    )

    class Meta:
        db_table = "coupons"
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(value__gt=0),
                name="coupons_value_positive",
            ),
        ]

    def __str__(self) -> str:
        return self.name


class UserCoupon(BaseModel):
    customer = models.ForeignKey(
        "customers.Customer",
        on_delete=models.CASCADE,
        related_name="coupons",
    )
    coupon = models.ForeignKey(
        "marketing.Coupon",
        on_delete=models.PROTECT,
        related_name="user_coupons",
    )
    status = models.CharField(
        max_length=20,
        choices=UserCouponStatus.choices,
        default=UserCouponStatus.UNUSED,
    )
    expired_at = models.DateTimeField()
    used_at = models.DateTimeField(null=True, blank=True)
    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )

    class Meta:
        db_table = "user_coupons"
        ordering = ["expired_at"]
        indexes = [
            models.Index(fields=["customer", "status"], name="user_coupons_owner_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.coupon_id} -> {self.customer_id} [{self.status}]"


class Campaign(BaseModel):
    name = models.CharField(max_length=100)
    campaign_type = models.CharField(
        max_length=20,
        choices=CampaignType.choices,
        default=CampaignType.DISCOUNT,
    )
    rules = models.JSONField(default=list)
    start_time = models.DateTimeField()
    end_time = models.DateTimeField()
    status = models.CharField(
        max_length=20,
        choices=CampaignStatus.choices,
        default=CampaignStatus.ACTIVE,
    )

    class Meta:
        db_table = "campaigns"
        ordering = ["-created_at"]

    def is_running(self, now=None) -> bool:
        now = now or timezone.now()
        return self.status == CampaignStatus.ACTIVE and self.start_time <= now <= self.end_time

    def threshold_rules(self) -> List[Tuple[Decimal, Decimal]]:
        """Parsed ``(min_amount, discount)`` pairs.

        Accepts both a bare list and the legacy ``{"rules": [...]}`` shape.
        Malformed entries are skipped.
        """
        raw = self.rules.get("rules", []) if isinstance(self.rules, dict) else self.rules
        parsed: List[Tuple[Decimal, Decimal]] = []
        for rule in raw or []:
            try:
                parsed.append(
                    (Decimal(str(rule["min_amount"])), Decimal(str(rule["discount"])))
                )
            except (KeyError, TypeError, ArithmeticError):
                continue
        return parsed

    def __str__(self) -> str:
        return self.name
