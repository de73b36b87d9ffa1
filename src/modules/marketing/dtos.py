"""Discount DTOs.

``DiscountResult`` is the outcome of pricing one order: the two discount
components in their fixed evaluation order, the final payable amount and
a human-readable breakdown.
"""

from __future__ import annotations

from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, model_validator


class DiscountDetail(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: str  # "campaign" | "coupon"
    reference_id: UUID
    name: str
    amount: Decimal
    description: str


class DiscountResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    original_amount: Decimal
    campaign_discount: Decimal = Decimal("0.00")
    coupon_discount: Decimal = Decimal("0.00")
    total_discount: Decimal = Decimal("0.00")
    final_amount: Decimal
    campaign_id: Optional[UUID] = None
    user_coupon_id: Optional[UUID] = None
    breakdown: List[DiscountDetail] = []

    @model_validator(mode="after")
    def discounts_within_original(self):
        if self.campaign_discount + self.coupon_discount > self.original_amount:
            raise ValueError("Discounts cannot exceed the original amount.")
        if self.final_amount < 0:
            raise ValueError("Final amount cannot be negative.")
        return self
