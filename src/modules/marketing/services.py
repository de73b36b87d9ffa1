"""Discount composer: campaign and coupon pricing.

Evaluation order is fixed:

1. The running spend-threshold campaign is evaluated against the
   original amount (largest rule discount whose threshold is met).
2. Coupons are evaluated against what remains after the campaign.
3. ``final = max(original - campaign - coupon, 0)``.

No coupon is applied unless the caller explicitly asks for one, and the
requested coupon is honoured only when it is (one of) the best-matching
coupons for the remaining amount.
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING, List, Optional, Tuple
from uuid import UUID

import structlog
from django.utils import timezone

from modules.core.money import ZERO, quantize
from modules.marketing.constants import CampaignType, CouponScope, CouponType
from modules.marketing.dtos import DiscountDetail, DiscountResult
from modules.marketing.exceptions import CouponNotApplicable

if TYPE_CHECKING:
    from modules.marketing.models import Campaign, Coupon, UserCoupon
    from modules.marketing.repositories.interfaces import IMarketingRepository

logger = structlog.get_logger(__name__)


class CampaignService:
    def __init__(self, repository: IMarketingRepository) -> None:
        self._repo = repository

    def calculate_discount(self, amount: Decimal) -> Tuple[Decimal, Optional[Campaign]]:
        """Best threshold discount of the running campaign, capped at *amount*."""
        campaign = self._repo.get_running_campaign(CampaignType.DISCOUNT, timezone.now())
        if campaign is None:
            return ZERO, None

        best = ZERO
        for min_amount, discount in campaign.threshold_rules():
            if amount >= min_amount and discount > best:
                best = discount
        if best <= 0:
            return ZERO, None
        return quantize(min(best, amount)), campaign


class CouponService:
    def __init__(self, repository: IMarketingRepository) -> None:
        self._repo = repository

    @staticmethod
    def calculate_discount(coupon: Coupon, amount: Decimal) -> Decimal:
        """Discount *coupon* grants on *amount* (zero below its threshold)."""
        if amount <= 0 or amount < coupon.min_amount:
            return ZERO
        if coupon.coupon_type == CouponType.FIXED:
            discount = coupon.value
        else:
            discount = quantize(amount * coupon.value)
        if coupon.max_discount is not None and discount > coupon.max_discount:
            discount = coupon.max_discount
        return quantize(min(discount, amount))

    def usable_coupons(
        self, customer_id: UUID, transaction_type: str, amount: Decimal
    ) -> List[Tuple[UserCoupon, Decimal]]:
        """Usable coupons with the discount each grants, best first."""
        scopes = [CouponScope.ALL]
        if transaction_type in CouponScope.values:
            scopes.append(transaction_type)
        candidates = self._repo.list_usable_coupons(
            customer_id, scopes, amount, timezone.now()
        )
        priced = [(uc, self.calculate_discount(uc.coupon, amount)) for uc in candidates]
        priced = [(uc, discount) for uc, discount in priced if discount > 0]
        return sorted(priced, key=lambda pair: pair[1], reverse=True)

    def best_coupon_for_order(
        self, customer_id: UUID, transaction_type: str, amount: Decimal
    ) -> Tuple[Optional[UserCoupon], Decimal]:
        usable = self.usable_coupons(customer_id, transaction_type, amount)
        if not usable:
            return None, ZERO
        return usable[0]

    def redeem(self, user_coupon_id: UUID, order_id: UUID) -> None:
        """Consume the coupon for *order_id* (single use).

        Raises:
            CouponNotApplicable: the coupon was used or expired meanwhile.
        """
        if not self._repo.mark_used(user_coupon_id, order_id, timezone.now()):
            logger.warning(
                "coupon.redeem_conflict",
                user_coupon_id=str(user_coupon_id),
                order_id=str(order_id),
            )
            raise CouponNotApplicable(f"Coupon {user_coupon_id} is no longer available.")
        logger.info("coupon.redeemed", user_coupon_id=str(user_coupon_id), order_id=str(order_id))

    def restore(self, order_id: UUID) -> int:
        restored = self._repo.mark_unused_for_order(order_id)
        if restored:
            logger.info("coupon.restored", order_id=str(order_id), count=restored)
        return restored


class DiscountCalculator:
    """Composes campaign and coupon discounts for one order."""

    def __init__(self, campaigns: CampaignService, coupons: CouponService) -> None:
        self._campaigns = campaigns
        self._coupons = coupons

    def compose(
        self,
        customer_id: UUID,
        transaction_type: str,
        original_amount: Decimal,
        user_coupon_id: Optional[UUID] = None,
    ) -> DiscountResult:
        original = quantize(original_amount)
        log = logger.bind(customer_id=str(customer_id), original_amount=str(original))
        breakdown: List[DiscountDetail] = []

        campaign_discount, campaign = self._campaigns.calculate_discount(original)
        if campaign is not None:
            breakdown.append(
                DiscountDetail(
                    kind="campaign",
                    reference_id=campaign.id,
                    name=campaign.name,
                    amount=campaign_discount,
                    description=f"Campaign discount {campaign_discount}",
                )
            )

        remaining = original - campaign_discount
        coupon_discount = ZERO
        applied_coupon_id: Optional[UUID] = None

        if user_coupon_id is not None:
            usable = self._coupons.usable_coupons(customer_id, transaction_type, remaining)
            best_discount = usable[0][1] if usable else ZERO
            match = next((pair for pair in usable if pair[0].id == user_coupon_id), None)
            if match is not None and match[1] == best_discount:
                user_coupon, coupon_discount = match
                applied_coupon_id = user_coupon.id
                breakdown.append(
                    DiscountDetail(
                        kind="coupon",
                        reference_id=user_coupon.id,
                        name=user_coupon.coupon.name,
                        amount=coupon_discount,
                        description=describe_coupon(user_coupon.coupon),
                    )
                )
            else:
                log.info("discount.coupon_not_applied", user_coupon_id=str(user_coupon_id))

        total = campaign_discount + coupon_discount
        result = DiscountResult(
            original_amount=original,
            campaign_discount=campaign_discount,
            coupon_discount=coupon_discount,
            total_discount=total,
            final_amount=max(original - total, ZERO),
            campaign_id=campaign.id if campaign is not None else None,
            user_coupon_id=applied_coupon_id,
            breakdown=breakdown,
        )
        log.info(
            "discount.composed",
            campaign_discount=str(campaign_discount),
            coupon_discount=str(coupon_discount),
            final_amount=str(result.final_amount),
        )
        return result

    def preview(self, original_amount: Decimal) -> DiscountResult:
        """Campaign-only pricing shown before a coupon is chosen."""
        original = quantize(original_amount)
        campaign_discount, campaign = self._campaigns.calculate_discount(original)
        breakdown = []
        if campaign is not None:
            breakdown.append(
                DiscountDetail(
                    kind="campaign",
                    reference_id=campaign.id,
                    name=campaign.name,
                    amount=campaign_discount,
                    description=f"Campaign discount {campaign_discount}",
                )
            )
        return DiscountResult(
            original_amount=original,
            campaign_discount=campaign_discount,
            total_discount=campaign_discount,
            final_amount=max(original - campaign_discount, ZERO),
            campaign_id=campaign.id if campaign is not None else None,
            breakdown=breakdown,
        )

    def redeem_coupon(self, user_coupon_id: UUID, order_id: UUID) -> None:
        self._coupons.redeem(user_coupon_id, order_id)

    def restore_coupons(self, order_id: UUID) -> int:
        return self._coupons.restore(order_id)


def describe_coupon(coupon: Coupon) -> str:
    if coupon.coupon_type == CouponType.FIXED:
        text = f"Save {coupon.value}"
    else:
        text = f"{(coupon.value * 100).normalize():f}% off"
    if coupon.min_amount > 0:
        return f"Spend {coupon.min_amount}, {text[0].lower()}{text[1:]}"
    return text
