"""Django ORM implementation of the marketing repository."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID

import structlog
from django.core.exceptions import ValidationError
from django.utils import timezone

from modules.marketing.constants import CampaignStatus, CouponStatus, UserCouponStatus
from modules.marketing.models import Campaign, UserCoupon
from modules.marketing.repositories.interfaces import IMarketingRepository

logger = structlog.get_logger(__name__)


class MarketingDjangoRepository(IMarketingRepository):
    def get_by_id(self, id: str) -> Optional[UserCoupon]:
        try:
            return UserCoupon.objects.select_related("coupon").filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[UserCoupon]:
        queryset = UserCoupon.objects.select_related("coupon")
        if filters:
            queryset = queryset.filter(**filters)
        return list(queryset)

    def save(self, entity: UserCoupon) -> UserCoupon:
        entity.save()
        return entity

    def get_running_campaign(self, campaign_type: str, now: datetime) -> Optional[Campaign]:
        return (
            Campaign.objects.filter(
                campaign_type=campaign_type,
                status=CampaignStatus.ACTIVE,
                start_time__lte=now,
                end_time__gte=now,
            )
            .order_by("-created_at")
            .first()
        )

    def list_usable_coupons(
        self,
        customer_id: UUID,
        scopes: List[str],
        amount: Decimal,
        now: datetime,
    ) -> List[UserCoupon]:
        return list(
            UserCoupon.objects.select_related("coupon")
            .filter(
                customer_id=customer_id,
                status=UserCouponStatus.UNUSED,
                expired_at__gt=now,
                coupon__status=CouponStatus.ACTIVE,
                coupon__start_time__lte=now,
                coupon__end_time__gte=now,
                coupon__min_amount__lte=amount,
                coupon__applicable_scope__in=scopes,
            )
            .order_by("expired_at", "id")
        )

    def mark_used(self, user_coupon_id: UUID, order_id: UUID, now: datetime) -> bool:
        updated = UserCoupon.objects.filter(
            id=user_coupon_id,
            status=UserCouponStatus.UNUSED,
            expired_at__gt=now,
        ).update(
            status=UserCouponStatus.USED,
            used_at=now,
            order_id=order_id,
            updated_at=now,
        )
        return updated == 1

    def mark_unused_for_order(self, order_id: UUID) -> int:
        return UserCoupon.objects.filter(
            order_id=order_id, status=UserCouponStatus.USED
        ).update(
            status=UserCouponStatus.UNUSED,
            used_at=None,
            order=None,
            updated_at=timezone.now(),
        )
