"""Marketing repository interface."""

from __future__ import annotations

from abc import abstractmethod
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, List, Optional
from uuid import UUID

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.marketing.models import Campaign, UserCoupon


class IMarketingRepository(IRepository["UserCoupon"]):
    """Reads campaigns and customer coupons; flips coupon usage."""

    @abstractmethod
    def get_running_campaign(self, campaign_type: str, now: datetime) -> Optional[Campaign]:
        """The most recent active campaign whose window contains *now*."""

    @abstractmethod
    def list_usable_coupons(
        self,
        customer_id: UUID,
        scopes: List[str],
        amount: Decimal,
        now: datetime,
    ) -> List[UserCoupon]:
        """Unused, unexpired coupons of the customer usable for *amount*."""

    @abstractmethod
    def mark_used(self, user_coupon_id: UUID, order_id: UUID, now: datetime) -> bool:
        """``unused -> used`` conditional update bound to *order_id*."""

    @abstractmethod
    def mark_unused_for_order(self, order_id: UUID) -> int:
        """Give back the coupon(s) consumed by *order_id*."""
