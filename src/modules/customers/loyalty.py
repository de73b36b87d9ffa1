"""Loyalty points ledger.

Points are earned when an order completes and revoked when it is refunded:
``floor(amount * points_per_unit)`` in both directions, a refund revoking
at most what the same order earned.  Each movement is
recorded once per (customer, kind, order number); replays are no-ops.
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

import structlog
from django.db import transaction

from modules.core.money import floor_units
from modules.customers.exceptions import CustomerNotFound, InsufficientPoints
from modules.customers.models import PointsKind

if TYPE_CHECKING:
    from modules.customers.repositories.interfaces import ICustomerRepository

logger = structlog.get_logger(__name__)


class LoyaltyLedger:
    def __init__(
        self,
        customer_repository: ICustomerRepository,
        points_per_unit: Decimal = Decimal("1"),
    ) -> None:
        self._repo = customer_repository
        self._points_per_unit = Decimal(str(points_per_unit))

    def points_for(self, amount: Decimal) -> int:
        return max(floor_units(Decimal(str(amount)) * self._points_per_unit), 0)

    @transaction.atomic
    def credit_for_purchase(self, customer_id: UUID, amount: Decimal, order_no: str) -> int:
        """Credit purchase points.  Returns the number of points credited."""
        log = logger.bind(customer_id=str(customer_id), order_no=order_no)
        points = self.points_for(amount)
        if points <= 0:
            return 0
        if self._repo.has_points_entry(customer_id, PointsKind.CONSUME, order_no):
            log.info("loyalty.credit_duplicate")
            return 0

        self._repo.record_points(
            customer_id,
            PointsKind.CONSUME,
            points,
            order_no,
            description=f"Purchase {order_no}",
        )
        if not self._repo.add_points(customer_id, points):
            raise CustomerNotFound(f"Customer {customer_id} not found.")

        log.info("loyalty.credited", points=points)
        return points

    @transaction.atomic
    def debit_for_refund(self, customer_id: UUID, amount: Decimal, order_no: str) -> int:
        """Revoke the points the refunded order earned.

        Orders that never earned points (refunded before completion) revoke
        nothing, and the debit never exceeds what the order credited.

        Raises:
            InsufficientPoints: the balance would go negative (already spent).
        """
        log = logger.bind(customer_id=str(customer_id), order_no=order_no)
        points = self.points_for(amount)
        if points <= 0:
            return 0
        if self._repo.has_points_entry(customer_id, PointsKind.REFUND, order_no):
            log.info("loyalty.debit_duplicate")
            return 0
        earned = self._repo.get_points_entry(customer_id, PointsKind.CONSUME, order_no)
        if earned is None:
            log.info("loyalty.debit_nothing_earned")
            return 0
        points = min(points, earned.points)

        if not self._repo.deduct_points(customer_id, points):
            log.warning("loyalty.insufficient_points", points=points)
            raise InsufficientPoints(
                f"Cannot revoke {points} points from customer {customer_id}."
            )
        self._repo.record_points(
            customer_id,
            PointsKind.REFUND,
            -points,
            order_no,
            description=f"Refund {order_no}",
        )

        log.info("loyalty.debited", points=points)
        return points
