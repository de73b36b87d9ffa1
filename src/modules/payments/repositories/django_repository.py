"""Django ORM implementations of the Payment and Refund repositories.

Status changes that may race (expiry sweep against a late callback) are
single conditional ``UPDATE ... WHERE status = 'pending'`` statements;
callback processing itself works on a row obtained with
``select_for_update``.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID

import structlog
from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Sum
from django.utils import timezone

from modules.core.money import ZERO
from modules.payments.constants import OPEN_REFUND_STATES, PaymentStatus, RefundStatus
from modules.payments.models import Payment, Refund
from modules.payments.repositories.interfaces import IPaymentRepository, IRefundRepository

logger = structlog.get_logger(__name__)


class PaymentDjangoRepository(IPaymentRepository):
    """Concrete Payment repository backed by Django ORM."""

    def create(self, data: Dict[str, Any]) -> Payment:
        payment = Payment(**data)
        payment.save()
        logger.info("payment.persisted", payment_no=payment.payment_no)
        return payment

    def get_by_id(self, id: str) -> Optional[Payment]:
        try:
            return Payment.objects.filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def get_by_payment_no(self, payment_no: str) -> Optional[Payment]:
        return Payment.objects.filter(payment_no=payment_no).first()

    def get_for_update_by_payment_no(self, payment_no: str) -> Optional[Payment]:
        return Payment.objects.select_for_update().filter(payment_no=payment_no).first()

    def get_successful_for_order(self, order_id: UUID, lock: bool = False) -> Optional[Payment]:
        queryset = Payment.objects.filter(
            order_id=order_id,
            status__in=[PaymentStatus.SUCCESS, PaymentStatus.REFUNDED],
        )
        if lock:
            queryset = queryset.select_for_update()
        return queryset.order_by("-paid_at").first()

    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[Payment]:
        queryset = Payment.objects.all()
        if filters:
            queryset = queryset.filter(**filters)
        return list(queryset)

    @transaction.atomic
    def save(self, entity: Payment) -> Payment:
        entity.save()
        logger.info("payment.saved", payment_no=entity.payment_no, status=entity.status)
        return entity

    # ------------------------------------------------------------------
    # Conditional transitions
    # ------------------------------------------------------------------

    def list_expired_pending_ids(self, now: datetime, limit: int) -> List[UUID]:
        return list(
            Payment.objects.filter(status=PaymentStatus.PENDING, expired_at__lt=now)
            .order_by("expired_at")
            .values_list("id", flat=True)[:limit]
        )

    def close_if_pending(self, payment_id: UUID, now: datetime) -> bool:
        updated = Payment.objects.filter(
            id=payment_id,
            status=PaymentStatus.PENDING,
            expired_at__lt=now,
        ).update(status=PaymentStatus.CLOSED, updated_at=timezone.now())
        return updated == 1

    def mark_refunded(self, payment_id: UUID) -> bool:
        updated = Payment.objects.filter(id=payment_id, status=PaymentStatus.SUCCESS).update(
            status=PaymentStatus.REFUNDED, updated_at=timezone.now()
        )
        return updated == 1


class RefundDjangoRepository(IRefundRepository):
    """Concrete Refund repository backed by Django ORM."""

    def create(self, data: Dict[str, Any]) -> Refund:
        refund = Refund(**data)
        refund.save()
        logger.info("refund.persisted", refund_no=refund.refund_no)
        return refund

    def get_by_id(self, id: str) -> Optional[Refund]:
        try:
            return Refund.objects.select_related("order", "payment").filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def get_for_update(self, id: str) -> Optional[Refund]:
        try:
            return Refund.objects.select_for_update().filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def get_for_update_by_refund_no(self, refund_no: str) -> Optional[Refund]:
        return Refund.objects.select_for_update().filter(refund_no=refund_no).first()

    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[Refund]:
        queryset = Refund.objects.select_related("order")
        if filters:
            queryset = queryset.filter(**filters)
        return list(queryset)

    @transaction.atomic
    def save(self, entity: Refund) -> Refund:
        entity.save()
        logger.info("refund.saved", refund_no=entity.refund_no, status=entity.status)
        return entity

    # ------------------------------------------------------------------
    # Aggregates
    # ------------------------------------------------------------------

    def exists_open_for_order(self, order_id: UUID) -> bool:
        return Refund.objects.filter(order_id=order_id, status__in=OPEN_REFUND_STATES).exists()

    def total_committed(self, payment_id: UUID) -> Decimal:
        total = (
            Refund.objects.filter(payment_id=payment_id)
            .exclude(status=RefundStatus.REJECTED)
            .aggregate(total=Sum("amount"))["total"]
        )
        return total or ZERO

    def total_succeeded(self, payment_id: UUID) -> Decimal:
        total = Refund.objects.filter(
            payment_id=payment_id, status=RefundStatus.SUCCESS
        ).aggregate(total=Sum("amount"))["total"]
        return total or ZERO
