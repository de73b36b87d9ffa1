"""Refund workflow.

::

    pending -> approved -> processing -> success | failed
    pending -> rejected            (customer cancel or operator reject)

Creating a refund moves the order to ``refunding`` and records the status
it interrupted; rejection, cancellation and a failed execution put the
order back there.  A successful refund finishes the order as ``refunded``
and runs the refund hooks through ``OrderService``.

Conservation: the non-rejected refunds of a payment never add up to more
than the payment amount.  The check runs while both the order and the
payment rows are locked.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional
from uuid import UUID

import structlog
from django.db import transaction
from django.utils import timezone

from modules.core.money import to_minor_units
from modules.orders.constants import REFUNDABLE_STATES
from modules.orders.exceptions import InvalidOrderStatus
from modules.payments.constants import OperatorType, RefundStatus
from modules.payments.dtos import CreateRefundDTO
from modules.payments.exceptions import (
    DuplicatePendingRefund,
    InvalidRefundStatus,
    PaymentGatewayUnavailable,
    PaymentNotFound,
    RefundAmountExceeded,
    RefundExecutionFailed,
    RefundNotFound,
)

if TYPE_CHECKING:
    from modules.orders.services import OrderService
    from modules.payments.gateway import IPaymentGateway
    from modules.payments.models import Refund
    from modules.payments.repositories.interfaces import (
        IPaymentRepository,
        IRefundRepository,
    )

logger = structlog.get_logger(__name__)

FINISHED_REFUND_STATES = {RefundStatus.SUCCESS, RefundStatus.FAILED, RefundStatus.REJECTED}


class RefundService:
    def __init__(
        self,
        refund_repository: IRefundRepository,
        payment_repository: IPaymentRepository,
        order_service: OrderService,
        gateway: Optional[IPaymentGateway],
    ) -> None:
        self._refund_repo = refund_repository
        self._payment_repo = payment_repository
        self._orders = order_service
        self._gateway = gateway

    # ------------------------------------------------------------------
    # Customer commands
    # ------------------------------------------------------------------

    @transaction.atomic
    def create_refund(self, customer_id: UUID, dto: CreateRefundDTO) -> Refund:
        """Request a refund for a paid order.

        Raises:
            OrderNotFound: the order does not belong to the customer.
            InvalidOrderStatus: the order is not paid, awaiting shipment
                or shipped.
            DuplicatePendingRefund: another refund is still open.
            RefundAmountExceeded: more than the order or payment allows.
            PaymentNotFound: the order has no settled payment.
        """
        order = self._orders.get_order_for_update(dto.order_id, customer_id)
        log = logger.bind(order_id=str(order.id), amount=str(dto.amount))

        if order.status not in REFUNDABLE_STATES:
            log.warning("refund.order_not_refundable", status=order.status)
            raise InvalidOrderStatus(f"Cannot refund order in status {order.status}.")
        if self._refund_repo.exists_open_for_order(order.id):
            raise DuplicatePendingRefund()
        if dto.amount > order.actual_amount:
            log.warning("refund.amount_exceeded", limit=str(order.actual_amount))
            raise RefundAmountExceeded()

        payment = self._payment_repo.get_successful_for_order(order.id, lock=True)
        if not payment:
            raise PaymentNotFound(f"No settled payment for order {order.order_number}.")
        committed = self._refund_repo.total_committed(payment.id)
        if committed + dto.amount > payment.amount:
            log.warning("refund.amount_exceeded", committed=str(committed), limit=str(payment.amount))
            raise RefundAmountExceeded()

        refund = self._refund_repo.create(
            {
                "order_id": order.id,
                "payment_id": payment.id,
                "customer_id": order.customer_id,
                "amount": dto.amount,
                "reason": dto.reason,
                "previous_order_status": order.status,
                "operator_id": str(customer_id),
                "operator_type": OperatorType.USER,
            }
        )
        self._orders.begin_refund(order.id)
        log.info("refund.created", refund_no=refund.refund_no)
        return refund

    @transaction.atomic
    def cancel_refund(self, customer_id: UUID, refund_id: Any) -> Refund:
        """Customer withdraws a pending refund; the order goes back."""
        refund = self._get_for_update(refund_id)
        if refund.customer_id != customer_id:
            raise RefundNotFound(f"Refund {refund_id} not found.")
        return self._close_pending(
            refund,
            operator_id=str(customer_id),
            operator_type=OperatorType.USER,
            reason="Cancelled by customer",
        )

    # ------------------------------------------------------------------
    # Operator commands
    # ------------------------------------------------------------------

    @transaction.atomic
    def approve_refund(self, operator_id: str, refund_id: Any) -> Refund:
        """``pending -> approved``.  Approving an approved refund is a no-op."""
        refund = self._get_for_update(refund_id)
        if refund.status == RefundStatus.APPROVED:
            logger.info("refund.approve_duplicate", refund_no=refund.refund_no)
            return refund
        self._require_pending(refund)

        refund.status = RefundStatus.APPROVED
        refund.operator_id = str(operator_id)
        refund.operator_type = OperatorType.ADMIN
        refund.approved_at = timezone.now()
        self._refund_repo.save(refund)
        logger.info("refund.approved", refund_no=refund.refund_no, operator_id=str(operator_id))
        return refund

    @transaction.atomic
    def reject_refund(self, operator_id: str, refund_id: Any, reason: str = "") -> Refund:
        refund = self._get_for_update(refund_id)
        return self._close_pending(
            refund,
            operator_id=str(operator_id),
            operator_type=OperatorType.ADMIN,
            reason=reason,
        )

    def execute_refund(self, refund_id: Any) -> Refund:
        """Ask the gateway to move the money of an approved refund.

        The gateway call happens between two short transactions.  The
        refund number is the gateway idempotency key, so a retried
        execution never pays out twice.

        Raises:
            InvalidRefundStatus: the refund is not approved.
            RefundExecutionFailed: the gateway refused or was unreachable;
                the refund stays ``approved`` and can be retried.
        """
        with transaction.atomic():
            refund = self._get_for_update(refund_id)
            if refund.status in (RefundStatus.PROCESSING, RefundStatus.SUCCESS):
                return refund
            if refund.status != RefundStatus.APPROVED:
                raise InvalidRefundStatus(f"Cannot execute refund in status {refund.status}.")
            payment = self._payment_repo.get_by_id(str(refund.payment_id))
            request: Dict[str, Any] = {
                "original_reference": payment.payment_no,
                "refund_reference": refund.refund_no,
                "total_minor": to_minor_units(payment.amount),
                "refund_minor": to_minor_units(refund.amount),
                "reason": refund.reason,
            }

        log = logger.bind(refund_no=refund.refund_no)
        try:
            external_id = self._require_gateway().request_refund(**request)
        except PaymentGatewayUnavailable as exc:
            log.error("refund.execution_failed", error=str(exc))
            raise RefundExecutionFailed() from exc

        with transaction.atomic():
            refund = self._get_for_update(refund.id)
            if refund.status == RefundStatus.APPROVED:
                refund.status = RefundStatus.PROCESSING
                refund.transaction_id = external_id
                self._refund_repo.save(refund)
        log.info("refund.processing", transaction_id=external_id)
        return refund

    # ------------------------------------------------------------------
    # Gateway results
    # ------------------------------------------------------------------

    @transaction.atomic
    def complete_refund(
        self,
        refund_no: str,
        success: bool,
        message: str = "",
        transaction_id: str = "",
    ) -> Refund:
        """Record the gateway's verdict on an executed refund.

        Success finishes the order as ``refunded`` (and the payment, once
        fully refunded); failure restores the order.  Repeated results for
        a finished refund are ignored.
        """
        refund = self._refund_repo.get_for_update_by_refund_no(refund_no)
        if not refund:
            raise RefundNotFound(f"Refund {refund_no} not found.")

        log = logger.bind(refund_no=refund.refund_no, success=success)
        if refund.status in FINISHED_REFUND_STATES:
            log.info("refund.result_duplicate", status=refund.status)
            return refund
        if refund.status not in (RefundStatus.APPROVED, RefundStatus.PROCESSING):
            raise InvalidRefundStatus(f"Cannot complete refund in status {refund.status}.")

        if transaction_id:
            refund.transaction_id = transaction_id

        if success:
            refund.status = RefundStatus.SUCCESS
            refund.refunded_at = timezone.now()
            self._refund_repo.save(refund)

            payment = self._payment_repo.get_by_id(str(refund.payment_id))
            if self._refund_repo.total_succeeded(payment.id) >= payment.amount:
                self._payment_repo.mark_refunded(payment.id)
            self._orders.mark_refunded(refund.order_id)
            log.info("refund.succeeded")
        else:
            refund.status = RefundStatus.FAILED
            refund.failure_reason = message[:500]
            self._refund_repo.save(refund)
            self._orders.restore_after_refund(refund.order_id, refund.previous_order_status)
            log.warning("refund.failed", message=message)
        return refund

    def handle_refund_callback(self, raw_payload: bytes, headers: Mapping[str, str]) -> Refund:
        notification = self._require_gateway().verify_refund_notification(raw_payload, headers)
        return self.complete_refund(
            notification.out_refund_no,
            notification.is_success,
            message=notification.message,
            transaction_id=notification.refund_id,
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_refund(self, refund_id: Any, customer_id: Optional[UUID] = None) -> Refund:
        refund = self._refund_repo.get_by_id(str(refund_id))
        if not refund or (customer_id is not None and refund.customer_id != customer_id):
            raise RefundNotFound(f"Refund {refund_id} not found.")
        return refund

    def list_refunds(
        self, customer_id: Optional[UUID] = None, status: Optional[str] = None
    ) -> List[Refund]:
        filters: Dict[str, Any] = {}
        if customer_id is not None:
            filters["customer_id"] = customer_id
        if status:
            filters["status"] = status
        return self._refund_repo.list(filters)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _get_for_update(self, refund_id: Any) -> Refund:
        refund = self._refund_repo.get_for_update(str(refund_id))
        if not refund:
            raise RefundNotFound(f"Refund {refund_id} not found.")
        return refund

    def _require_pending(self, refund: Refund) -> None:
        if refund.status != RefundStatus.PENDING:
            logger.warning(
                "refund.invalid_status", refund_no=refund.refund_no, status=refund.status
            )
            raise InvalidRefundStatus(f"Refund {refund.refund_no} is {refund.status}.")

    def _close_pending(
        self, refund: Refund, operator_id: str, operator_type: str, reason: str
    ) -> Refund:
        self._require_pending(refund)
        refund.status = RefundStatus.REJECTED
        refund.reject_reason = reason[:500]
        refund.rejected_at = timezone.now()
        refund.operator_id = operator_id
        refund.operator_type = operator_type
        self._refund_repo.save(refund)
        self._orders.restore_after_refund(refund.order_id, refund.previous_order_status)
        logger.info("refund.rejected", refund_no=refund.refund_no, operator_type=operator_type)
        return refund

    def _require_gateway(self) -> IPaymentGateway:
        if self._gateway is None:
            raise PaymentGatewayUnavailable("Payment gateway is not configured.")
        return self._gateway
