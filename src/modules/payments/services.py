"""Payment service layer.

A Payment leaves ``pending`` exactly once.  Two writers race for that
transition:

* the gateway callback, which locks the row (``select_for_update``) and
  performs the duplicate check, the amount check and the status write under
  that single lock;
* the expiry sweep, which uses a conditional ``UPDATE ... WHERE status =
  'pending'`` per row.

Network calls to the gateway never happen inside a database transaction:
``create_payment`` commits the pending row before asking for channel
parameters, and ``handle_callback`` verifies the signature before opening
the transaction.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import TYPE_CHECKING, List, Mapping, Optional
from uuid import UUID

import structlog
from django.db import transaction
from django.utils import timezone

from modules.core.money import to_minor_units
from modules.orders.constants import OrderStatus
from modules.orders.exceptions import InvalidOrderStatus
from modules.payments.constants import PaymentMethod, PaymentStatus
from modules.payments.dtos import CreatePaymentDTO, PaymentIntentDTO
from modules.payments.exceptions import (
    CallbackIntegrityError,
    InvalidPaymentAmount,
    PaymentCreationFailed,
    PaymentGatewayUnavailable,
    PaymentNotFound,
)

if TYPE_CHECKING:
    from modules.orders.services import OrderService
    from modules.payments.gateway import GatewayNotification, IPaymentGateway
    from modules.payments.models import Payment
    from modules.payments.repositories.interfaces import IPaymentRepository

logger = structlog.get_logger(__name__)

# Methods whose money moves through the external gateway.
BRIDGED_METHODS = {PaymentMethod.WECHAT}


class PaymentService:
    def __init__(
        self,
        payment_repository: IPaymentRepository,
        order_service: OrderService,
        gateway: Optional[IPaymentGateway],
        expiry_minutes: int = 30,
    ) -> None:
        self._payment_repo = payment_repository
        self._orders = order_service
        self._gateway = gateway
        self._expiry = timedelta(minutes=expiry_minutes)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def create_payment(self, customer_id: UUID, dto: CreatePaymentDTO) -> PaymentIntentDTO:
        """Open a pending payment for a pending order.

        Raises:
            OrderNotFound: the order does not belong to the customer.
            InvalidOrderStatus: the order is not awaiting payment.
            InvalidPaymentAmount: the order's actual amount is zero.
            PaymentCreationFailed: the gateway did not return channel
                parameters; the pending row stays and expires normally.
        """
        payment = self._open_payment(customer_id, dto)
        log = logger.bind(payment_no=payment.payment_no, order_no=payment.order_no)

        channel_params = {}
        if dto.payment_method in BRIDGED_METHODS:
            try:
                channel_params = self._require_gateway().create_intent(
                    reference=payment.payment_no,
                    description=f"Order {payment.order_no}",
                    amount_minor=to_minor_units(payment.amount),
                    channel=dto.payment_channel,
                    payer_id=dto.payer_id,
                )
            except PaymentGatewayUnavailable as exc:
                log.error("payment.intent_failed", error=str(exc))
                raise PaymentCreationFailed() from exc

        log.info("payment.created", amount=str(payment.amount), method=dto.payment_method)
        return PaymentIntentDTO(
            payment_id=payment.id,
            payment_no=payment.payment_no,
            amount=payment.amount,
            status=payment.status,
            expired_at=payment.expired_at,
            channel_params=channel_params,
        )

    @transaction.atomic
    def _open_payment(self, customer_id: UUID, dto: CreatePaymentDTO) -> Payment:
        order = self._orders.get_order_for_update(dto.order_id, customer_id)
        if order.status != OrderStatus.PENDING:
            raise InvalidOrderStatus(f"Order {order.order_number} is not awaiting payment.")
        if order.actual_amount <= 0:
            raise InvalidPaymentAmount()

        return self._payment_repo.create(
            {
                "order_id": order.id,
                "order_no": order.order_number,
                "transaction_type": order.transaction_type,
                "customer_id": order.customer_id,
                "amount": order.actual_amount,
                "payment_method": dto.payment_method,
                "payment_channel": dto.payment_channel,
                "expired_at": timezone.now() + self._expiry,
            }
        )

    def handle_callback(self, raw_payload: bytes, headers: Mapping[str, str]) -> Payment:
        """Verify and apply a gateway payment notification.

        Safe to call any number of times with the same payload: only the
        first delivery that finds the payment ``pending`` changes anything.

        Raises:
            CallbackIntegrityError: bad signature, malformed body or amount
                mismatch.  The payment is left untouched.
            PaymentNotFound: unknown payment reference.
        """
        notification = self._require_gateway().verify_and_parse(raw_payload, headers)
        return self._apply_notification(notification)

    @transaction.atomic
    def _apply_notification(self, notification: GatewayNotification) -> Payment:
        payment = self._payment_repo.get_for_update_by_payment_no(notification.out_trade_no)
        if not payment:
            raise PaymentNotFound(f"Payment {notification.out_trade_no} not found.")

        log = logger.bind(payment_no=payment.payment_no, trade_state=notification.trade_state)
        if not payment.is_pending:
            log.info("payment.callback_duplicate", status=payment.status)
            return payment

        expected = to_minor_units(payment.amount)
        if notification.amount_minor != expected:
            log.warning(
                "payment.callback_amount_mismatch",
                expected=expected,
                reported=notification.amount_minor,
            )
            raise CallbackIntegrityError("Reported amount does not match the payment.")

        if notification.is_success:
            payment.status = PaymentStatus.SUCCESS
            payment.transaction_id = notification.transaction_id
            payment.paid_at = timezone.now()
            self._payment_repo.save(payment)
            self._orders.mark_paid(payment.order_id, payment.paid_at)
            log.info("payment.succeeded", transaction_id=notification.transaction_id)
        else:
            payment.status = PaymentStatus.FAILED
            payment.error_message = (
                notification.trade_state_desc or notification.trade_state
            )[:255]
            self._payment_repo.save(payment)
            log.info("payment.failed", error_message=payment.error_message)
        return payment

    def close_expired_payments(
        self, now: Optional[datetime] = None, batch_size: int = 100
    ) -> int:
        """Close pending payments past their expiry.  Orders are not touched."""
        now = now or timezone.now()
        closed = 0
        for payment_id in self._payment_repo.list_expired_pending_ids(now, batch_size):
            if self._payment_repo.close_if_pending(payment_id, now):
                closed += 1
        if closed:
            logger.info("payment.expired_closed", count=closed)
        return closed

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def query_payment(self, payment_no: str, customer_id: Optional[UUID] = None) -> Payment:
        payment = self._payment_repo.get_by_payment_no(payment_no)
        if not payment or (customer_id is not None and payment.customer_id != customer_id):
            raise PaymentNotFound(f"Payment {payment_no} not found.")
        return payment

    def list_payments(self, customer_id: UUID) -> List[Payment]:
        return self._payment_repo.list({"customer_id": customer_id})

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require_gateway(self) -> IPaymentGateway:
        if self._gateway is None:
            raise PaymentGatewayUnavailable("Payment gateway is not configured.")
        return self._gateway
