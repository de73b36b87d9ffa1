"""PaymentService: intents, gateway callbacks and the expiry sweep."""

from __future__ import annotations

from datetime import datetime, timedelta
from datetime import timezone as dt_timezone
from decimal import Decimal

import pytest
from freezegun import freeze_time

from modules.orders.constants import OrderStatus
from modules.orders.exceptions import InvalidOrderStatus, OrderNotFound
from modules.orders.models import OrderStatusHistory
from modules.payments.constants import PaymentChannel, PaymentMethod, PaymentStatus
from modules.payments.container import build_payment_service
from modules.payments.dtos import CreatePaymentDTO
from modules.payments.exceptions import (
    CallbackIntegrityError,
    InvalidPaymentAmount,
    PaymentCreationFailed,
    PaymentNotFound,
)
from modules.payments.models import Payment
from modules.payments.repositories import PaymentDjangoRepository
from modules.payments.services import PaymentService

pytestmark = pytest.mark.unit


@pytest.fixture()
def payment_service(gateway):
    return build_payment_service(gateway=gateway)


@pytest.fixture()
def order(make_order, customer, make_product):
    return make_order(customer, [(make_product(price="80.00"), 2), (make_product(price="100.00"), 1)])


@pytest.fixture()
def payment(payment_service, customer, order):
    intent = payment_service.create_payment(customer.id, CreatePaymentDTO(order_id=order.id))
    return Payment.objects.get(id=intent.payment_id)


def _paid_transitions(order) -> int:
    return OrderStatusHistory.objects.filter(order_id=order.id, new_status=OrderStatus.PAID).count()


class TestCreatePayment:
    def test_intent_for_a_pending_order(self, payment_service, customer, order, gateway_recorder):
        with freeze_time("2026-03-01 10:00:00"):
            intent = payment_service.create_payment(
                customer.id,
                CreatePaymentDTO(order_id=order.id, payer_id="openid-1"),
            )

        assert intent.amount == Decimal("260.00")
        assert intent.status == PaymentStatus.PENDING
        assert intent.payment_no.startswith("P")
        assert intent.expired_at == datetime(2026, 3, 1, 10, 30, tzinfo=dt_timezone.utc)
        assert intent.channel_params["package"] == "prepay_id=wx-prepay-0001"

        payment = Payment.objects.get(payment_no=intent.payment_no)
        assert payment.order_no == order.order_number
        assert payment.customer_id == customer.id
        assert len(gateway_recorder.requests) == 1

    def test_native_channel(self, payment_service, customer, order):
        intent = payment_service.create_payment(
            customer.id,
            CreatePaymentDTO(order_id=order.id, payment_channel=PaymentChannel.NATIVE),
        )
        assert intent.channel_params == {"code_url": "weixin://wxpay/bizpayurl?pr=abc"}

    def test_unbridged_method_skips_the_gateway(
        self, payment_service, customer, order, gateway_recorder
    ):
        intent = payment_service.create_payment(
            customer.id,
            CreatePaymentDTO(order_id=order.id, payment_method=PaymentMethod.BALANCE),
        )

        assert intent.channel_params == {}
        assert gateway_recorder.requests == []

    def test_gateway_failure_keeps_the_pending_row(
        self, payment_service, customer, order, gateway_recorder
    ):
        gateway_recorder.fail_with = 503

        with pytest.raises(PaymentCreationFailed):
            payment_service.create_payment(customer.id, CreatePaymentDTO(order_id=order.id))

        payment = Payment.objects.get(order_id=order.id)
        assert payment.status == PaymentStatus.PENDING

    def test_unconfigured_gateway(self, customer, order, order_service):
        service = PaymentService(PaymentDjangoRepository(), order_service, gateway=None)
        with pytest.raises(PaymentCreationFailed):
            service.create_payment(customer.id, CreatePaymentDTO(order_id=order.id))

    def test_order_must_be_pending(self, payment_service, order_service, customer, order):
        order_service.cancel_order(order.id)
        with pytest.raises(InvalidOrderStatus):
            payment_service.create_payment(customer.id, CreatePaymentDTO(order_id=order.id))
        assert not Payment.objects.filter(order_id=order.id).exists()

    def test_foreign_order_is_not_found(self, payment_service, other_customer, order):
        with pytest.raises(OrderNotFound):
            payment_service.create_payment(other_customer.id, CreatePaymentDTO(order_id=order.id))

    def test_nothing_to_pay(
        self, payment_service, make_order, customer, make_product, make_user_coupon
    ):
        user_coupon = make_user_coupon(customer, value="50")
        free = make_order(customer, [(make_product(price="10.00"), 1)], user_coupon_id=user_coupon.id)
        assert free.actual_amount == Decimal("0.00")

        with pytest.raises(InvalidPaymentAmount):
            payment_service.create_payment(customer.id, CreatePaymentDTO(order_id=free.id))


class TestCallback:
    def test_success_pays_the_order(self, payment_service, payment, order, payment_notification):
        result = payment_service.handle_callback(payment_notification(payment), {})

        assert result.status == PaymentStatus.SUCCESS
        assert result.transaction_id == "4200000001"
        assert result.paid_at is not None
        order.refresh_from_db()
        assert order.status == OrderStatus.PAID
        assert order.paid_at == result.paid_at

    def test_duplicate_callback_changes_nothing(
        self, payment_service, payment, order, payment_notification
    ):
        raw = payment_notification(payment)

        first = payment_service.handle_callback(raw, {})
        second = payment_service.handle_callback(raw, {})

        assert first.status == second.status == PaymentStatus.SUCCESS
        assert second.paid_at == first.paid_at
        assert _paid_transitions(order) == 1
        assert sum(item.product.sales_count for item in order.items.all()) == 3

    def test_amount_mismatch_leaves_everything_untouched(
        self, payment_service, payment, order, payment_notification
    ):
        with pytest.raises(CallbackIntegrityError):
            payment_service.handle_callback(payment_notification(payment, amount_minor=1), {})

        payment.refresh_from_db()
        order.refresh_from_db()
        assert payment.status == PaymentStatus.PENDING
        assert order.status == OrderStatus.PENDING

    def test_forged_signature_is_rejected(
        self, payment_service, payment, sign_notification
    ):
        raw = sign_notification(
            secret="an-attacker-chosen-secret-of-good-length",
            out_trade_no=payment.payment_no,
            trade_state="SUCCESS",
            amount={"total": 26000},
        )
        with pytest.raises(CallbackIntegrityError):
            payment_service.handle_callback(raw, {})
        payment.refresh_from_db()
        assert payment.status == PaymentStatus.PENDING

    def test_failed_trade_marks_the_payment_failed(
        self, payment_service, payment, order, payment_notification
    ):
        raw = payment_notification(payment, trade_state="PAYERROR", trade_state_desc="Card declined")

        result = payment_service.handle_callback(raw, {})

        assert result.status == PaymentStatus.FAILED
        assert result.error_message == "Card declined"
        order.refresh_from_db()
        assert order.status == OrderStatus.PENDING

    def test_unknown_payment(self, payment_service, sign_notification):
        raw = sign_notification(out_trade_no="P-missing", trade_state="SUCCESS", amount={"total": 1})
        with pytest.raises(PaymentNotFound):
            payment_service.handle_callback(raw, {})

    def test_late_success_for_a_cancelled_order_keeps_the_order_cancelled(
        self, payment_service, order_service, payment, order, payment_notification
    ):
        order_service.cancel_order(order.id)

        result = payment_service.handle_callback(payment_notification(payment), {})

        assert result.status == PaymentStatus.SUCCESS
        order.refresh_from_db()
        assert order.status == OrderStatus.CANCELLED


class TestExpirySweep:
    def test_expired_payments_are_closed_but_orders_untouched(
        self, payment_service, payment, order
    ):
        closed = payment_service.close_expired_payments(now=payment.expired_at + timedelta(seconds=1))

        assert closed == 1
        payment.refresh_from_db()
        order.refresh_from_db()
        assert payment.status == PaymentStatus.CLOSED
        assert order.status == OrderStatus.PENDING

    def test_unexpired_payments_stay_pending(self, payment_service, payment):
        assert payment_service.close_expired_payments(now=payment.expired_at - timedelta(seconds=1)) == 0
        payment.refresh_from_db()
        assert payment.status == PaymentStatus.PENDING

    def test_callback_after_close_is_ignored(
        self, payment_service, payment, order, payment_notification
    ):
        payment_service.close_expired_payments(now=payment.expired_at + timedelta(minutes=1))

        result = payment_service.handle_callback(payment_notification(payment), {})

        assert result.status == PaymentStatus.CLOSED
        order.refresh_from_db()
        assert order.status == OrderStatus.PENDING

    def test_paid_payments_are_never_closed(
        self, payment_service, payment, payment_notification
    ):
        payment_service.handle_callback(payment_notification(payment), {})

        assert payment_service.close_expired_payments(now=payment.expired_at + timedelta(hours=1)) == 0

    def test_batch_size_limits_one_sweep(self, payment_service, make_order, customer, make_product):
        for _ in range(3):
            pending = make_order(customer, [(make_product(), 1)])
            payment_service.create_payment(
                customer.id,
                CreatePaymentDTO(order_id=pending.id, payment_method=PaymentMethod.BALANCE),
            )
        later = Payment.objects.order_by("-expired_at").first().expired_at + timedelta(seconds=1)

        assert payment_service.close_expired_payments(now=later, batch_size=2) == 2
        assert payment_service.close_expired_payments(now=later, batch_size=2) == 1


class TestQueries:
    def test_query_is_owner_scoped(self, payment_service, payment, customer, other_customer):
        assert payment_service.query_payment(payment.payment_no, customer.id).id == payment.id
        with pytest.raises(PaymentNotFound):
            payment_service.query_payment(payment.payment_no, other_customer.id)

    def test_list_payments(self, payment_service, payment, customer, other_customer):
        assert [p.id for p in payment_service.list_payments(customer.id)] == [payment.id]
        assert payment_service.list_payments(other_customer.id) == []
