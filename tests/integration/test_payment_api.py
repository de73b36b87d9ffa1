"""Payment and refund endpoints, including the gateway webhooks."""

from __future__ import annotations

import pytest
from rest_framework.test import APIClient

from modules.orders.constants import OrderStatus
from modules.payments.constants import PaymentStatus, RefundStatus
from modules.payments.models import Payment

pytestmark = pytest.mark.integration

PAYMENTS = "/api/v1/payments/"
PAYMENT_WEBHOOK = "/api/v1/payments/webhook/"
REFUNDS = "/api/v1/refunds/"
REFUND_WEBHOOK = "/api/v1/refunds/webhook/"


@pytest.fixture()
def order(make_order, customer, make_product):
    return make_order(customer, [(make_product(price="120.00"), 1)])


def _post_raw(client, path, raw: bytes):
    return client.post(path, data=raw, content_type="application/jose")


def _pay(auth_client, api_client, order, payment_notification):
    created = auth_client.post(PAYMENTS, {"order_id": str(order.id)}, format="json")
    payment = Payment.objects.get(payment_no=created.json()["payment_no"])
    _post_raw(api_client, PAYMENT_WEBHOOK, payment_notification(payment))
    return payment


class TestPayments:
    def test_create_payment(self, use_gateway, auth_client, order):
        response = auth_client.post(
            PAYMENTS, {"order_id": str(order.id), "payment_channel": "native"}, format="json"
        )

        assert response.status_code == 201
        body = response.json()
        assert body["amount"] == "120.00"
        assert body["status"] == PaymentStatus.PENDING
        assert body["channel_params"] == {"code_url": "weixin://wxpay/bizpayurl?pr=abc"}

    def test_gateway_outage_is_a_bad_gateway(self, use_gateway, gateway_recorder, auth_client, order):
        gateway_recorder.fail_with = 500

        response = auth_client.post(PAYMENTS, {"order_id": str(order.id)}, format="json")

        assert response.status_code == 502
        assert response.json()["code"] == 6005

    def test_webhook_pays_the_order_once(
        self, use_gateway, auth_client, api_client, order, payment_notification
    ):
        created = auth_client.post(PAYMENTS, {"order_id": str(order.id)}, format="json")
        payment = Payment.objects.get(payment_no=created.json()["payment_no"])
        raw = payment_notification(payment)

        first = _post_raw(api_client, PAYMENT_WEBHOOK, raw)
        second = _post_raw(api_client, PAYMENT_WEBHOOK, raw)

        assert first.status_code == second.status_code == 200
        assert first.json() == {"code": "SUCCESS", "message": "OK"}
        order.refresh_from_db()
        assert order.status == OrderStatus.PAID

        detail = auth_client.get(f"{PAYMENTS}{payment.payment_no}/").json()
        assert detail["status"] == PaymentStatus.SUCCESS
        assert detail["transaction_id"] == "4200000001"

    def test_webhook_with_a_bad_signature(
        self, use_gateway, auth_client, api_client, order, sign_notification
    ):
        created = auth_client.post(PAYMENTS, {"order_id": str(order.id)}, format="json")
        raw = sign_notification(
            secret="not-the-merchant-secret-but-long-enough",
            out_trade_no=created.json()["payment_no"],
            trade_state="SUCCESS",
            amount={"total": 12000},
        )

        response = _post_raw(api_client, PAYMENT_WEBHOOK, raw)

        assert response.status_code == 400
        assert response.json()["code"] == 6003
        order.refresh_from_db()
        assert order.status == OrderStatus.PENDING

    def test_payments_are_owner_scoped(
        self, use_gateway, auth_client, other_customer, order
    ):
        created = auth_client.post(PAYMENTS, {"order_id": str(order.id)}, format="json")
        intruder = APIClient()
        intruder.force_authenticate(user=other_customer.user)

        response = intruder.get(f"{PAYMENTS}{created.json()['payment_no']}/")

        assert response.status_code == 404
        assert auth_client.get(PAYMENTS).json()["count"] == 1


class TestRefunds:
    def test_full_refund_flow(
        self,
        use_gateway,
        auth_client,
        staff_client,
        api_client,
        order,
        payment_notification,
        sign_notification,
    ):
        _pay(auth_client, api_client, order, payment_notification)

        created = auth_client.post(
            REFUNDS,
            {"order_id": str(order.id), "amount": "120.00", "reason": "Wrong size"},
            format="json",
        )
        assert created.status_code == 201
        refund = created.json()
        assert refund["order_no"] == order.order_number
        assert refund["status"] == RefundStatus.PENDING

        approved = staff_client.post(f"{REFUNDS}{refund['id']}/approve/")
        executed = staff_client.post(f"{REFUNDS}{refund['id']}/execute/")
        assert approved.json()["status"] == RefundStatus.APPROVED
        assert executed.json()["status"] == RefundStatus.PROCESSING

        raw = sign_notification(
            out_refund_no=refund["refund_no"], refund_id="RF-EXT-0001", refund_status="SUCCESS"
        )
        acknowledged = _post_raw(api_client, REFUND_WEBHOOK, raw)

        assert acknowledged.status_code == 200
        order.refresh_from_db()
        assert order.status == OrderStatus.REFUNDED
        assert auth_client.get(f"{REFUNDS}{refund['id']}/").json()["status"] == RefundStatus.SUCCESS

    def test_refund_above_the_paid_amount(
        self, use_gateway, auth_client, api_client, order, payment_notification
    ):
        _pay(auth_client, api_client, order, payment_notification)

        response = auth_client.post(
            REFUNDS,
            {"order_id": str(order.id), "amount": "300.00", "reason": "All of it"},
            format="json",
        )

        assert response.status_code == 422
        assert response.json()["code"] == 6102

    def test_customers_cannot_review_refunds(
        self, use_gateway, auth_client, api_client, order, payment_notification
    ):
        _pay(auth_client, api_client, order, payment_notification)
        refund = auth_client.post(
            REFUNDS,
            {"order_id": str(order.id), "amount": "10.00", "reason": "Scratch"},
            format="json",
        ).json()

        assert auth_client.post(f"{REFUNDS}{refund['id']}/approve/").status_code == 403

    def test_customer_cancel_and_staff_reject(
        self, use_gateway, auth_client, staff_client, api_client, order, payment_notification
    ):
        _pay(auth_client, api_client, order, payment_notification)
        payload = {"order_id": str(order.id), "amount": "10.00", "reason": "Scratch"}

        first = auth_client.post(REFUNDS, payload, format="json").json()
        cancelled = auth_client.post(f"{REFUNDS}{first['id']}/cancel/")
        second = auth_client.post(REFUNDS, payload, format="json").json()
        rejected = staff_client.post(
            f"{REFUNDS}{second['id']}/reject/", {"reason": "Outside policy"}, format="json"
        )

        assert cancelled.json()["status"] == RefundStatus.REJECTED
        assert rejected.json()["reject_reason"] == "Outside policy"
        order.refresh_from_db()
        assert order.status == OrderStatus.PAID

    def test_list_refunds_by_status(
        self, use_gateway, auth_client, staff_client, api_client, order, payment_notification
    ):
        _pay(auth_client, api_client, order, payment_notification)
        auth_client.post(
            REFUNDS,
            {"order_id": str(order.id), "amount": "10.00", "reason": "Scratch"},
            format="json",
        )

        assert auth_client.get(REFUNDS, {"status": "pending"}).json()["count"] == 1
        assert staff_client.get(REFUNDS, {"status": "success"}).json()["count"] == 0
