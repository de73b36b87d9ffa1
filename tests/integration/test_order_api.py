"""Order endpoints end to end: auth, ownership, filters and error format."""

from __future__ import annotations

from uuid import uuid4

import pytest
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient

from modules.cart.models import CartItem
from modules.orders.constants import OrderStatus
from modules.orders.dtos import ShipOrderDTO

pytestmark = pytest.mark.integration

ORDERS = "/api/v1/orders/"


def _order_payload(*lines, **extra):
    return {
        "items": [{"product_id": str(product.id), "quantity": qty} for product, qty in lines],
        **extra,
    }


class TestCreate:
    def test_create_returns_the_priced_order(self, auth_client, make_product, make_campaign):
        make_campaign([{"min_amount": "200", "discount": "20"}])
        tent = make_product(price="80.00")
        stove = make_product(price="100.00")

        response = auth_client.post(
            ORDERS, _order_payload((tent, 2), (stove, 1), remark="leave at door"), format="json"
        )

        assert response.status_code == 201
        body = response.json()
        assert body["status"] == OrderStatus.PENDING
        assert body["status_name"] == "Awaiting payment"
        assert body["original_amount"] == "260.00"
        assert body["discount_amount"] == "20.00"
        assert body["actual_amount"] == "240.00"
        assert body["remark"] == "leave at door"
        assert len(body["items"]) == 2

    def test_idempotency_key_header(self, auth_client, make_product):
        product = make_product(stock=10)
        payload = _order_payload((product, 1))

        first = auth_client.post(ORDERS, payload, format="json", HTTP_IDEMPOTENCY_KEY="abc-1")
        second = auth_client.post(ORDERS, payload, format="json", HTTP_IDEMPOTENCY_KEY="abc-1")

        assert first.json()["id"] == second.json()["id"]
        product.refresh_from_db()
        assert product.stock == 9

    def test_idempotency_key_is_scoped_to_the_caller(
        self, auth_client, customer, other_customer, make_product
    ):
        product = make_product(stock=10)
        payload = _order_payload((product, 1))
        other_client = APIClient()
        other_client.force_authenticate(user=other_customer.user)

        first = auth_client.post(ORDERS, payload, format="json", HTTP_IDEMPOTENCY_KEY="checkout-1")
        second = other_client.post(ORDERS, payload, format="json", HTTP_IDEMPOTENCY_KEY="checkout-1")

        assert first.status_code == 201
        assert second.status_code == 201
        assert second.json()["id"] != first.json()["id"]
        assert customer.orders.count() == 1
        assert other_customer.orders.count() == 1
        product.refresh_from_db()
        assert product.stock == 8

    def test_out_of_stock_is_a_conflict(self, auth_client, make_product):
        product = make_product(stock=1)

        response = auth_client.post(ORDERS, _order_payload((product, 2)), format="json")

        assert response.status_code == 409
        assert response.json()["code"] == 5003

    def test_off_shelf_product(self, auth_client, make_product):
        product = make_product(is_on_sale=False)

        response = auth_client.post(ORDERS, _order_payload((product, 1)), format="json")

        assert response.status_code == 422
        assert response.json()["code"] == 5002

    def test_unknown_product(self, auth_client):
        response = auth_client.post(
            ORDERS, {"items": [{"product_id": str(uuid4()), "quantity": 1}]}, format="json"
        )
        assert response.status_code == 404
        assert response.json()["code"] == 5001

    def test_payload_validation(self, auth_client):
        response = auth_client.post(ORDERS, {"items": []}, format="json")
        assert response.status_code == 400
        assert "items" in response.json()

    def test_from_cart(self, auth_client, customer, make_product):
        CartItem.objects.create(customer=customer, product=make_product(price="15.00"), quantity=2)

        response = auth_client.post(f"{ORDERS}from-cart/", {}, format="json")

        assert response.status_code == 201
        assert response.json()["actual_amount"] == "30.00"
        assert not CartItem.objects.filter(customer=customer).exists()

    def test_from_empty_cart(self, auth_client, customer):
        response = auth_client.post(f"{ORDERS}from-cart/", {}, format="json")
        assert response.status_code == 422
        assert response.json()["code"] == 5103


class TestAccess:
    def test_anonymous_is_rejected(self, api_client):
        assert api_client.get(ORDERS).status_code == 401

    def test_user_without_customer_profile(self, make_product):
        user = get_user_model().objects.create_user(username="ghost", password="x")
        client = APIClient()
        client.force_authenticate(user=user)

        response = client.post(ORDERS, _order_payload((make_product(), 1)), format="json")

        assert response.status_code == 403
        assert response.json()["code"] == 1003

    def test_customers_only_see_their_own_orders(
        self, auth_client, make_order, customer, other_customer, make_product
    ):
        mine = make_order(customer, [(make_product(), 1)])
        theirs = make_order(other_customer, [(make_product(), 1)])

        listing = auth_client.get(ORDERS)
        foreign = auth_client.get(f"{ORDERS}{theirs.id}/")

        assert [row["id"] for row in listing.json()["results"]] == [str(mine.id)]
        assert foreign.status_code == 404
        assert foreign.json()["code"] == 5101

    def test_staff_see_every_order(self, staff_client, make_order, customer, other_customer, make_product):
        make_order(customer, [(make_product(), 1)])
        make_order(other_customer, [(make_product(), 1)])

        assert staff_client.get(ORDERS).json()["count"] == 2

    def test_customers_cannot_ship(self, auth_client, make_order, customer, make_product):
        order = make_order(customer, [(make_product(), 1)])
        response = auth_client.post(
            f"{ORDERS}{order.id}/ship/", {"express_company": "SF", "express_no": "1"}, format="json"
        )
        assert response.status_code == 403


class TestListing:
    def test_filter_by_status_and_amount(
        self, auth_client, order_service, make_order, customer, make_product
    ):
        cheap = make_order(customer, [(make_product(price="5.00"), 1)])
        pricey = make_order(customer, [(make_product(price="500.00"), 1)])
        order_service.cancel_order(cheap.id)

        by_status = auth_client.get(ORDERS, {"status": "pending"}).json()
        by_amount = auth_client.get(ORDERS, {"min_amount": "100"}).json()

        assert [row["id"] for row in by_status["results"]] == [str(pricey.id)]
        assert [row["id"] for row in by_amount["results"]] == [str(pricey.id)]


class TestLifecycle:
    def test_cancel_ship_and_receive(
        self, auth_client, staff_client, order_service, make_order, customer, make_product
    ):
        to_cancel = make_order(customer, [(make_product(), 1)])
        to_ship = make_order(customer, [(make_product(), 1)])
        order_service.mark_paid(to_ship.id)

        cancelled = auth_client.post(f"{ORDERS}{to_cancel.id}/cancel/", {"reason": "dup"}, format="json")
        prepared = staff_client.post(f"{ORDERS}{to_ship.id}/prepare/")
        shipped = staff_client.post(
            f"{ORDERS}{to_ship.id}/ship/",
            {"express_company": "SF", "express_no": "SF123"},
            format="json",
        )
        received = auth_client.post(f"{ORDERS}{to_ship.id}/confirm-receive/")

        assert cancelled.json()["status"] == OrderStatus.CANCELLED
        assert prepared.json()["status"] == OrderStatus.PENDING_SHIP
        assert shipped.json()["express_no"] == "SF123"
        assert received.json()["status"] == OrderStatus.COMPLETED

    def test_cancelling_a_shipped_order_is_a_conflict(
        self, auth_client, order_service, make_order, customer, make_product
    ):
        order = make_order(customer, [(make_product(), 1)])
        order_service.mark_paid(order.id)
        order_service.ship_order(order.id, ShipOrderDTO(express_company="SF", express_no="1"))

        response = auth_client.post(f"{ORDERS}{order.id}/cancel/", {}, format="json")

        assert response.status_code == 409
        assert response.json() == {
            "code": 5102,
            "detail": "Cannot cancel order in status shipped.",
        }
        order.refresh_from_db()
        assert order.status == OrderStatus.SHIPPED
