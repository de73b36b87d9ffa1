from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

import httpx
import jwt as pyjwt
import pytest
from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.utils import timezone
from rest_framework.test import APIClient

from modules.customers.models import Customer
from modules.marketing.constants import CouponType
from modules.marketing.models import Campaign, Coupon, UserCoupon
from modules.orders.container import build_order_service
from modules.orders.dtos import CreateOrderDTO, CreateOrderItemDTO
from modules.payments.gateway import HttpPaymentGateway
from modules.products.models import Product, Sku

User = get_user_model()


@pytest.fixture(autouse=True)
def _use_db(db):
    """Automatically use the test database for all tests."""


@pytest.fixture(autouse=True)
def _clear_cache():
    """Throttle counters live in the cache; start every test from zero."""
    cache.clear()


@pytest.fixture()
def api_client():
    """DRF APIClient for testing API endpoints."""
    return APIClient()


@pytest.fixture()
def api_client_with_correlation(api_client):
    """APIClient pre-configured with a known correlation ID header."""
    cid = "test-correlation-id-fixture"
    api_client.defaults["HTTP_X_REQUEST_ID"] = cid
    return api_client, cid


# ---------------------------------------------------------------------------
# Owners
# ---------------------------------------------------------------------------


@pytest.fixture()
def user():
    return User.objects.create_user(username="buyer", password="testpass123")


@pytest.fixture()
def customer(user):
    return Customer.objects.create(
        user=user,
        name="Test Buyer",
        email="buyer@example.com",
        phone="13812345678",
        is_active=True,
    )


@pytest.fixture()
def other_customer():
    other = User.objects.create_user(username="other", password="testpass123")
    return Customer.objects.create(user=other, name="Other Buyer", email="other@example.com")


@pytest.fixture()
def auth_client(customer):
    """APIClient authenticated as the ``customer`` fixture's user."""
    client = APIClient()
    client.force_authenticate(user=customer.user)
    return client


@pytest.fixture()
def staff_client():
    staff = User.objects.create_user(username="operator", password="testpass123", is_staff=True)
    client = APIClient()
    client.force_authenticate(user=staff)
    return client


# ---------------------------------------------------------------------------
# Catalogue and marketing factories
# ---------------------------------------------------------------------------


@pytest.fixture()
def make_product():
    counter = {"n": 0}

    def _make(price="10.00", stock=100, **kwargs) -> Product:
        counter["n"] += 1
        return Product.objects.create(
            name=kwargs.pop("name", f"Product {counter['n']}"),
            price=Decimal(price),
            stock=stock,
            images=kwargs.pop("images", [f"https://img.test/{counter['n']}.png"]),
            **kwargs,
        )

    return _make


@pytest.fixture()
def make_sku():
    counter = {"n": 0}

    def _make(product: Product, price="12.00", stock=10, **kwargs) -> Sku:
        counter["n"] += 1
        return Sku.objects.create(
            product=product,
            code=kwargs.pop("code", f"sku-{counter['n']}"),
            attributes=kwargs.pop("attributes", {"size": "M", "color": "red"}),
            price=Decimal(price),
            stock=stock,
            **kwargs,
        )

    return _make


@pytest.fixture()
def make_campaign():
    def _make(rules, **kwargs) -> Campaign:
        now = timezone.now()
        return Campaign.objects.create(
            name=kwargs.pop("name", "Spend and save"),
            rules=rules,
            start_time=kwargs.pop("start_time", now - timedelta(days=1)),
            end_time=kwargs.pop("end_time", now + timedelta(days=1)),
            **kwargs,
        )

    return _make


@pytest.fixture()
def make_user_coupon():
    def _make(
        customer: Customer,
        value="10.00",
        min_amount="0.00",
        coupon_type=CouponType.FIXED,
        **kwargs,
    ) -> UserCoupon:
        now = timezone.now()
        coupon = Coupon.objects.create(
            name=kwargs.pop("name", f"Coupon {value}"),
            coupon_type=coupon_type,
            value=Decimal(value),
            min_amount=Decimal(min_amount),
            max_discount=kwargs.pop("max_discount", None),
            applicable_scope=kwargs.pop("applicable_scope", "all"),
            start_time=now - timedelta(days=1),
            end_time=now + timedelta(days=30),
        )
        return UserCoupon.objects.create(
            customer=customer,
            coupon=coupon,
            expired_at=kwargs.pop("expired_at", now + timedelta(days=7)),
        )

    return _make


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------


@pytest.fixture()
def order_service():
    return build_order_service()


@pytest.fixture()
def make_order(order_service):
    """Create a pending order through ``OrderService``.

    ``lines`` is a list of ``(product, quantity)`` or ``(product, sku, quantity)``.
    """

    def _make(customer: Customer, lines, **kwargs):
        items = []
        for line in lines:
            if len(line) == 3:
                product, sku, quantity = line
            else:
                (product, quantity), sku = line, None
            items.append(
                CreateOrderItemDTO(
                    product_id=product.id,
                    sku_id=sku.id if sku else None,
                    quantity=quantity,
                )
            )
        return order_service.create_order(
            CreateOrderDTO(customer_id=customer.id, items=items, **kwargs)
        )

    return _make


# ---------------------------------------------------------------------------
# Payment gateway
# ---------------------------------------------------------------------------


class GatewayRecorder:
    """Serves canned gateway answers through ``httpx.MockTransport``."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.fail_with: int | None = None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_with is not None:
            return httpx.Response(self.fail_with, json={"code": "SYSTEM_ERROR"})
        path = request.url.path
        if path.endswith("/native"):
            return httpx.Response(200, json={"code_url": "weixin://wxpay/bizpayurl?pr=abc"})
        if path.endswith("/h5"):
            return httpx.Response(200, json={"h5_url": "https://pay.test/h5/abc"})
        if path.startswith("/v3/refund"):
            return httpx.Response(200, json={"refund_id": "RF-EXT-0001", "status": "PROCESSING"})
        return httpx.Response(200, json={"prepay_id": "wx-prepay-0001"})


@pytest.fixture()
def gateway_recorder():
    return GatewayRecorder()


@pytest.fixture()
def gateway(gateway_recorder):
    client = httpx.Client(
        base_url=settings.PAYMENT_GATEWAY_URL,
        transport=httpx.MockTransport(gateway_recorder),
    )
    return HttpPaymentGateway(
        base_url=settings.PAYMENT_GATEWAY_URL,
        app_id=settings.PAYMENT_GATEWAY_APP_ID,
        merchant_id=settings.PAYMENT_GATEWAY_MERCHANT_ID,
        api_key=settings.PAYMENT_GATEWAY_API_KEY,
        webhook_secret=settings.PAYMENT_WEBHOOK_SECRET,
        notify_url=settings.PAYMENT_NOTIFY_URL,
        client=client,
    )


@pytest.fixture()
def sign_notification():
    """Encode notification claims the way the gateway signs them."""

    def _sign(secret: str | None = None, **claims) -> bytes:
        token = pyjwt.encode(claims, secret or settings.PAYMENT_WEBHOOK_SECRET, algorithm="HS256")
        return token.encode()

    return _sign


@pytest.fixture()
def payment_notification(sign_notification):
    def _make(payment, trade_state="SUCCESS", amount_minor=None, **extra) -> bytes:
        total = amount_minor if amount_minor is not None else int(payment.amount * 100)
        return sign_notification(
            out_trade_no=payment.payment_no,
            transaction_id=extra.pop("transaction_id", "4200000001"),
            trade_state=trade_state,
            amount={"total": total, "currency": "CNY"},
            **extra,
        )

    return _make


@pytest.fixture()
def use_gateway(monkeypatch, gateway):
    """Make the API composition root use the mock-transport gateway."""
    monkeypatch.setattr("modules.payments.container.build_gateway", lambda: gateway)
    return gateway
