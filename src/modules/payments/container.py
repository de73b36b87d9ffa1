"""Composition root for the Payments context."""

from __future__ import annotations

from typing import Optional

from django.conf import settings

from modules.orders.container import build_order_service
from modules.payments.gateway import HttpPaymentGateway, IPaymentGateway
from modules.payments.refunds import RefundService
from modules.payments.repositories.django_repository import (
    PaymentDjangoRepository,
    RefundDjangoRepository,
)
from modules.payments.services import PaymentService


def build_gateway() -> Optional[IPaymentGateway]:
    """HTTP gateway from ``PAYMENT_GATEWAY_*`` settings; ``None`` when unconfigured."""
    if not settings.PAYMENT_GATEWAY_URL:
        return None
    return HttpPaymentGateway(
        base_url=settings.PAYMENT_GATEWAY_URL,
        app_id=settings.PAYMENT_GATEWAY_APP_ID,
        merchant_id=settings.PAYMENT_GATEWAY_MERCHANT_ID,
        api_key=settings.PAYMENT_GATEWAY_API_KEY,
        webhook_secret=settings.PAYMENT_WEBHOOK_SECRET,
        notify_url=settings.PAYMENT_NOTIFY_URL,
        timeout=settings.PAYMENT_GATEWAY_TIMEOUT,
    )


def build_payment_service(gateway: Optional[IPaymentGateway] = None) -> PaymentService:
    return PaymentService(
        payment_repository=PaymentDjangoRepository(),
        order_service=build_order_service(),
        gateway=gateway or build_gateway(),
        expiry_minutes=settings.PAYMENT_EXPIRY_MINUTES,
    )


def build_refund_service(gateway: Optional[IPaymentGateway] = None) -> RefundService:
    return RefundService(
        refund_repository=RefundDjangoRepository(),
        payment_repository=PaymentDjangoRepository(),
        order_service=build_order_service(),
        gateway=gateway or build_gateway(),
    )
