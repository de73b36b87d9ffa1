"""Payment and refund URL configuration.

The webhook paths are declared before the router so ``webhook`` is never
taken for a payment number or refund id.
"""

from __future__ import annotations

from django.urls import path
from rest_framework.routers import SimpleRouter

from modules.payments.views import (
    PaymentViewSet,
    PaymentWebhookView,
    RefundViewSet,
    RefundWebhookView,
)

router = SimpleRouter(trailing_slash=True)
router.register("payments", PaymentViewSet, basename="payment")
router.register("refunds", RefundViewSet, basename="refund")

urlpatterns = [
    path("payments/webhook/", PaymentWebhookView.as_view(), name="payment-webhook"),
    path("refunds/webhook/", RefundWebhookView.as_view(), name="refund-webhook"),
    *router.urls,
]
