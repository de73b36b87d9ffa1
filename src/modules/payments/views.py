"""Payment and refund API views.

Customer endpoints are JWT-authenticated and scoped to the caller's own
records.  The two gateway webhooks carry no caller identity: they are
authenticated solely by the signature checked in the gateway bridge.
"""

from __future__ import annotations

from typing import Optional
from uuid import UUID

import structlog
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.permissions import AllowAny, IsAdminUser, IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework.viewsets import GenericViewSet

from modules.core.pagination import StandardResultsSetPagination
from modules.customers.context import current_customer
from modules.payments.container import build_payment_service, build_refund_service
from modules.payments.dtos import CreatePaymentDTO, CreateRefundDTO
from modules.payments.models import Payment, Refund
from modules.payments.serializers import (
    CreatePaymentSerializer,
    CreateRefundSerializer,
    PaymentIntentSerializer,
    PaymentSerializer,
    RefundSerializer,
    RejectRefundSerializer,
)

logger = structlog.get_logger(__name__)

WEBHOOK_ACK = {"code": "SUCCESS", "message": "OK"}


def _owner_id(request: Request) -> Optional[UUID]:
    if request.user.is_staff:
        return None
    return current_customer(request).id


class PaymentViewSet(GenericViewSet):
    queryset = Payment.objects.all()
    lookup_field = "payment_no"

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = build_payment_service()

    def create(self, request: Request) -> Response:
        """POST /api/v1/payments/"""
        customer = current_customer(request)
        serializer = CreatePaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        intent = self._service.create_payment(
            customer.id, CreatePaymentDTO(**serializer.validated_data)
        )
        return Response(
            PaymentIntentSerializer(intent.model_dump()).data,
            status=status.HTTP_201_CREATED,
        )

    def list(self, request: Request) -> Response:
        """GET /api/v1/payments/"""
        payments = self._service.list_payments(current_customer(request).id)
        paginator = StandardResultsSetPagination()
        page = paginator.paginate_queryset(payments, request)
        return paginator.get_paginated_response(PaymentSerializer(page, many=True).data)

    def retrieve(self, request: Request, payment_no: str | None = None) -> Response:
        """GET /api/v1/payments/{payment_no}/"""
        payment = self._service.query_payment(payment_no, _owner_id(request))
        return Response(PaymentSerializer(payment).data)


class PaymentWebhookView(APIView):
    """POST /api/v1/payments/webhook/

    Acknowledges with 200 once the notification is applied, including
    duplicates.  Integrity failures answer 400 and infrastructure failures
    5xx, so the gateway keeps retrying.
    """

    authentication_classes: list = []
    permission_classes = [AllowAny]
    throttle_classes: list = []

    def post(self, request: Request) -> Response:
        payment = build_payment_service().handle_callback(request.body, request.headers)
        logger.info("payment.webhook_acknowledged", payment_no=payment.payment_no)
        return Response(WEBHOOK_ACK)


class RefundViewSet(GenericViewSet):
    queryset = Refund.objects.all()

    STAFF_ACTIONS = {"approve", "reject", "execute"}

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = build_refund_service()

    def get_permissions(self):
        if self.action in self.STAFF_ACTIONS:
            return [IsAdminUser()]
        return [IsAuthenticated()]

    # ------------------------------------------------------------------
    # Customer
    # ------------------------------------------------------------------

    def create(self, request: Request) -> Response:
        """POST /api/v1/refunds/"""
        customer = current_customer(request)
        serializer = CreateRefundSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        refund = self._service.create_refund(
            customer.id, CreateRefundDTO(**serializer.validated_data)
        )
        return Response(RefundSerializer(refund).data, status=status.HTTP_201_CREATED)

    def list(self, request: Request) -> Response:
        """GET /api/v1/refunds/?status="""
        refunds = self._service.list_refunds(
            _owner_id(request), request.query_params.get("status")
        )
        paginator = StandardResultsSetPagination()
        page = paginator.paginate_queryset(refunds, request)
        return paginator.get_paginated_response(RefundSerializer(page, many=True).data)

    def retrieve(self, request: Request, pk: str | None = None) -> Response:
        refund = self._service.get_refund(pk, _owner_id(request))
        return Response(RefundSerializer(refund).data)

    @action(detail=True, methods=["post"])
    def cancel(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/refunds/{pk}/cancel/"""
        refund = self._service.cancel_refund(current_customer(request).id, pk)
        return Response(RefundSerializer(self._service.get_refund(refund.id)).data)

    # ------------------------------------------------------------------
    # Staff
    # ------------------------------------------------------------------

    @action(detail=True, methods=["post"])
    def approve(self, request: Request, pk: str | None = None) -> Response:
        refund = self._service.approve_refund(str(request.user.pk), pk)
        return Response(RefundSerializer(self._service.get_refund(refund.id)).data)

    @action(detail=True, methods=["post"])
    def reject(self, request: Request, pk: str | None = None) -> Response:
        serializer = RejectRefundSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        refund = self._service.reject_refund(
            str(request.user.pk), pk, serializer.validated_data["reason"]
        )
        return Response(RefundSerializer(self._service.get_refund(refund.id)).data)

    @action(detail=True, methods=["post"])
    def execute(self, request: Request, pk: str | None = None) -> Response:
        refund = self._service.execute_refund(pk)
        return Response(RefundSerializer(self._service.get_refund(refund.id)).data)


class RefundWebhookView(APIView):
    """POST /api/v1/refunds/webhook/ (gateway refund result)."""

    authentication_classes: list = []
    permission_classes = [AllowAny]
    throttle_classes: list = []

    def post(self, request: Request) -> Response:
        refund = build_refund_service().handle_refund_callback(request.body, request.headers)
        logger.info("refund.webhook_acknowledged", refund_no=refund.refund_no)
        return Response(WEBHOOK_ACK)
