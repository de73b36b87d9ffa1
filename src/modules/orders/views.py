"""Order API views.

Exposes the ``OrderService`` via HTTP using DRF ViewSets.  Domain
exceptions propagate to ``domain_exception_handler``, which renders them
with their stable code and HTTP status.

Customers only ever see and act on their own orders; staff users see
every order and drive the fulfilment transitions.
"""

from __future__ import annotations

from typing import Optional
from uuid import UUID

from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.filters import OrderingFilter, SearchFilter
from rest_framework.permissions import IsAdminUser, IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.throttling import BaseThrottle
from rest_framework.viewsets import GenericViewSet

from modules.core.pagination import StandardResultsSetPagination
from modules.customers.context import current_customer
from modules.orders.container import build_order_service
from modules.orders.dtos import (
    CreateOrderDTO,
    CreateOrderFromCartDTO,
    CreateOrderItemDTO,
    ShipOrderDTO,
)
from modules.orders.filters import OrderFilter
from modules.orders.models import Order
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.serializers import (
    CancelOrderSerializer,
    CreateOrderFromCartSerializer,
    CreateOrderSerializer,
    OrderListSerializer,
    OrderSerializer,
    ShipOrderSerializer,
)

STAFF_ACTIONS = {"ship", "prepare"}


class OrderViewSet(GenericViewSet):
    """ViewSet for Order operations.

    Does **not** extend ``ModelViewSet``: every write goes through
    ``OrderService``.
    """

    queryset = Order.objects.all()
    filterset_class = OrderFilter
    search_fields = ["order_number"]
    ordering_fields = ["created_at", "actual_amount", "status"]
    ordering = ["-created_at", "-id"]
    filter_backends = [DjangoFilterBackend, SearchFilter, OrderingFilter]

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = build_order_service()

    def get_permissions(self):
        if self.action in STAFF_ACTIONS:
            return [IsAdminUser()]
        return [IsAuthenticated()]

    def get_throttles(self) -> list[BaseThrottle]:
        """Per-action throttling scopes."""
        throttle_scope: str | None
        if self.action in {"create", "from_cart"}:
            throttle_scope = "order_creation"
        elif self.action in {"list", "retrieve"}:
            throttle_scope = "order_listing"
        else:
            throttle_scope = None
        self.throttle_scope = throttle_scope
        return super().get_throttles()

    def _owner_id(self, request: Request) -> Optional[UUID]:
        """``None`` (no scoping) for staff, the caller's customer id otherwise."""
        if request.user.is_staff:
            return None
        return current_customer(request).id

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create(self, request: Request) -> Response:
        """POST /api/v1/orders/

        Supports idempotency via the ``Idempotency-Key`` header.
        """
        customer = current_customer(request)
        create_serializer = CreateOrderSerializer(data=request.data)
        create_serializer.is_valid(raise_exception=True)

        data = create_serializer.validated_data
        dto = CreateOrderDTO(
            customer_id=customer.id,
            items=[
                CreateOrderItemDTO(
                    product_id=item["product_id"],
                    sku_id=item["sku_id"],
                    quantity=item["quantity"],
                )
                for item in data["items"]
            ],
            transaction_type=data["transaction_type"],
            address_id=data["address_id"],
            user_coupon_id=data["user_coupon_id"],
            remark=data["remark"],
            idempotency_key=request.headers.get("Idempotency-Key"),
        )
        order = self._service.create_order(dto)
        return Response(OrderSerializer(order).data, status=status.HTTP_201_CREATED)

    @action(detail=False, methods=["post"], url_path="from-cart")
    def from_cart(self, request: Request) -> Response:
        """POST /api/v1/orders/from-cart/"""
        customer = current_customer(request)
        serializer = CreateOrderFromCartSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        order = self._service.create_order_from_cart(
            CreateOrderFromCartDTO(customer_id=customer.id, **serializer.validated_data)
        )
        return Response(OrderSerializer(order).data, status=status.HTTP_201_CREATED)

    # ------------------------------------------------------------------
    # List / Retrieve
    # ------------------------------------------------------------------

    def get_queryset(self):
        if getattr(self, "swagger_fake_view", False):
            return Order.objects.none()
        filters = {}
        owner_id = self._owner_id(self.request)
        if owner_id is not None:
            filters["customer_id"] = owner_id
        return OrderDjangoRepository().queryset(filters)

    def list(self, request: Request) -> Response:
        """GET /api/v1/orders/

        Filtering (status, transaction type, date and amount range) is
        handled by ``OrderFilter``; results are paginated.
        """
        queryset = self.filter_queryset(self.get_queryset())

        paginator = StandardResultsSetPagination()
        page = paginator.paginate_queryset(queryset, request)
        serializer = OrderListSerializer(page, many=True)
        return paginator.get_paginated_response(serializer.data)

    def retrieve(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/orders/{pk}/"""
        order = self._service.get_order(pk, self._owner_id(request))
        return Response(OrderSerializer(order).data)

    # ------------------------------------------------------------------
    # Customer transitions
    # ------------------------------------------------------------------

    @action(detail=True, methods=["post"])
    def cancel(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/orders/{pk}/cancel/

        Cancels a pending order and releases its stock and coupon.
        """
        serializer = CancelOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        order = self._service.cancel_order(
            order_id=pk,
            customer_id=self._owner_id(request),
            reason=serializer.validated_data["reason"],
        )
        return Response(OrderSerializer(order).data)

    @action(detail=True, methods=["post"], url_path="confirm-receive")
    def confirm_receive(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/orders/{pk}/confirm-receive/"""
        order = self._service.confirm_receive(pk, current_customer(request).id)
        return Response(OrderSerializer(order).data)

    # ------------------------------------------------------------------
    # Staff transitions
    # ------------------------------------------------------------------

    @action(detail=True, methods=["post"])
    def prepare(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/orders/{pk}/prepare/ (staff)"""
        order = self._service.prepare_shipment(pk)
        return Response(OrderSerializer(self._service.get_order(order.id)).data)

    @action(detail=True, methods=["post"])
    def ship(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/orders/{pk}/ship/ (staff)"""
        serializer = ShipOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        order = self._service.ship_order(pk, ShipOrderDTO(**serializer.validated_data))
        return Response(OrderSerializer(self._service.get_order(order.id)).data)
