"""Order DRF serializers for API input/output.

The serializer operates at the Interface layer (API Views).
Business logic lives in the Service Layer, which receives
Pydantic DTOs from ``dtos.py``.
"""

from __future__ import annotations

from rest_framework import serializers

from modules.orders.constants import TransactionType
from modules.orders.models import Order, OrderItem, OrderStatusHistory

# ---------------------------------------------------------------------------
# Input Serializers
# ---------------------------------------------------------------------------


class CreateOrderItemSerializer(serializers.Serializer):
    """Validates a single item in an order creation request."""

    product_id = serializers.UUIDField()
    sku_id = serializers.UUIDField(required=False, allow_null=True, default=None)
    quantity = serializers.IntegerField(min_value=1)


class CreateOrderSerializer(serializers.Serializer):
    """Validates the order creation request payload.

    The owner is always the authenticated customer, never a body field.
    """

    items = CreateOrderItemSerializer(many=True, allow_empty=False)
    transaction_type = serializers.ChoiceField(
        choices=TransactionType.choices, default=TransactionType.RETAIL
    )
    address_id = serializers.UUIDField(required=False, allow_null=True, default=None)
    user_coupon_id = serializers.UUIDField(required=False, allow_null=True, default=None)
    remark = serializers.CharField(required=False, default="", allow_blank=True, max_length=500)


class CreateOrderFromCartSerializer(serializers.Serializer):
    address_id = serializers.UUIDField(required=False, allow_null=True, default=None)
    user_coupon_id = serializers.UUIDField(required=False, allow_null=True, default=None)
    remark = serializers.CharField(required=False, default="", allow_blank=True, max_length=500)


class CancelOrderSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, default="", allow_blank=True, max_length=255)


class ShipOrderSerializer(serializers.Serializer):
    express_company = serializers.CharField(max_length=50)
    express_no = serializers.CharField(max_length=64)


# ---------------------------------------------------------------------------
# Output Serializers (Read)
# ---------------------------------------------------------------------------


class OrderItemSerializer(serializers.ModelSerializer):
    """Read serializer for the item snapshots."""

    class Meta:
        model = OrderItem
        fields = [
            "id",
            "product_id",
            "sku_id",
            "product_name",
            "product_image",
            "sku_info",
            "unit_price",
            "quantity",
            "subtotal",
        ]
        read_only_fields = fields


class StatusHistorySerializer(serializers.ModelSerializer):
    """Read serializer for order status history records."""

    class Meta:
        model = OrderStatusHistory
        fields = [
            "id",
            "old_status",
            "new_status",
            "notes",
            "created_at",
        ]
        read_only_fields = fields


class OrderSerializer(serializers.ModelSerializer):
    """Read serializer for orders with nested items and history."""

    status_name = serializers.CharField(read_only=True)
    items = OrderItemSerializer(many=True, read_only=True)
    status_history = StatusHistorySerializer(many=True, read_only=True)

    class Meta:
        model = Order
        fields = [
            "id",
            "order_number",
            "customer_id",
            "transaction_type",
            "status",
            "status_name",
            "original_amount",
            "discount_amount",
            "actual_amount",
            "user_coupon_id",
            "campaign_id",
            "address_snapshot",
            "remark",
            "cancel_reason",
            "express_company",
            "express_no",
            "paid_at",
            "shipped_at",
            "received_at",
            "completed_at",
            "cancelled_at",
            "created_at",
            "updated_at",
            "items",
            "status_history",
        ]
        read_only_fields = fields


class OrderListSerializer(serializers.ModelSerializer):
    """Lightweight serializer for order list (no nested relations)."""

    status_name = serializers.CharField(read_only=True)

    class Meta:
        model = Order
        fields = [
            "id",
            "order_number",
            "transaction_type",
            "status",
            "status_name",
            "actual_amount",
            "created_at",
        ]
        read_only_fields = fields
