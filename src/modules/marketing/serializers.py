"""Marketing DRF serializers."""

from __future__ import annotations

from decimal import Decimal

from rest_framework import serializers

from modules.orders.constants import TransactionType


class DiscountPreviewSerializer(serializers.Serializer):
    amount = serializers.DecimalField(
        max_digits=12, decimal_places=2, min_value=Decimal("0.01")
    )
    transaction_type = serializers.ChoiceField(
        choices=TransactionType.choices, default=TransactionType.RETAIL
    )
    user_coupon_id = serializers.UUIDField(required=False, allow_null=True, default=None)


class DiscountDetailSerializer(serializers.Serializer):
    kind = serializers.CharField()
    reference_id = serializers.UUIDField()
    name = serializers.CharField()
    amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    description = serializers.CharField()


class DiscountResultSerializer(serializers.Serializer):
    original_amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    campaign_discount = serializers.DecimalField(max_digits=12, decimal_places=2)
    coupon_discount = serializers.DecimalField(max_digits=12, decimal_places=2)
    total_discount = serializers.DecimalField(max_digits=12, decimal_places=2)
    final_amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    campaign_id = serializers.UUIDField(allow_null=True)
    user_coupon_id = serializers.UUIDField(allow_null=True)
    breakdown = DiscountDetailSerializer(many=True)


class UsableCouponSerializer(serializers.Serializer):
    user_coupon_id = serializers.UUIDField()
    name = serializers.CharField()
    discount = serializers.DecimalField(max_digits=12, decimal_places=2)
    description = serializers.CharField()
