"""Payment and refund DRF serializers."""

from __future__ import annotations

from decimal import Decimal

from rest_framework import serializers

from modules.payments.constants import PaymentChannel, PaymentMethod
from modules.payments.models import Payment, Refund

# ---------------------------------------------------------------------------
# Input Serializers
# ---------------------------------------------------------------------------


class CreatePaymentSerializer(serializers.Serializer):
    order_id = serializers.UUIDField()
    payment_method = serializers.ChoiceField(
        choices=PaymentMethod.choices, default=PaymentMethod.WECHAT
    )
    payment_channel = serializers.ChoiceField(
        choices=PaymentChannel.choices, default=PaymentChannel.MINIPROGRAM
    )
    payer_id = serializers.CharField(required=False, allow_null=True, default=None, max_length=128)


class CreateRefundSerializer(serializers.Serializer):
    order_id = serializers.UUIDField()
    amount = serializers.DecimalField(
        max_digits=12, decimal_places=2, min_value=Decimal("0.01")
    )
    reason = serializers.CharField(max_length=500)


class RejectRefundSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=500)


# ---------------------------------------------------------------------------
# Output Serializers (Read)
# ---------------------------------------------------------------------------


class PaymentIntentSerializer(serializers.Serializer):
    payment_id = serializers.UUIDField()
    payment_no = serializers.CharField()
    amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    status = serializers.CharField()
    expired_at = serializers.DateTimeField()
    channel_params = serializers.DictField()


class PaymentSerializer(serializers.ModelSerializer):
    status_name = serializers.CharField(read_only=True)

    class Meta:
        model = Payment
        fields = [
            "id",
            "payment_no",
            "order_id",
            "order_no",
            "transaction_type",
            "amount",
            "payment_method",
            "payment_channel",
            "status",
            "status_name",
            "transaction_id",
            "error_message",
            "expired_at",
            "paid_at",
            "created_at",
        ]
        read_only_fields = fields


class RefundSerializer(serializers.ModelSerializer):
    status_name = serializers.CharField(read_only=True)
    order_no = serializers.CharField(source="order.order_number", read_only=True)

    class Meta:
        model = Refund
        fields = [
            "id",
            "refund_no",
            "order_id",
            "order_no",
            "payment_id",
            "amount",
            "reason",
            "status",
            "status_name",
            "operator_type",
            "transaction_id",
            "reject_reason",
            "failure_reason",
            "approved_at",
            "rejected_at",
            "refunded_at",
            "created_at",
        ]
        read_only_fields = fields
