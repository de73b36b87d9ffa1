"""Discount preview endpoint."""

from __future__ import annotations

from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from modules.customers.context import current_customer
from modules.marketing.serializers import (
    DiscountPreviewSerializer,
    DiscountResultSerializer,
    UsableCouponSerializer,
)
from modules.marketing.services import describe_coupon
from modules.orders.container import build_coupon_service, build_discount_calculator


class DiscountPreviewView(APIView):
    """POST /api/v1/discounts/preview/

    Prices an amount for the calling customer without redeeming anything:
    the composed result (campaign, then the requested coupon) plus the
    coupons usable on what remains after the campaign.
    """

    def post(self, request: Request) -> Response:
        serializer = DiscountPreviewSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        customer = current_customer(request)

        calculator = build_discount_calculator()
        if data["user_coupon_id"] is None:
            result = calculator.preview(data["amount"])
        else:
            result = calculator.compose(
                customer.id, data["transaction_type"], data["amount"], data["user_coupon_id"]
            )
        usable = build_coupon_service().usable_coupons(
            customer.id,
            data["transaction_type"],
            result.original_amount - result.campaign_discount,
        )
        coupons = [
            {
                "user_coupon_id": user_coupon.id,
                "name": user_coupon.coupon.name,
                "discount": discount,
                "description": describe_coupon(user_coupon.coupon),
            }
            for user_coupon, discount in usable
        ]
        return Response(
            {
                "pricing": DiscountResultSerializer(result.model_dump()).data,
                "usable_coupons": UsableCouponSerializer(coupons, many=True).data,
            }
        )
