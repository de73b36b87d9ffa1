"""Coupon and campaign domain exceptions."""

from __future__ import annotations

from modules.core.exceptions import ConflictError


class CouponNotApplicable(ConflictError):
    """The coupon chosen at pricing time could not be redeemed."""

    code = 9001
    default_message = "Coupon cannot be applied to this order."
