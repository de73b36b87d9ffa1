"""Marketing domain constants (coupons and campaigns)."""

from django.db import models


class CouponType(models.TextChoices):
    FIXED = "fixed", "Fixed amount"
    PERCENT = "percent", "Percentage"


class CouponScope(models.TextChoices):
    ALL = "all", "All transactions"
    RETAIL = "retail", "Retail only"
    RENTAL = "rental", "Rental only"
    BOOKING = "booking", "Booking only"


class CouponStatus(models.TextChoices):
    ACTIVE = "active", "Active"
    INACTIVE = "inactive", "Inactive"


class UserCouponStatus(models.TextChoices):
    UNUSED = "unused", "Unused"
    USED = "used", "Used"
    EXPIRED = "expired", "Expired"


class CampaignType(models.TextChoices):
    DISCOUNT = "discount", "Spend-threshold discount"


class CampaignStatus(models.TextChoices):
    ACTIVE = "active", "Active"
    INACTIVE = "inactive", "Inactive"
