"""Payment and refund domain constants."""

from django.db import models


class PaymentStatus(models.TextChoices):
    PENDING = "pending", "Awaiting payment"
    SUCCESS = "success", "Paid"
    FAILED = "failed", "Payment failed"
    CLOSED = "closed", "Closed"
    REFUNDED = "refunded", "Refunded"


class PaymentMethod(models.TextChoices):
    WECHAT = "wechat", "WeChat Pay"
    ALIPAY = "alipay", "Alipay"
    BALANCE = "balance", "Account balance"


class PaymentChannel(models.TextChoices):
    MINIPROGRAM = "miniprogram", "Mini program"
    NATIVE = "native", "QR code"
    H5 = "h5", "Mobile web"
    APP = "app", "App"


class TradeState:
    """Trade states reported by the gateway."""

    SUCCESS = "SUCCESS"
    REFUND = "REFUND"
    NOTPAY = "NOTPAY"
    CLOSED = "CLOSED"
    REVOKED = "REVOKED"
    USERPAYING = "USERPAYING"
    PAYERROR = "PAYERROR"


class RefundStatus(models.TextChoices):
    PENDING = "pending", "Awaiting review"
    APPROVED = "approved", "Approved"
    PROCESSING = "processing", "Processing"
    SUCCESS = "success", "Refunded"
    REJECTED = "rejected", "Rejected"
    FAILED = "failed", "Refund failed"


class OperatorType(models.TextChoices):
    USER = "user", "Customer"
    ADMIN = "admin", "Administrator"
    SYSTEM = "system", "System"


# Refunds that still block a new request for the same order.
OPEN_REFUND_STATES: set[str] = {
    RefundStatus.PENDING,
    RefundStatus.APPROVED,
    RefundStatus.PROCESSING,
}

PAYMENT_NUMBER_PREFIX = "P"
REFUND_NUMBER_PREFIX = "R"
