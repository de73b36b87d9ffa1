"""Payment, refund and gateway exceptions."""

from __future__ import annotations

from rest_framework import status

from modules.core.exceptions import (
    ConflictError,
    DomainError,
    InfrastructureError,
    NotFoundError,
)

# ---------------------------------------------------------------------------
# Payments
# ---------------------------------------------------------------------------


class PaymentNotFound(NotFoundError):
    code = 6001
    default_message = "Payment not found."


class InvalidPaymentAmount(DomainError):
    """The order has nothing to pay."""

    code = 6002
    http_status = status.HTTP_400_BAD_REQUEST
    default_message = "Payment amount must be positive."


class CallbackIntegrityError(DomainError):
    """Signature, parsing or amount check of a gateway notification failed.

    The Payment is never mutated when this is raised.
    """

    code = 6003
    http_status = status.HTTP_400_BAD_REQUEST
    default_message = "Gateway notification failed verification."


class PaymentGatewayUnavailable(InfrastructureError):
    """The gateway could not be reached or answered with an error."""

    code = 6004
    default_message = "Payment gateway unavailable."


class PaymentCreationFailed(InfrastructureError):
    """The payment row exists but no channel parameters could be obtained."""

    code = 6005
    http_status = status.HTTP_502_BAD_GATEWAY
    default_message = "Failed to create payment with the gateway."


# ---------------------------------------------------------------------------
# Refunds
# ---------------------------------------------------------------------------


class RefundNotFound(NotFoundError):
    code = 6101
    default_message = "Refund not found."


class RefundAmountExceeded(DomainError):
    code = 6102
    default_message = "Refund amount exceeds the refundable amount."


class DuplicatePendingRefund(ConflictError):
    code = 6103
    default_message = "A refund is already in progress for this order."


class InvalidRefundStatus(ConflictError):
    code = 6104
    default_message = "Refund status does not allow this operation."


class RefundExecutionFailed(InfrastructureError):
    code = 6105
    http_status = status.HTTP_502_BAD_GATEWAY
    default_message = "Gateway refused or failed the refund request."
